import asyncio
from typing import Optional

import typer

from admin_panel.config import settings
from admin_panel.context import AppContext
from admin_panel.errors import AppError
from admin_panel.users import service as user_service
from admin_panel.users.models import UserRole

cli = typer.Typer()


async def _run(task):
    context = AppContext.create(settings)
    try:
        await context.create_tables()
        async with context.session_factory() as session:
            return await task(session)
    finally:
        await context.close()


def _report(user) -> None:
    print(f"   ID: {user.id}")
    print(f"   Username: {user.username}")
    print(f"   Email: {user.email}")
    print(f"   Role: {user.role.value}")


@cli.command(name="create-admin")
def createadmin(
    email: str = typer.Option(..., "--email", "-e", help="Admin's email address."),
    password: str = typer.Option(..., "--password", "-p", help="Admin's secure password."),
    username: str = typer.Option("Admin", "--username", "-u", help="Admin's username."),
):
    """
    Creates a verified, active user with the Admin role.
    """
    async def task(session):
        if await user_service.get_user_by_email(email, session):
            return None
        return await user_service.create_user(
            session, email=email, password=password, username=username, role=UserRole.ADMIN
        )

    print(f"Creating admin user '{email}'...")
    try:
        admin = asyncio.run(_run(task))
    except AppError as e:
        print(f"❌ Error creating admin user: {e.message}")
        raise typer.Exit(code=1)
    if admin is None:
        print(f"❌ A user with email '{email}' already exists")
        raise typer.Exit(code=1)
    print("✅ Admin user created successfully!")
    _report(admin)


@cli.command(name="create-editor")
def createeditor(
    email: str = typer.Option(..., "--email", "-e", help="Editor's email address."),
    password: str = typer.Option(..., "--password", "-p", help="Editor's password (8+ characters)."),
    username: Optional[str] = typer.Option(None, "--username", "-u", help="Defaults to the email local-part."),
):
    """
    Creates an Editor account with the same checks as POST /api/users/editors.
    """
    async def task(session):
        return await user_service.create_editor(session, email=email, password=password, username=username)

    try:
        editor = asyncio.run(_run(task))
    except AppError as e:
        print(f"❌ Error creating editor: {e.message}")
        raise typer.Exit(code=1)
    print("✅ Editor created successfully!")
    _report(editor)


if __name__ == "__main__":
    cli()
