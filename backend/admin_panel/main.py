import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import Config, settings
from .context import AppContext
from .errors import AppError
from .users import service as user_service
from .auth.router import router as auth_router
from .users.router import router as users_router
from .articles.router import router as articles_router
from .analytics.router import router as analytics_router

# Logging goes to stdout so container runtimes pick it up
log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
logging.basicConfig(
    level=log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)

logger = logging.getLogger(__name__)
logger.info(f"Application starting with log level: {settings.LOG_LEVEL}")


async def seed_admin_account(context: AppContext) -> None:
    config = context.settings
    if not config.SEED_ADMIN_EMAIL or not config.SEED_ADMIN_PASSWORD:
        logger.info("SEED_ADMIN_EMAIL/SEED_ADMIN_PASSWORD not set; skipping admin seed.")
        return
    try:
        async with context.session_factory() as session:
            await user_service.seed_admin(
                session,
                email=config.SEED_ADMIN_EMAIL,
                password=config.SEED_ADMIN_PASSWORD,
                username=config.SEED_ADMIN_USERNAME,
            )
    except Exception as e:
        logger.exception(f"Error seeding admin user: {e}")


def _error(status_code: int, message: str, headers=None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path"))
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts) or "Invalid request"


def register_exception_handlers(app: FastAPI, config: Config) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404 and not isinstance(exc, AppError):
            return _error(404, "Route not found")
        return _error(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return _error(400, _validation_message(exc))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
        message = "Internal server error" if config.is_production else str(exc) or "Internal server error"
        # This response is produced outside CORSMiddleware, so the headers are added here
        headers = {}
        origin = request.headers.get("origin")
        allowed = config.allowed_origins
        if origin and ("*" in allowed or origin in allowed):
            headers = {
                "Access-Control-Allow-Origin": origin,
                "Access-Control-Allow-Credentials": "true",
                "Vary": "Origin",
            }
        return _error(500, message, headers=headers)


def create_app(config: Config = settings) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        context = AppContext.create(config)
        app.state.context = context
        try:
            if config.DB_AUTO_CREATE:
                await context.create_tables()
            await seed_admin_account(context)
        except Exception as e:
            logger.exception(f"Startup error: {e}")
        yield
        await context.close()

    app = FastAPI(title="Admin Panel API", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    register_exception_handlers(app, config)

    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(articles_router)
    app.include_router(analytics_router)

    # Liveness check for the load balancer
    @app.get("/health", tags=["health"])
    async def health():
        return {
            "status": "OK",
            "service": "admin-panel-server",
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        }

    return app


app = create_app()
