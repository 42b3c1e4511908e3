from datetime import datetime, timezone
from typing import Annotated

from pydantic import BaseModel, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel


def _serialize_datetime(value: datetime) -> str:
    """Render datetimes as ISO-8601 in UTC; naive values are taken to be UTC already."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    else:
        value = value.astimezone(timezone.utc)
    return value.isoformat().replace("+00:00", "Z")


# Use this instead of a bare datetime for any timestamp exposed by the API.
Timestamp = Annotated[datetime, PlainSerializer(_serialize_datetime, return_type=str, when_used="json")]


class CustomModel(BaseModel):
    """
    Common base model for every Pydantic schema in the project.
    Keeps the API data policy in one place.
    """
    model_config = ConfigDict(
        # Fields are exposed in camelCase but can also be filled by their Python name.
        alias_generator=to_camel,
        populate_by_name=True,

        # Lets ORM objects be converted straight into schemas.
        from_attributes=True,

        # Unknown request fields are rejected instead of silently dropped.
        extra="forbid",
    )
