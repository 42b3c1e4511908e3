import json
from typing import Annotated, List

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Config(BaseSettings):
    model_config = SettingsConfigDict(env_file="../.env", env_file_encoding="utf-8", extra="ignore")

    # FastAPI application
    ENVIRONMENT: str = "development"
    APP_HOST: str = "0.0.0.0"
    APP_PORT: int = 4000
    LOG_LEVEL: str = "INFO"
    # Public base URL used to build image links (falls back to the request host)
    APP_BASE_URL: str | None = None

    # Database
    DATABASE_URL: str = "postgresql+asyncpg://user:postgres@db:5432/admin_panel"
    POSTGRES_SSLMODE: str = "disable"
    # Off by default: the schema is managed with Alembic (backend/migrations)
    DB_AUTO_CREATE: bool = False

    # JWT
    JWT_SECRET_KEY: str | None = None
    JWT_REFRESH_SECRET_KEY: str | None = None
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # CORS
    # NoDecode: the validator below accepts a JSON list or a comma-separated string
    CORS_ORIGINS: Annotated[List[str], NoDecode] = [
        "http://localhost:4200",
        "http://localhost:4201",
        "http://localhost:3000",
    ]
    CLIENT_URL: str | None = None
    CLIENT_URLS: str | None = None

    # Article images
    IMAGE_CHUNK_SIZE: int = 255 * 1024
    IMAGE_CACHE_MAX_AGE: int = 3600

    # Admin account seeded on startup (skipped when email/password are unset)
    SEED_ADMIN_EMAIL: str | None = None
    SEED_ADMIN_PASSWORD: str | None = None
    SEED_ADMIN_USERNAME: str = "Admin"

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _normalise_cors(cls, value):
        if isinstance(value, list):
            return value
        if isinstance(value, str):
            raw = value.strip()
            if raw.startswith("[") and raw.endswith("]"):
                try:
                    parsed = json.loads(raw)
                    if isinstance(parsed, list):
                        return parsed
                except json.JSONDecodeError:
                    pass
            return [item.strip() for item in raw.split(",") if item.strip()]
        raise ValueError("CORS_ORIGINS must be a string or list of strings")

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def allowed_origins(self) -> List[str]:
        origins = list(self.CORS_ORIGINS)
        if self.CLIENT_URL:
            origins.append(self.CLIENT_URL.strip())
        if self.CLIENT_URLS:
            origins.extend(item.strip() for item in self.CLIENT_URLS.split(","))
        seen = []
        for origin in origins:
            if origin and origin not in seen:
                seen.append(origin)
        return seen


settings = Config()
