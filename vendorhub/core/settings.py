from __future__ import annotations

from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    Application-level settings for the FastAPI service and the storage router.

    This is separate from vendorhub.db.config.Settings, which focuses on the database layer.
    """

    # FastAPI metadata
    APP_NAME: str = Field(default="VendorHub API")
    APP_DESCRIPTION: str = Field(
        default=(
            "Backend API for a multi-tenant vendor management platform. "
            "Every read and write is scoped to the calling vendor."
        )
    )
    APP_VERSION: str = Field(default="0.1.0")

    # CORS
    CORS_ORIGINS: List[str] = Field(
        default_factory=lambda: ["*"],
        description="Comma-separated list or JSON array of allowed origins. Default: *",
    )
    CORS_ALLOW_CREDENTIALS: bool = Field(default=True)
    CORS_ALLOW_METHODS: List[str] = Field(default_factory=lambda: ["*"])
    CORS_ALLOW_HEADERS: List[str] = Field(default_factory=lambda: ["*"])

    # Startup behavior
    RUN_MIGRATIONS_ON_STARTUP: bool = Field(
        default=False,
        description="If true and a database backend is routed, run Alembic upgrade head at startup.",
    )
    AUTO_SEED: bool = Field(
        default=False,
        description="If true, seed global categories and sample data after startup.",
    )

    # Token verification (issuing tokens is the auth service's job)
    JWT_SECRET_KEY: str = Field(default="change-me", description="HMAC key for access tokens")
    JWT_ALGORITHM: str = Field(default="HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=60)

    # Storage routing: which backing store owns each entity kind
    STORAGE_DEFAULT_BACKEND: str = Field(
        default="memory",
        description="Backend owning every entity not listed in STORAGE_DATABASE_ENTITIES.",
    )
    STORAGE_DATABASE_ENTITIES: str = Field(
        default="",
        description="Entity kinds already migrated to the database store (comma-separated).",
    )

    # Environment label
    ENVIRONMENT: Optional[str] = Field(
        default=None, description="Environment label (dev/test/prod)"
    )

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v):
        """
        Accept both JSON array format and comma-separated formats for CORS origins.
        """
        if v is None:
            return ["*"]
        if isinstance(v, str):
            parts = [p.strip() for p in v.split(",") if p.strip()]
            return parts or ["*"]
        if isinstance(v, list):
            return v or ["*"]
        return ["*"]

    @property
    def database_entities(self) -> List[str]:
        """Entity kinds listed in STORAGE_DATABASE_ENTITIES."""
        return [p.strip() for p in self.STORAGE_DATABASE_ENTITIES.split(",") if p.strip()]

    @property
    def uses_database(self) -> bool:
        """True when any entity kind is owned by the database store."""
        return self.STORAGE_DEFAULT_BACKEND == "database" or bool(self.database_entities)


# PUBLIC_INTERFACE
def get_app_settings() -> AppSettings:
    """
    Return a new AppSettings instance populated from environment variables.

    Note:
      For simplicity we construct a new instance each time. If caching is desired,
      we can add a module-level cache or lru_cache.
    """
    return AppSettings()
