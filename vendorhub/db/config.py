from __future__ import annotations

import re
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import make_url

from vendorhub.core.errors import ConfigurationError


class Settings(BaseSettings):
    """
    Database connection and pool settings.

    Reads from environment variables (or .env via pydantic-settings):
      - DATABASE_URL (preferred), or
      - POSTGRES_USER / POSTGRES_PASSWORD / POSTGRES_DB / POSTGRES_HOST / POSTGRES_PORT
    """

    DATABASE_URL: Optional[str] = Field(
        default=None, description="If provided, full PostgreSQL connection URL."
    )
    POSTGRES_USER: Optional[str] = Field(default=None, description="DB username")
    POSTGRES_PASSWORD: Optional[str] = Field(default=None, description="DB password")
    POSTGRES_DB: Optional[str] = Field(default=None, description="Database name")
    POSTGRES_PORT: Optional[int] = Field(
        default=5432, description="Database port (default 5432)"
    )
    POSTGRES_HOST: Optional[str] = Field(
        default="localhost", description="Database host (default localhost)"
    )

    # Pool
    DB_POOL_SIZE: int = Field(default=10, ge=1, description="Persistent connections kept in the pool")
    DB_MAX_OVERFLOW: int = Field(default=5, ge=0, description="Extra connections allowed under load")
    DB_POOL_TIMEOUT: float = Field(
        default=30.0, gt=0, description="Seconds to wait for a free connection before failing"
    )
    DB_SSL_REQUIRED: bool = Field(
        default=False, description="Append sslmode=require to URLs that do not set it"
    )

    SQL_ECHO: bool = Field(
        default=False, description="Echo SQL statements for debugging (default False)"
    )

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @property
    def database_url(self) -> str:
        """
        Compute the base database URL. Prefers DATABASE_URL if present, otherwise
        constructs it from the individual POSTGRES_* variables.

        Raises:
            ConfigurationError: nothing usable is configured.
        """
        if self.DATABASE_URL:
            url = self.DATABASE_URL
        elif all([self.POSTGRES_USER, self.POSTGRES_PASSWORD, self.POSTGRES_DB]):
            host = self.POSTGRES_HOST or "localhost"
            port = self.POSTGRES_PORT or 5432
            url = f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{host}:{port}/{self.POSTGRES_DB}"
        else:
            raise ConfigurationError(
                "Database configuration missing. Set DATABASE_URL or "
                "POSTGRES_USER, POSTGRES_PASSWORD and POSTGRES_DB."
            )
        if self.DB_SSL_REQUIRED and "sslmode=" not in url and "ssl=" not in url:
            url += ("&" if "?" in url else "?") + "ssl=require"
        return url

    @property
    def async_database_url(self) -> str:
        """
        Convert the base URL to an asyncpg-enabled SQLAlchemy URL, required for AsyncEngine.
        Non-PostgreSQL URLs (e.g. sqlite+aiosqlite) are returned untouched.
        """
        url = self.database_url
        if url.startswith("postgresql+asyncpg://"):
            return url
        return re.sub(r"^postgres(ql)?(\+\w+)?://", "postgresql+asyncpg://", url)

    @property
    def sync_database_url(self) -> str:
        """Driverless variant used by Alembic offline mode."""
        return re.sub(r"^postgresql\+\w+://", "postgresql://", self.database_url)

    @property
    def safe_database_url(self) -> str:
        """Database URL with the password masked, for logs."""
        return make_url(self.async_database_url).render_as_string(hide_password=True)


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return a settings object populated from the environment."""
    return Settings()
