"""Tests for application and database settings."""
from __future__ import annotations

import pytest

from vendorhub.core.errors import ConfigurationError
from vendorhub.core.settings import AppSettings
from vendorhub.db.config import Settings


def db_settings(**values) -> Settings:
    base = {"DATABASE_URL": None, "POSTGRES_USER": None, "POSTGRES_PASSWORD": None, "POSTGRES_DB": None}
    base.update(values)
    return Settings(**base)


class TestAppSettings:
    def test_defaults_route_everything_to_memory(self):
        settings = AppSettings(STORAGE_DEFAULT_BACKEND="memory", STORAGE_DATABASE_ENTITIES="")
        assert settings.database_entities == []
        assert settings.uses_database is False

    def test_database_entities_are_split_and_trimmed(self):
        settings = AppSettings(STORAGE_DATABASE_ENTITIES=" customers, leads ,,")
        assert settings.database_entities == ["customers", "leads"]
        assert settings.uses_database is True

    def test_database_default_backend(self):
        assert AppSettings(STORAGE_DEFAULT_BACKEND="database").uses_database is True

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("https://a.io, https://b.io", ["https://a.io", "https://b.io"]),
            ("", ["*"]),
            (["https://a.io"], ["https://a.io"]),
            ([], ["*"]),
        ],
    )
    def test_cors_origins(self, raw, expected):
        assert AppSettings(CORS_ORIGINS=raw).CORS_ORIGINS == expected


class TestDatabaseSettings:
    def test_missing_configuration(self):
        with pytest.raises(ConfigurationError):
            db_settings().database_url

    def test_url_from_parts(self):
        settings = db_settings(
            POSTGRES_USER="app", POSTGRES_PASSWORD="s3cret", POSTGRES_DB="vendorhub", POSTGRES_HOST="db", POSTGRES_PORT=6543
        )
        assert settings.database_url == "postgresql://app:s3cret@db:6543/vendorhub"
        assert settings.async_database_url == "postgresql+asyncpg://app:s3cret@db:6543/vendorhub"

    @pytest.mark.parametrize(
        "url",
        [
            "postgres://u:p@h/d",
            "postgresql://u:p@h/d",
            "postgresql+psycopg2://u:p@h/d",
            "postgresql+asyncpg://u:p@h/d",
        ],
    )
    def test_async_url_normalisation(self, url):
        assert db_settings(DATABASE_URL=url).async_database_url == "postgresql+asyncpg://u:p@h/d"

    def test_sqlite_urls_are_left_alone(self):
        settings = db_settings(DATABASE_URL="sqlite+aiosqlite:///tmp/x.db")
        assert settings.async_database_url == "sqlite+aiosqlite:///tmp/x.db"

    def test_sync_url_drops_driver(self):
        settings = db_settings(DATABASE_URL="postgresql+asyncpg://u:p@h/d")
        assert settings.sync_database_url == "postgresql://u:p@h/d"

    def test_safe_url_masks_password(self):
        safe = db_settings(DATABASE_URL="postgresql://u:s3cret@h/d").safe_database_url
        assert "s3cret" not in safe
        assert safe.startswith("postgresql+asyncpg://u:")

    def test_ssl_required(self):
        settings = db_settings(DATABASE_URL="postgresql://u:p@h/d", DB_SSL_REQUIRED=True)
        assert settings.database_url == "postgresql://u:p@h/d?ssl=require"
        kept = db_settings(DATABASE_URL="postgresql://u:p@h/d?sslmode=disable", DB_SSL_REQUIRED=True)
        assert kept.database_url == "postgresql://u:p@h/d?sslmode=disable"
