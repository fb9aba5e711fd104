"""
Tests for application configuration and settings validation.
"""

import os
import pytest
from unittest.mock import patch


def test_settings_loads_defaults():
    """Settings should load with sensible defaults in development."""
    # Clear the lru_cache so we get a fresh Settings instance
    from adpulse.config import get_settings
    get_settings.cache_clear()

    with patch.dict(os.environ, {
        "ENVIRONMENT": "development",
        "DATABASE_URL": "postgresql+asyncpg://localhost/test",
    }, clear=False):
        get_settings.cache_clear()
        settings = get_settings()
        assert settings.environment == "development"
        assert settings.is_production is False
        assert settings.graph_api_base == "https://graph.facebook.com/v19.0"
        assert settings.admin_sync_interval_seconds == 60
        assert settings.client_sync_interval_seconds == 120
        assert settings.average_order_value == 50.0
        get_settings.cache_clear()


def test_settings_cors_origin_list():
    """CORS origins string should be split into a list."""
    from adpulse.config import get_settings
    get_settings.cache_clear()

    with patch.dict(os.environ, {
        "ENVIRONMENT": "development",
        "DATABASE_URL": "postgresql+asyncpg://localhost/test",
        "CORS_ORIGINS": "http://localhost:3000, http://example.com",
    }, clear=False):
        get_settings.cache_clear()
        settings = get_settings()
        origins = settings.cors_origin_list
        assert len(origins) == 2
        assert "http://localhost:3000" in origins
        assert "http://example.com" in origins
        get_settings.cache_clear()


def test_plain_postgres_url_rewritten_for_asyncpg():
    from adpulse.config import Settings
    settings = Settings(database_url="postgresql://user:pw@db-host:5432/adpulse")
    assert settings.database_url == "postgresql+asyncpg://user:pw@db-host:5432/adpulse"


def test_conversion_action_types_parsed_into_set():
    from adpulse.config import Settings
    settings = Settings(conversion_action_types=" purchase, lead ,,omni_purchase")
    assert settings.conversion_action_type_set == frozenset({"purchase", "lead", "omni_purchase"})


def test_production_requires_api_key():
    """Production mode should refuse to run without an API key."""
    from adpulse.config import get_settings, Settings
    get_settings.cache_clear()

    with pytest.raises(ValueError, match="API_KEY must be set"):
        Settings(
            environment="production",
            api_key="",
            encryption_key="x" * 44,
            database_url="postgresql+asyncpg://prod-host/db",
        )
    get_settings.cache_clear()


def test_production_requires_encryption_key():
    from adpulse.config import Settings
    with pytest.raises(ValueError, match="ENCRYPTION_KEY must be set"):
        Settings(
            environment="production",
            api_key="real-api-key",
            encryption_key="",
            database_url="postgresql+asyncpg://prod-host/db",
        )


def test_production_accepts_real_secrets():
    """Production mode should accept real secrets."""
    from adpulse.config import Settings
    settings = Settings(
        environment="production",
        api_key="real-api-key",
        encryption_key="x" * 44,
        database_url="postgresql+asyncpg://prod-host/db",
    )
    assert settings.is_production is True
    assert settings.api_key == "real-api-key"
    assert not hasattr(settings, "secret_key")
