import logging
from pydantic_settings import BaseSettings
from pydantic import model_validator, ConfigDict
from functools import lru_cache

logger = logging.getLogger(__name__)

DEFAULT_CONVERSION_ACTION_TYPES = (
    "onsite_conversion.messaging_conversation_started_7d,"
    "offsite_conversion.fb_pixel_purchase,"
    "offsite_conversion.fb_pixel_lead,"
    "omni_purchase,"
    "purchase,"
    "lead"
)


class Settings(BaseSettings):
    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Environment: "development" or "production"
    environment: str = "development"

    database_url: str = "postgresql+asyncpg://localhost/adpulse"

    @model_validator(mode="before")
    @classmethod
    def _fix_database_url_for_asyncpg(cls, values: dict) -> dict:
        """Hosted Postgres gives postgresql:// — we need postgresql+asyncpg:// for asyncpg."""
        if not isinstance(values, dict):
            return values
        url = values.get("database_url") or ""
        if url.startswith("postgresql://") and "+asyncpg" not in url:
            values["database_url"] = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return values
    api_key: str = ""  # Required in production; in dev, empty = auth disabled
    cron_secret: str = ""
    cors_origins: str = "http://localhost:5173,http://localhost:3000"
    encryption_key: str = ""

    # Meta Graph API
    graph_api_base: str = "https://graph.facebook.com/v19.0"
    http_timeout_seconds: float = 20.0

    # Sync / simulation cadence
    admin_sync_interval_seconds: int = 60
    client_sync_interval_seconds: int = 120
    pulse_interval_seconds: int = 5
    offline_retry_seconds: int = 30
    background_sync_enabled: bool = True
    pulse_enabled: bool = True

    # Metric policy
    average_order_value: float = 50.0
    default_cpc: float = 0.85
    conversion_action_types: str = DEFAULT_CONVERSION_ACTION_TYPES

    # Local snapshot of the three collections (used when the DB is unreachable)
    local_cache_path: str = ".adpulse_cache.json"

    # AI assistant
    openai_api_key: str = ""
    openai_model: str = "gpt-4o"
    anthropic_api_key: str = ""
    ai_model_id: str = ""  # "provider:model", empty = OpenAI default

    exchange_rates_url: str = "https://open.er-api.com/v6/latest"

    @model_validator(mode="after")
    def _validate_production_settings(self) -> "Settings":
        """Enforce that critical secrets are set when running in production."""
        if self.is_production:
            if not self.api_key:
                raise ValueError(
                    "API_KEY must be set in production. "
                    "Generate one with: python -c \"import secrets; print(secrets.token_hex(32))\""
                )
            if not self.encryption_key:
                raise ValueError(
                    "ENCRYPTION_KEY must be set in production. "
                    "Generate one with: python -c \"from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())\""
                )
            if not self.database_url or "localhost" in self.database_url:
                logger.warning("DATABASE_URL appears to point at localhost in production.")
        return self

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def cors_origin_list(self) -> list[str]:
        origins = [o.strip() for o in self.cors_origins.split(",") if o.strip()]
        return origins or ["http://localhost:5173", "http://localhost:3000"]

    @property
    def conversion_action_type_set(self) -> frozenset[str]:
        """The single allow-list of insight action types counted as conversions."""
        return frozenset(
            t.strip() for t in self.conversion_action_types.split(",") if t.strip()
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
