"""
SKU Pulse
Centralized Configuration Management

Pydantic settings with environment variable support and validation. Every
section reads its own prefix so a single `.env` file can configure the
whole service.
"""

from functools import lru_cache
from typing import List, Optional
from pydantic import Field, field_validator, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from skupulse.exceptions import ConfigurationError

# Sections are built independently, so each one reads the .env file itself
_DOTENV = dict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

DEFAULT_ETL_SECRET = "change_this_secret"


class DatabaseSettings(BaseSettings):
    """Relational store configuration"""

    model_config = SettingsConfigDict(env_prefix="", **_DOTENV)

    url: Optional[str] = Field(default=None, alias="DATABASE_URL", description="Datastore connection string")
    echo: bool = Field(default=False, alias="DATABASE_ECHO", description="Echo SQL queries")
    pool_size: int = Field(default=5, alias="DATABASE_POOL_SIZE", description="Connection pool size")
    max_overflow: int = Field(default=5, alias="DATABASE_MAX_OVERFLOW", description="Max overflow connections")

    @property
    def async_url(self) -> Optional[str]:
        """Connection string rewritten for the asyncpg driver"""
        if not self.url:
            return None
        for prefix in ("postgres://", "postgresql://"):
            if self.url.startswith(prefix):
                return "postgresql+asyncpg://" + self.url[len(prefix):]
        return self.url


class ShopifySettings(BaseSettings):
    """Store platform API configuration"""

    model_config = SettingsConfigDict(env_prefix="SHOPIFY_", **_DOTENV)

    store: Optional[str] = Field(default=None, description="Shop domain, e.g. my-shop.myshopify.com")
    admin_api_key: Optional[SecretStr] = Field(default=None, description="Admin API access token")
    api_version: str = Field(default="2025-07", description="Admin API version")
    timeout_seconds: float = Field(default=60.0, description="Timeout per outbound call")

    # Pagination and safety ceilings
    page_limit: int = Field(default=250, description="REST page size")
    product_page_size: int = Field(default=50, description="GraphQL products per page")
    product_item_cap: int = Field(default=3000, description="Stop product paging once this many products are held")
    inventory_page_cap: int = Field(default=20, description="Max follow-up inventory pages")
    order_page_cap: int = Field(default=40, description="Max follow-up order pages")
    order_item_cap: int = Field(default=20000, description="Stop order paging once this many orders are held")

    @property
    def base_url(self) -> str:
        """Versioned Admin API root"""
        return f"https://{self.store}/admin/api/{self.api_version}/"


class SyncSettings(BaseSettings):
    """Sync routine configuration"""

    model_config = SettingsConfigDict(env_prefix="", **_DOTENV)

    etl_secret: Optional[SecretStr] = Field(default=None, alias="ETL_SECRET", description="Trigger shared secret")
    order_window_days: int = Field(default=60, alias="ORDER_WINDOW_DAYS", description="Trailing order window in days")
    restock_threshold_days: float = Field(
        default=14.0,
        alias="RESTOCK_THRESHOLD_DAYS",
        description="Days of cover at or below which a restock alert fires",
    )

    @field_validator("order_window_days")
    @classmethod
    def validate_window(cls, v: int) -> int:
        """Keep the order window within a sane range"""
        if not 1 <= v <= 365:
            raise ValueError("ORDER_WINDOW_DAYS must be between 1 and 365")
        return v

    @property
    def trigger_secret(self) -> Optional[str]:
        """The shared secret, or None when unset or left at the published placeholder"""
        if self.etl_secret is None:
            return None
        value = self.etl_secret.get_secret_value().strip()
        if not value or value == DEFAULT_ETL_SECRET:
            return None
        return value


class AlertSettings(BaseSettings):
    """Notification sink configuration"""

    model_config = SettingsConfigDict(env_prefix="", **_DOTENV)

    slack_webhook_url: Optional[str] = Field(default=None, alias="SLACK_WEBHOOK_URL", description="Incoming webhook URL")
    timeout_seconds: float = Field(default=10.0, alias="ALERT_TIMEOUT_SECONDS", description="Webhook post timeout")


class RedisSettings(BaseSettings):
    """Read-side cache configuration"""

    model_config = SettingsConfigDict(env_prefix="REDIS_", **_DOTENV)

    url: Optional[str] = Field(default=None, alias="REDIS_URL", description="Redis URL; cache disabled when unset")
    max_connections: int = Field(default=20, description="Max connections")
    socket_timeout: int = Field(default=5, description="Socket timeout in seconds")
    skus_ttl_seconds: int = Field(default=300, description="TTL for the SKU velocity listing")


class MonitoringSettings(BaseSettings):
    """Logging configuration"""

    model_config = SettingsConfigDict(env_prefix="", **_DOTENV)

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="json", alias="LOG_FORMAT", description="Log format: json or text")


class Settings(BaseSettings):
    """
    Main Application Settings

    Aggregates all configuration sections and provides a single entry point
    for accessing application configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="skupulse", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")
    debug: bool = Field(default=False, alias="DEBUG", description="Debug mode")

    # API Server
    api_host: str = Field(default="0.0.0.0", alias="API_HOST", description="API host")
    api_port: int = Field(default=8000, alias="API_PORT", description="API port")

    version: str = Field(default="1.0.0", description="Application version")

    # Subsystem configurations
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    shopify: ShopifySettings = Field(default_factory=ShopifySettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    alerts: AlertSettings = Field(default_factory=AlertSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.app_env == "production"

    def missing_sync_config(self, include_trigger: bool = False) -> List[str]:
        """
        Names of required sync settings that are unset.

        With include_trigger, a missing or placeholder ETL_SECRET counts too;
        the HTTP trigger needs it, scheduled runs do not.
        """
        missing = []
        if not self.database.url:
            missing.append("DATABASE_URL")
        if not self.shopify.store:
            missing.append("SHOPIFY_STORE")
        if self.shopify.admin_api_key is None or not self.shopify.admin_api_key.get_secret_value():
            missing.append("SHOPIFY_ADMIN_API_KEY")
        if include_trigger and self.sync.trigger_secret is None:
            missing.append("ETL_SECRET")
        return missing

    def require_sync_config(self) -> None:
        """
        Fail fast when the sync routine cannot run.

        Raises:
            ConfigurationError: If store identity, access credential or
                datastore connection string is missing
        """
        missing = self.missing_sync_config()
        if missing:
            raise ConfigurationError(f"Missing required configuration: {', '.join(missing)}")


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are only loaded once.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
