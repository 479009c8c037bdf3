"""
WaWi -> BI Synchronization
Centralized Configuration Management

Connection and run parameters for the sync, loaded with Pydantic settings
from environment variables (and an optional ``.env`` file).
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL, make_url


class DatabaseSettings(BaseSettings):
    """Relational store connection parameters shared by both sides"""

    driver: str = Field(default="mysql+aiomysql", description="SQLAlchemy async driver")
    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=3306, description="Database port")
    name: str = Field(default="", description="Database name")
    user: str = Field(default="", description="Database user")
    password: SecretStr = Field(default=SecretStr(""), description="Database password")
    url: Optional[str] = Field(default=None, description="Full URL (overrides host/port/name)")
    pool_size: int = Field(default=10, description="Connection pool size")
    max_overflow: int = Field(default=0, description="Max overflow connections")
    pool_timeout: int = Field(default=30, description="Pool timeout in seconds")
    echo: bool = Field(default=False, description="Echo SQL queries")

    def get_url(self) -> URL:
        """Connection URL - uses ``url`` if set, otherwise builds from the parts"""
        if self.url:
            return make_url(self.url)
        return URL.create(
            drivername=self.driver,
            username=self.user or None,
            password=self.password.get_secret_value() or None,
            host=self.host,
            port=self.port,
            database=self.name or None,
        )


class WawiDatabaseSettings(DatabaseSettings):
    """WaWi (operational, read-only) database"""

    model_config = SettingsConfigDict(env_prefix="WAWI_DB_")


class BiDatabaseSettings(DatabaseSettings):
    """BI star-schema database"""

    model_config = SettingsConfigDict(env_prefix="BI_DB_")


class SyncSettings(BaseSettings):
    """Sync run behaviour"""

    model_config = SettingsConfigDict(env_prefix="SYNC_")

    completed_order_status: str = Field(
        default="abgeschlossen",
        description="bestellung.Status value marking a completed order",
    )


class MonitoringSettings(BaseSettings):
    """Logging Configuration"""

    model_config = SettingsConfigDict(env_prefix="", populate_by_name=True)

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="json", alias="LOG_FORMAT", description="Log format: json or text")


class Settings(BaseSettings):
    """
    Main Application Settings

    Aggregates all configuration sections. The sync service receives an
    instance explicitly; nothing in the core reads it from module state.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    app_name: str = Field(default="wawi-bi-sync", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")

    wawi_db: WawiDatabaseSettings = Field(default_factory=WawiDatabaseSettings)
    bi_db: BiDatabaseSettings = Field(default_factory=BiDatabaseSettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)
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


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
