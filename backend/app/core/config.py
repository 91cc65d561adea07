"""
Application configuration and settings management.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Application-specific settings."""

    name: str = Field("Vitalis Sync", description="Application name")
    version: str = Field("0.1.0", description="Application version")
    debug: bool = Field(False, description="Debug mode")
    environment: str = Field(
        "production", description="Environment (development, staging, production)"
    )

    model_config = SettingsConfigDict(env_prefix="APP_")


class DatabaseSettings(BaseSettings):
    """Database configuration settings."""

    url: str = Field("sqlite:///./vitalis.db", description="Database connection URL")
    echo: bool = Field(False, description="Echo SQL statements")
    pool_size: int = Field(10, description="Connection pool size")
    pool_recycle: int = Field(
        3600, description="Connection pool recycle time in seconds"
    )
    create_tables: bool = Field(
        True, description="Create missing tables on application startup"
    )

    model_config = SettingsConfigDict(env_prefix="DATABASE_")

    @field_validator("url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Ensure database URL is properly formatted."""
        if not v:
            raise ValueError("Database URL cannot be empty")
        return v


class SocSettings(BaseSettings):
    """SOC export API settings."""

    url: str = Field(
        "https://ws1.soc.com.br/WebSoc/exportadados",
        description="SOC data export endpoint",
    )
    timeout: float = Field(120.0, description="Hard request timeout in seconds")
    encoding: str = Field("latin-1", description="Character set of SOC responses")
    output_format: str = Field("json", description="Value sent as tipoSaida")
    excerpt_length: int = Field(
        1000, description="Characters of raw payload kept on parse failures"
    )

    model_config = SettingsConfigDict(env_prefix="SOC_")

    @field_validator("url")
    @classmethod
    def validate_soc_url(cls, v: str) -> str:
        """Ensure SOC URL is properly formatted."""
        if not v:
            raise ValueError("SOC URL cannot be empty")
        return v.rstrip("/")


class SyncSettings(BaseSettings):
    """Synchronization pipeline settings."""

    batch_size: int = Field(100, description="Records per batch in parallel mode")
    max_concurrent: int = Field(5, description="Batches running in one wave")
    parallel: bool = Field(
        False, description="Use parallel batches for large record sets by default"
    )
    progress_interval: int = Field(
        10, description="Records between progress updates"
    )
    batch_delay_seconds: float = Field(
        0.0, description="Pause between batch waves"
    )
    max_run_seconds: Optional[float] = Field(
        None, description="Hand remaining records to a continuation job after this"
    )
    terminal_write_attempts: int = Field(
        3, description="Attempts for the final status write"
    )
    stale_after_minutes: int = Field(
        30, description="Active jobs without updates for this long are failed"
    )
    sweep_interval_minutes: int = Field(
        10, description="Interval of the stale job sweep"
    )
    history_limit: int = Field(20, description="Default size of the history list")

    model_config = SettingsConfigDict(env_prefix="SYNC_")

    @field_validator("batch_size", "max_concurrent", "progress_interval")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Batch sizing values must be positive."""
        if v < 1:
            raise ValueError("Value must be at least 1")
        return v


class SecuritySettings(BaseSettings):
    """Security-related settings."""

    secret_key: str = Field(
        "change-this-in-production-to-a-random-string",
        description="Shared secret used to verify bearer tokens",
    )
    algorithm: str = Field("HS256", description="JWT algorithm")
    audience: Optional[str] = Field(
        None, description="Expected token audience, e.g. 'authenticated'"
    )

    model_config = SettingsConfigDict(env_prefix="SECURITY_")


class CORSSettings(BaseSettings):
    """CORS configuration settings."""

    origins: list[str] = Field(
        ["*"],
        description="Allowed origins",
    )
    credentials: bool = Field(True, description="Allow credentials")
    methods: list[str] = Field(["*"], description="Allowed methods")
    headers: list[str] = Field(["*"], description="Allowed headers")

    model_config = SettingsConfigDict(env_prefix="CORS_")


class LoggingSettings(BaseSettings):
    """Logging configuration settings."""

    level: str = Field("INFO", description="Logging level")
    format: str = Field(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s", description="Log format"
    )
    json_logs: bool = Field(False, description="Use JSON logging format")

    model_config = SettingsConfigDict(env_prefix="LOGGING_")


class Settings(BaseSettings):
    """Main settings class combining all configuration sections."""

    # Sub-settings
    app: AppSettings = Field(default_factory=lambda: AppSettings())  # type: ignore[call-arg]
    database: DatabaseSettings = Field(default_factory=lambda: DatabaseSettings())  # type: ignore[call-arg]
    soc: SocSettings = Field(default_factory=lambda: SocSettings())  # type: ignore[call-arg]
    sync: SyncSettings = Field(default_factory=lambda: SyncSettings())  # type: ignore[call-arg]
    security: SecuritySettings = Field(default_factory=lambda: SecuritySettings())  # type: ignore[call-arg]
    cors: CORSSettings = Field(default_factory=lambda: CORSSettings())  # type: ignore[call-arg]
    logging: LoggingSettings = Field(default_factory=lambda: LoggingSettings())  # type: ignore[call-arg]

    # Task queue settings
    max_workers: int = Field(5, description="Maximum number of background workers")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_nested_delimiter="__",
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings: Application settings
    """
    return Settings()
