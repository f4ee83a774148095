"""
Configuration management with environment variable validation.
Loads and validates all configuration from environment variables.
"""
from typing import List, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="storefront-public-api")
    app_version: str = Field(default="1.0.0")
    environment: str = Field(default="development")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8002)
    workers: int = Field(default=4)
    reload: bool = Field(default=False)

    # Record store
    database_url: str = Field(default="sqlite+aiosqlite:///./public_api.db")
    database_pool_size: int = Field(default=20)
    database_echo: bool = Field(default=False)
    database_create_tables: bool = Field(default=False)

    # Rate Limiting (applied when a key leaves its own limits unset)
    default_rate_limit_per_minute: int = Field(default=60, ge=1)
    default_rate_limit_per_day: int = Field(default=10000, ge=1)
    usage_warning_thresholds: List[int] = Field(default=[80, 95])

    # Routing
    route_prefix_segment: str = Field(default="public-api")
    default_page_size: int = Field(default=20, ge=1)
    max_page_size: int = Field(default=100, ge=1)

    # SMM provider
    smm_provider_scheme: str = Field(default="https")
    smm_provider_timeout: float = Field(default=30.0, gt=0)
    smm_cancel_on_commit_failure: bool = Field(default=True)

    # Notifications
    notification_url: Optional[str] = Field(default=None)
    notification_auth_token: Optional[str] = Field(default=None)
    notification_timeout: float = Field(default=10.0, gt=0)

    # Logging
    log_format: str = Field(default="json")
    log_file_enabled: bool = Field(default=False)
    log_file_path: str = Field(default="/app/logs/public_api.log")
    log_file_max_size: int = Field(default=10485760)  # 10MB
    log_file_backup_count: int = Field(default=5)

    # CORS
    cors_allow_origin: str = Field(default="*")
    cors_allow_headers: str = Field(
        default="authorization, x-client-info, apikey, content-type"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v):
        """Validate environment value."""
        allowed = ["development", "staging", "production", "test"]
        if v not in allowed:
            raise ValueError(f"environment must be one of: {allowed}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"log_level must be one of: {allowed}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        """Validate log format."""
        allowed = ["json", "console"]
        if v not in allowed:
            raise ValueError(f"log_format must be one of: {allowed}")
        return v

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v):
        """Only PostgreSQL, SQLite and the in-process store are supported."""
        if not v.startswith(("postgresql+asyncpg://", "sqlite+aiosqlite://", "memory://")):
            raise ValueError(
                "DATABASE_URL must use postgresql+asyncpg://, sqlite+aiosqlite:// or memory://"
            )
        return v

    @field_validator("usage_warning_thresholds")
    @classmethod
    def validate_thresholds(cls, v):
        """Warning thresholds are percentages strictly between 0 and 100."""
        for threshold in v:
            if not 0 < threshold < 100:
                raise ValueError("usage_warning_thresholds must be between 0 and 100")
        return sorted(set(v))

    @field_validator("smm_provider_scheme")
    @classmethod
    def validate_scheme(cls, v):
        if v not in ("http", "https"):
            raise ValueError("smm_provider_scheme must be http or https")
        return v

    @property
    def uses_memory_store(self) -> bool:
        return self.database_url.startswith("memory://")


def validate_environment(**overrides) -> Settings:
    """
    Validate environment configuration on startup.
    Raises ValueError if required variables are missing or invalid.
    """
    try:
        settings = Settings(**overrides)

        # Additional validation
        if settings.environment == "production":
            if settings.debug:
                raise ValueError("DEBUG must be False in production")
            if settings.reload:
                raise ValueError("RELOAD must be False in production")
            if settings.database_echo:
                raise ValueError("DATABASE_ECHO must be False in production")
            if settings.uses_memory_store:
                raise ValueError("DATABASE_URL must point at a real database in production")

        if settings.default_page_size > settings.max_page_size:
            raise ValueError("DEFAULT_PAGE_SIZE must not exceed MAX_PAGE_SIZE")

        return settings

    except Exception as e:
        print("\n❌ Environment Configuration Error:")
        print(f"   {str(e)}\n")
        print("💡 Tip: Copy .env.example to .env and fill in your values")
        raise


# Global settings instance
settings = validate_environment()


if __name__ == "__main__":
    """Test configuration loading."""
    print("✅ Environment configuration validated successfully!")
    print("\nConfiguration Summary:")
    print(f"  App: {settings.app_name} v{settings.app_version}")
    print(f"  Environment: {settings.environment}")
    print(f"  Debug: {settings.debug}")
    print(f"  Log Level: {settings.log_level}")
    print(f"  Server: {settings.host}:{settings.port}")
    print(f"  Database: {settings.database_url.split('@')[1] if '@' in settings.database_url else settings.database_url}")
    print(f"  Rate Limits: {settings.default_rate_limit_per_minute}/min, {settings.default_rate_limit_per_day}/day")
    print(f"  Warning Thresholds: {settings.usage_warning_thresholds}")
    print(f"  Notifications: {settings.notification_url or 'disabled'}")
