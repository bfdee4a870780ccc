from typing import Any
from urllib.parse import quote_plus

from pydantic import Field, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables and `.env`.
    """

    # API Configuration
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "ARIS CRM API"
    PROJECT_DESCRIPTION: str = "CRM backend for organizations, contacts, email accounts and follow-up tracking"
    VERSION: str = "0.1.0"
    CORS_ORIGINS: list[str] = Field(
        default=["http://localhost:3000"], description="Allowed CORS origins outside of debug mode"
    )

    # PostgreSQL Database Settings
    DB_HOST: str = Field("localhost", description="PostgreSQL host")
    DB_PORT: int = Field(5432, description="PostgreSQL port")
    DB_NAME: str = Field("aris_crm", description="Database name")
    DB_USER: str = Field("postgres", description="Database user")
    DB_PASSWORD: str | None = Field(None, description="Database password")
    DB_ECHO: bool = Field(False, description="Log SQL queries (debug only)")

    # Database connection pool settings
    DB_POOL_SIZE: int = Field(20, description="Connection pool size")
    DB_MAX_OVERFLOW: int = Field(30, description="Max pool overflow")
    DB_POOL_RECYCLE: int = Field(3600, description="Recycle connections every N seconds")
    DB_POOL_TIMEOUT: int = Field(30, description="Timeout waiting for a pooled connection")

    # Redis Settings
    REDIS_HOST: str = Field("localhost", description="Redis host")
    REDIS_PORT: int = Field(6379, description="Redis port")
    REDIS_DB: int = Field(0, description="Redis database index")
    REDIS_PASSWORD: str | None = Field(None, description="Redis password")
    REDIS_CONNECT_RETRIES: int = Field(3, description="Connection attempts before using the in-memory fallback")

    # JWT Settings
    JWT_SECRET_KEY: str = Field(..., description="Secret key used to sign JWTs")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(30, description="Access token lifetime in minutes")
    REFRESH_TOKEN_EXPIRE_DAYS: int = Field(7, description="Refresh token lifetime in days")

    # Google OAuth
    GOOGLE_CLIENT_ID: str | None = Field(None, description="Google OAuth client id")
    GOOGLE_CLIENT_SECRET: str | None = Field(None, description="Google OAuth client secret")
    GOOGLE_REDIRECT_URI: str = Field(
        "http://localhost:8001/api/v1/auth/google/callback", description="OAuth redirect URI registered in Google"
    )

    # Ollama (AI drafts)
    OLLAMA_API_URL: str = Field("http://localhost:11434", description="Ollama service URL")
    OLLAMA_API_MODEL: str = Field("llama3.2:latest", description="Model used for follow-up drafts")
    OLLAMA_REQUEST_TIMEOUT: int = Field(60, description="LLM request timeout in seconds")
    AI_DRAFTS_ENABLED: bool = Field(True, description="Use the LLM for drafts (templates only when False)")

    # File Upload Settings
    MEDIA_ROOT: str = Field("media", description="Directory for uploaded files")
    MAX_LOGO_SIZE: int = Field(2 * 1024 * 1024, description="Max logo size in bytes (2MB)")
    ALLOWED_LOGO_TYPES: list[str] = Field(
        default=["image/png", "image/jpeg", "image/svg+xml", "image/webp"],
        description="Accepted logo content types",
    )

    # Follow-up defaults
    FOLLOWUP_DEFAULT_DAYS: int = Field(3, description="Days after sending before a follow-up is due")
    FOLLOWUP_OVERDUE_AFTER_HOURS: int = Field(24, description="Hours past due before a follow-up is overdue")
    FOLLOWUP_SCHEDULER_ENABLED: bool = Field(True, description="Run the follow-up background jobs")
    FOLLOWUP_SCHEDULER_INTERVAL_MINUTES: int = Field(15, description="Minutes between follow-up job runs")
    FOLLOWUP_TIMEZONE: str = Field("Europe/Ljubljana", description="Timezone for the follow-up scheduler")

    # Credential encryption (pgcrypto)
    CREDENTIAL_ENCRYPTION_KEY: str | None = Field(None, description="Symmetric key for email account passwords")

    # Application Settings
    DEBUG: bool = Field(False, description="Debug mode")
    ENVIRONMENT: str = Field("production", description="Runtime environment")

    # Sentry Configuration
    SENTRY_DSN: str | None = Field(None, description="Sentry DSN for error tracking")

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def __init__(self, **data: Any):
        super().__init__(**data)

    @field_validator("CORS_ORIGINS", "ALLOWED_LOGO_TYPES", mode="before")
    @classmethod
    def parse_csv_list(cls, value):
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @field_validator("DB_POOL_SIZE")
    @classmethod
    def validate_pool_size(cls, v):
        if v < 1:
            raise ValueError("DB_POOL_SIZE must be at least 1")
        if v > 100:
            raise ValueError("DB_POOL_SIZE should not exceed 100")
        return v

    @field_validator("DB_MAX_OVERFLOW")
    @classmethod
    def validate_max_overflow(cls, v):
        if v < 0:
            raise ValueError("DB_MAX_OVERFLOW must be 0 or greater")
        if v > 200:
            raise ValueError("DB_MAX_OVERFLOW should not exceed 200")
        return v

    @field_validator("FOLLOWUP_DEFAULT_DAYS", "FOLLOWUP_SCHEDULER_INTERVAL_MINUTES")
    @classmethod
    def validate_positive(cls, v):
        if v < 1:
            raise ValueError("value must be at least 1")
        return v

    @computed_field
    @property
    def database_url(self) -> str:
        """Synchronous PostgreSQL URL (psycopg), used by Alembic."""
        return self._build_db_url("postgresql+psycopg")

    @computed_field
    @property
    def async_database_url(self) -> str:
        """Async PostgreSQL URL (asyncpg), used by the application."""
        return self._build_db_url("postgresql+asyncpg")

    @computed_field
    @property
    def redis_url(self) -> str:
        if self.REDIS_PASSWORD:
            return f"redis://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    @computed_field
    @property
    def is_development(self) -> bool:
        return self.DEBUG or self.ENVIRONMENT.lower() in ["development", "dev", "local", "test"]

    def _build_db_url(self, driver: str) -> str:
        if not self.DB_NAME:
            raise ValueError("Database name is required (DB_NAME)")
        user = quote_plus(self.DB_USER)
        if self.DB_PASSWORD:
            return f"{driver}://{user}:{quote_plus(self.DB_PASSWORD)}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        return f"{driver}://{user}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"


# Cached settings instance
_settings_instance = None


def get_settings() -> Settings:
    """
    Return the cached settings instance so the environment is read once.
    """
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
