"""Environment-driven configuration with Pydantic v2."""

from functools import lru_cache
from typing import List, Literal, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from constants import (
    DEFAULT_TIMEOUT_MS,
    DEFAULT_RETRY_COUNT,
    DEFAULT_RETRY_DELAY_MS,
)


class Settings(BaseSettings):
    """Application settings driven entirely by environment variables."""

    # Server Configuration
    host: str = Field(default="127.0.0.1", env="HOST")
    port: int = Field(default=3010, env="PORT", ge=1024, le=65535)
    debug: bool = Field(default=False, env="DEBUG")

    # Security
    cors_origins: str = Field(default="http://localhost:3000", env="CORS_ORIGINS")

    # Execution Engine
    node_timeout_ms: int = Field(default=DEFAULT_TIMEOUT_MS, env="NODE_TIMEOUT_MS", ge=1)
    node_retry_count: int = Field(default=DEFAULT_RETRY_COUNT, env="NODE_RETRY_COUNT", ge=0, le=10)
    node_retry_delay_ms: int = Field(default=DEFAULT_RETRY_DELAY_MS, env="NODE_RETRY_DELAY_MS", ge=0)

    # HTTP action
    http_timeout_ms: int = Field(default=30000, env="HTTP_TIMEOUT_MS", ge=100)

    # Email action
    email_simulate: bool = Field(default=False, env="EMAIL_SIMULATE")
    smtp_host: Optional[str] = Field(default=None, env="SMTP_HOST")
    smtp_port: int = Field(default=587, env="SMTP_PORT", ge=1, le=65535)
    smtp_user: Optional[str] = Field(default=None, env="SMTP_USER")
    smtp_password: Optional[str] = Field(default=None, env="SMTP_PASSWORD")
    smtp_from: Optional[str] = Field(default=None, env="SMTP_FROM")
    smtp_secure: bool = Field(default=False, env="SMTP_SECURE")
    sendgrid_api_key: Optional[str] = Field(default=None, env="SENDGRID_API_KEY")

    # Credential encryption
    credential_encryption_key: str = Field(
        default="change-me-local-development-key-0000",
        env="CREDENTIAL_ENCRYPTION_KEY",
        min_length=16,
    )
    credential_salt: Optional[str] = Field(default=None, env="CREDENTIAL_SALT")

    # Webhook ingestion
    webhook_retention: int = Field(default=100, env="WEBHOOK_RETENTION", ge=1)

    # Logging
    log_level: str = Field(default="INFO", env="LOG_LEVEL")
    log_format: Literal["text", "json"] = Field(default="text", env="LOG_FORMAT")
    log_file: Optional[str] = Field(default=None, env="LOG_FILE")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    @property
    def cors_origin_list(self) -> List[str]:
        """CORS origins parsed from the comma-separated setting."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.debug

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }


@lru_cache()
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
