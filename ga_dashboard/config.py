"""
Configuration management using pydantic-settings.
All settings loaded from environment variables (12-factor app).
"""

from functools import lru_cache
from typing import List

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

    # Google Analytics 4
    ga_property_id: str = Field(default="", description="GA4 property ID (numeric)")
    ga_service_account_base64: str = Field(
        default="", description="Base64-encoded service account JSON (production)"
    )
    ga_key_file_path: str = Field(
        default="", description="Path to service account JSON key file (local dev)"
    )
    site_hostname: str = Field(
        default="proteinbarnerd.com",
        description="Site's own hostname, used to tell internal referrers apart",
    )
    report_timeout_seconds: float = Field(
        default=30.0, gt=0, description="Deadline for all report queries of one request"
    )

    # Security
    admin_access_code: str = Field(default="0000", description="4-digit dashboard access code")
    jwt_secret: str = Field(
        default="change-this-to-a-secure-random-string-in-production",
        description="JWT signing secret",
    )
    jwt_algorithm: str = Field(default="HS256", description="JWT algorithm")
    jwt_expiration_minutes: int = Field(default=1440, description="JWT expiration (24h)")

    # API
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")
    api_reload: bool = Field(default=True, description="Enable hot reload")
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="CORS allowed origins (comma-separated)",
    )

    # Logging
    log_level: str = Field(default="info", description="Log level")
    log_format: str = Field(default="json", description="Log format (json|console)")

    # Development
    dev_mode: bool = Field(default=True, description="Development mode")
    testing: bool = Field(default=False, description="Testing mode")

    @field_validator("admin_access_code")
    @classmethod
    def validate_access_code(cls, v: str) -> str:
        """Access code must be exactly four digits."""
        if len(v) != 4 or not v.isdigit():
            raise ValueError("admin_access_code must be a 4-digit code")
        return v

    @field_validator("cors_origins")
    @classmethod
    def parse_cors_origins(cls, v: str) -> List[str]:
        """Parse comma-separated CORS origins."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to ensure singleton behavior.
    """
    return Settings()
