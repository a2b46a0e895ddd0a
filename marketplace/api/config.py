"""
API Configuration
Settings and configuration for FastAPI application.
"""

import json
from typing import Any, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class APISettings(BaseSettings):
    """
    API configuration settings.

    Load from environment variables with API_ prefix.
    """

    # API Info
    app_name: str = "Marketplace Search API"
    version: str = "0.1.0"
    description: str = "Extension search and relevance ranking"

    # Server settings
    host: str = Field(default="0.0.0.0", alias="API_HOST")
    port: int = Field(default=8000, alias="API_PORT")
    reload: bool = Field(default=False, alias="API_RELOAD")

    # CORS settings
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"], alias="API_CORS_ORIGINS"
    )
    cors_allow_credentials: bool = True
    cors_allow_methods: List[str] = ["*"]
    cors_allow_headers: List[str] = ["*"]

    # Pagination limits
    default_page_size: int = Field(default=20, alias="API_DEFAULT_PAGE_SIZE")
    max_page_size: int = Field(default=100, alias="API_MAX_PAGE_SIZE")

    # Logging
    log_level: str = Field(default="INFO", alias="API_LOG_LEVEL")

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: Any) -> List[str]:
        """Parse CORS origins from JSON string or list."""
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                # Fall back to comma-separated list
                return [origin.strip() for origin in v.split(",")]
        return v

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra fields in .env file
        env_prefix="",  # No prefix for environment variables
        validate_default=True,
        populate_by_name=True,  # Allow using both field name and alias for env vars
    )


# Global settings instance
_settings: Optional[APISettings] = None


def get_api_settings() -> APISettings:
    """Get global API settings (singleton)."""
    global _settings
    if _settings is None:
        _settings = APISettings()
    return _settings


def reset_api_settings() -> None:
    """Reset settings (useful for testing)."""
    global _settings
    _settings = None
