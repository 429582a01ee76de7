"""
Environment configuration for the wellness lending system.
Uses Pydantic's settings management to handle environment variables
with proper type validation and default values.

Lending policy (loan limits, timeouts, penalties) is *not* configured here:
it lives in the ``system_settings`` table and is read through
``PolicySettingsService``. ``DEFAULT_POLICY_OVERRIDES`` only replaces the
built-in defaults used when a key has never been stored.
"""

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file if it exists
env_path = Path(".") / ".env"
load_dotenv(dotenv_path=env_path)


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
        populate_by_name=True,
    )

    # Application configuration
    APP_NAME: str = Field(default="Wellness Resource Lending", alias="PROJECT_NAME")
    API_VERSION: str = Field(default="v1", alias="PROJECT_VERSION")
    API_V1_STR: str = "/api/v1"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    CORS_ORIGINS: List[str] = Field(default=["*"], alias="BACKEND_CORS_ORIGINS")

    # Server
    HOST: str = "127.0.0.1"
    PORT: int = 8000

    # Database configuration
    DATABASE_URL: str = "sqlite:///./wellness_lending.db"
    DB_ECHO: bool = False
    DB_POOL_SIZE: int = 10
    DB_POOL_OVERFLOW: int = 5

    # Monitoring and logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False
    LOG_DIR: Optional[str] = None

    # Lending policy defaults applied before the system_settings table
    DEFAULT_POLICY_OVERRIDES: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: Union[str, List[str]]) -> List[str]:
        """Parse CORS_ORIGINS from string to list"""
        if isinstance(v, str):
            if v.startswith("[") and v.endswith("]"):
                try:
                    return json.loads(v)
                except json.JSONDecodeError:
                    pass
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("DEFAULT_POLICY_OVERRIDES", mode="before")
    @classmethod
    def parse_policy_overrides(cls, v: Union[str, Dict[str, Any], None]) -> Dict[str, Any]:
        """Accept the overrides as a JSON object string."""
        if v is None or v == "":
            return {}
        if isinstance(v, str):
            try:
                parsed = json.loads(v)
            except json.JSONDecodeError as e:
                raise ValueError(f"DEFAULT_POLICY_OVERRIDES is not valid JSON: {e}") from e
            if not isinstance(parsed, dict):
                raise ValueError("DEFAULT_POLICY_OVERRIDES must be a JSON object")
            return parsed
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid LOG_LEVEL: {v}")
        return level

    def is_development(self) -> bool:
        return self.ENVIRONMENT.lower() in {"development", "dev", "local"}

    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")


@lru_cache()
def get_settings() -> Settings:
    """Return the cached settings instance."""
    return Settings()


settings = get_settings()
