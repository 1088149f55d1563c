"""
Application Configuration Settings
CMS Identity and Access Backend
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Application
    APP_NAME: str = "AS-CMS Identity Service"
    APP_VERSION: str = "1.0.0"

    # Database
    DATABASE_URL: str = "sqlite:///./cms_auth.db"
    SEED_CATALOG_ON_STARTUP: bool = True

    # Authentication (JWT_SECRET_KEY has no default: startup fails without it)
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    JWT_ISSUER: str = "AS-CMS"
    JWT_AUDIENCE: str = "AS-CMS-Users"
    JWT_LEEWAY_SECONDS: int = 0
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    REFRESH_TOKEN_BYTES: int = 64

    # Passwords
    PASSWORD_MIN_LENGTH: int = 8
    BCRYPT_ROUNDS: int = 12
    RESET_PASSWORD_LENGTH: int = 16

    # Housekeeping
    REFRESH_TOKEN_RETENTION_DAYS: int = 30

    # Security
    ALLOWED_ORIGINS: List[str] = ["http://localhost:8000"]

    @field_validator("JWT_SECRET_KEY")
    @classmethod
    def _require_signing_key(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("JWT_SECRET_KEY must be set to a non-empty secret")
        return value

    @field_validator("ACCESS_TOKEN_EXPIRE_MINUTES", "REFRESH_TOKEN_EXPIRE_DAYS")
    @classmethod
    def _positive_lifetime(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("Token lifetimes must be positive")
        return value

    @field_validator("REFRESH_TOKEN_BYTES")
    @classmethod
    def _refresh_entropy(cls, value: int) -> int:
        if value < 48:
            raise ValueError("Refresh tokens need at least 48 bytes of entropy")
        return value

    @field_validator("RESET_PASSWORD_LENGTH")
    @classmethod
    def _reset_length(cls, value: int) -> int:
        if value < 12:
            raise ValueError("Generated passwords must be at least 12 characters")
        return value

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()

# Groups provisioned on demand; registration maps user types onto the first two
DEFAULT_GROUPS = {
    "Individual": "Default group for individual users",
    "Corporate": "Default group for corporate users",
    "Admin": "Administrator with full access",
}
