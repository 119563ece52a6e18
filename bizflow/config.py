"""
Application Configuration

Centralized configuration management using Pydantic settings.
Loads from environment variables with fallback to .env file.

Both halves of the package read from here: the FastAPI server
(database, JWT signing) and the client session layer (API base URL,
subscription cache TTL, encrypted storage).
"""
from typing import Optional
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Note: We use lru_cache on get_settings() to ensure we only load
    configuration once. Tests that need different values should build
    a Settings() directly instead of mutating the cached one.
    """

    # Database settings
    DATABASE_URL: str = "postgresql://localhost/bizflow_dev"
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 40

    # Security settings
    SECRET_KEY: str = "dev-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 30
    STEP_UP_TOKEN_EXPIRE_MINUTES: int = 5

    # Application settings
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Client session layer
    API_BASE_URL: str = "http://localhost:8000"
    API_TIMEOUT_SECONDS: float = 15.0
    SUBSCRIPTION_CACHE_TTL_SECONDS: int = 300
    TOKEN_EXPIRY_SKEW_SECONDS: int = 30

    # Encrypted client storage
    # STORAGE_DIR unset = in-memory storage (nothing survives a restart)
    STORAGE_DIR: Optional[str] = None
    STORAGE_ENCRYPTION_KEY: str = "dev-storage-key-change-in-production"

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache ensures we only instantiate settings once.
    This is efficient but means settings are immutable at runtime.
    """
    return Settings()
