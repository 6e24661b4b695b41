# access_control/core/config.py
import os
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from .env"""

    # === Database ===
    DATABASE_URL: str = "sqlite+aiosqlite:///./access_control.db"
    DATABASE_ECHO: bool = False

    @field_validator("DATABASE_URL")
    @classmethod
    def validate_database_url(cls, v):
        """Ensure database URL is safe for current environment"""
        env = os.getenv("ENVIRONMENT", "development").lower()
        if env == "production" and "localhost" in v:
            raise ValueError("Production environment cannot use localhost database!")
        return v

    # === Redis (decision cache) ===
    REDIS_URL: str = "redis://localhost:6379/0"
    PERMISSION_CACHE_ENABLED: bool = False
    PERMISSION_CACHE_TTL_SECONDS: int = 300

    # === JWT (tokens are issued elsewhere, only verified here) ===
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"

    # === CORS ===
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]
    ALLOWED_METHODS: List[str] = ["*"]
    ALLOWED_HEADERS: List[str] = ["*"]

    # === RBAC ===
    # Action whose grant doubled as the sidebar visibility flag before
    # module_visibility existed.
    LEGACY_VISIBILITY_ACTION: str = "LEER"
    ADMIN_MODULE: str = "AJUSTES_RBAC"
    ADMIN_ACTION: str = "ADMINISTRAR_PERMISOS"

    # === System ===
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    DECISION_LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


# Create a global settings instance
settings = Settings()
