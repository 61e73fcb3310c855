"""
Application configuration using pydantic-settings.
Loads from environment variables / .env file.
"""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )
    
    # Application
    app_name: str = "shipsync"
    app_env: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    
    # API Server
    host: str = "0.0.0.0"
    port: int = 8000
    base_url: str = "http://localhost:8000"
    
    # Session store (SQLite by default, Postgres via asyncpg)
    database_url: str = "sqlite+aiosqlite:///./data/shipsync.db"
    
    # MPGS hosted checkout
    mpgs_merchant_id: str = ""
    mpgs_api_password: str = ""
    mpgs_api_base_url: str = ""
    mpgs_api_version: str = "70"
    mpgs_merchant_name: str = "Kifgo"
    mpgs_currency: str = "LKR"
    
    # IPG webhook
    ipg_webhook_secret: str = ""
    
    # Pronto Lanka carrier
    pronto_api_base_url: str = "https://uat-api.prontolanka.lk:18443/PR_API.aspx"
    pronto_api_username: str = "apiuatuser"
    pronto_api_password: str = ""
    pronto_customer_code: str = "A001"
    pronto_timeout_seconds: float = 45.0
    pronto_connect_timeout_seconds: float = 30.0
    
    @property
    def is_development(self) -> bool:
        return self.app_env == "development"
    
    @property
    def is_production(self) -> bool:
        return self.app_env == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
