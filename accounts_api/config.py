"""Configuration settings for the Consumer Accounts Internal API."""
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings

FIXTURES_DIR = Path(__file__).resolve().parent / "fixtures"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Service identification
    service_name: str = "consumer-accounts-internal-api"
    app_name: str = "EA Financial - Consumer Accounts Internal API"
    version: str = "1.0.0"

    # Storage
    # "memory" keeps the fixtures in process; "database" seeds them into SQL
    fixtures_dir: Path = FIXTURES_DIR
    storage_backend: Literal["memory", "database"] = "memory"
    database_url: str = "sqlite://"

    # Authorization
    auth_strategy: Literal["local", "delegated"] = "local"
    policy_url: str = "http://localhost:8181"
    policy_timeout_seconds: float = 5.0
    token_ttl_seconds: int = 24 * 60 * 60

    # Transaction history pagination
    default_page_size: int = 10
    max_page_size: int = 100

    cors_allow_origins: list[str] = ["*"]

    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
