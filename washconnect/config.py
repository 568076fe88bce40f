# washconnect/config.py
from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from pathlib import Path
from functools import lru_cache


class Settings(BaseSettings):
    ENV: str = "development"

    # "memory" keeps everything in-process; "file" persists CSV tables under DATA_DIR
    STORAGE_BACKEND: str = "memory"
    DATA_DIR: Path = Path("data")
    ORDERS_FILE: str = "orders.csv"
    STATUS_UPDATES_FILE: str = "order_status_updates.csv"
    SERVICE_TYPES_FILE: str = "service_types.csv"

    # bearer tokens carrying the requester context
    JWT_SECRET: str = "dev-secret-change-me"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24

    ORDER_NUMBER_PREFIX: str = "WC-"
    ORDER_NUMBER_LENGTH: int = 5

    # comma separated list, e.g. CORS_ORIGINS=http://localhost:5173,https://wash.example
    CORS_ORIGINS: str = ""

    # Example .env:
    # STORAGE_BACKEND=file
    # DATA_DIR=./data

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    def cors_origins(self) -> list:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


@lru_cache()
def get_settings() -> Settings:
    """Return cached Settings instance."""
    return Settings()


settings = get_settings()
