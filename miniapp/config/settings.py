from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class Settings(BaseSettings):
    # API
    api_title: str = "Mini-app Catalog API"
    api_version: str = "1.0.0"
    api_prefix: str = "/api/v1"

    # Development
    debug: bool = False
    log_level: str = "INFO"

    # Persistence endpoint storage (the remote source of truth)
    config_file_path: str = "./data/config.json"

    # Local durable cache
    cache_database_url: str = "duckdb://./data/miniapp_cache.duckdb"

    # Remote endpoint seen from the client core
    remote_config_url: Optional[str] = "http://localhost:8000/api/v1/config"
    remote_timeout_seconds: float = 5.0

    # Cart bounds
    max_cart_lines: int = 50
    max_item_quantity: float = 1000
    max_total_price: float = 10000

    # Used when the snapshot has no admin.telegram_username
    default_restaurant_username: str = "restaurant"

    model_config = SettingsConfigDict(
        env_prefix="MINIAPP_",
        env_file=".env",
        case_sensitive=False,
    )

    @property
    def cache_database_path(self) -> str:
        """DuckDB path without the duckdb:// scheme"""
        if self.cache_database_url.startswith("duckdb://"):
            return self.cache_database_url.replace("duckdb://", "", 1)
        return self.cache_database_url


# Global settings instance
settings = Settings()
