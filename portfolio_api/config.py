"""
Portfolio API - Settings.

Service settings are read from the environment; a local .env
file is loaded first when present.
"""

import os
from dataclasses import dataclass, field
from typing import List

from dotenv import load_dotenv

from core.exceptions import ConfigurationError
from position_ledger.config import PriceCacheConfig, load_config_from_dict
from storage.database import DEFAULT_DATABASE_URL


@dataclass
class ApiSettings:
    """Portfolio API settings."""

    database_url: str = DEFAULT_DATABASE_URL
    database_echo: bool = False

    price_cache_ttl_seconds: float = 30.0
    """How long a resolved price is reused."""

    negative_price_cache_ttl_seconds: float = 60.0
    """How long a failed price lookup is remembered."""

    price_cache_max_entries: int = 10_000
    """Keys kept per price cache."""

    api_host: str = "0.0.0.0"
    api_port: int = 8000
    environment: str = "development"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    @classmethod
    def from_env(cls) -> "ApiSettings":
        """Load settings from environment variables."""
        load_dotenv()
        try:
            return cls(
                database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
                database_echo=os.getenv("DATABASE_ECHO", "false").lower() == "true",
                price_cache_ttl_seconds=float(os.getenv("PRICE_CACHE_TTL_SECONDS", "30")),
                negative_price_cache_ttl_seconds=float(
                    os.getenv("NEGATIVE_PRICE_CACHE_TTL_SECONDS", "60")
                ),
                price_cache_max_entries=int(os.getenv("PRICE_CACHE_MAX_ENTRIES", "10000")),
                api_host=os.getenv("API_HOST", "0.0.0.0"),
                api_port=int(os.getenv("API_PORT", "8000")),
                environment=os.getenv("ENVIRONMENT", "development"),
                cors_origins=[
                    origin.strip()
                    for origin in os.getenv("CORS_ORIGINS", "*").split(",")
                    if origin.strip()
                ],
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid API setting: {e}") from e

    def price_cache_config(self) -> PriceCacheConfig:
        """
        Validated cache section of the ledger configuration.

        Raises:
            ConfigurationError: On negative TTLs or a non-positive size
        """
        return load_config_from_dict({
            "price_cache": {
                "price_ttl_seconds": self.price_cache_ttl_seconds,
                "negative_ttl_seconds": self.negative_price_cache_ttl_seconds,
                "max_entries": self.price_cache_max_entries,
            },
        }).price_cache

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"
