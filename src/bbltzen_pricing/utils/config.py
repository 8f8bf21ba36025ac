"""
Configuration utilities for the BBltZen pricing engine.
"""

import os
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv


class Config:
    """Configuration manager for the pricing engine."""

    def __init__(self, env_file: Optional[str] = None, **overrides: Any) -> None:
        """Initialize configuration.

        If an env_file path is provided, load environment variables from it.
        Otherwise, do not auto-load a .env file to keep defaults predictable.
        Keyword overrides win over both environment and defaults.
        """
        self.env_file = env_file
        self._load_environment()
        self._config = self._load_config()
        self._config.update(overrides)

    def _load_environment(self) -> None:
        """Load environment variables from explicit .env file if provided."""
        if not self.env_file:
            return
        env_path = Path(self.env_file)
        if env_path.exists():
            load_dotenv(env_path)

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from environment variables."""
        return {
            # Core settings
            "log_level": self._get_str("LOG_LEVEL", default="INFO"),
            # MongoDB settings for catalog and order stores
            "mongo_url": self._get_str("DB_CONNECTION_URL", default=""),
            "mongo_db": self._get_str("DB_NAME", default="BBLTZEN"),
            # Pricing settings
            "default_tax_rate": self._get_decimal("DEFAULT_TAX_RATE", default="22.00"),
            "total_tolerance": self._get_decimal("TOTAL_TOLERANCE", default="0.01"),
            "price_tolerance": self._get_decimal("PRICE_TOLERANCE", default="0.05"),
            # Cache TTLs, in seconds
            "ttl_tax_rates": self._get_int("CACHE_TTL_TAX_RATES", default=24 * 3600),
            "ttl_catalog": self._get_int("CACHE_TTL_CATALOG", default=3600),
            "ttl_prices": self._get_int("CACHE_TTL_PRICES", default=30 * 60),
            "ttl_menu": self._get_int("CACHE_TTL_MENU", default=3600),
            "ttl_statistics": self._get_int("CACHE_TTL_STATISTICS", default=15 * 60),
            # Batch / validation settings
            "batch_max_workers": self._get_int("BATCH_MAX_WORKERS", default=4),
            "validation_policy": self._get_str("VALIDATION_POLICY", default="non_terminal"),
        }

    def _get_str(self, key: str, default: str = "") -> str:
        """Get string configuration value."""
        if self.env_file is None:
            return default
        return os.getenv(key, default)

    def _get_int(self, key: str, default: int = 0) -> int:
        """Get integer configuration value."""
        if self.env_file is None:
            return default
        try:
            return int(os.getenv(key, str(default)))
        except ValueError:
            return default

    def _get_decimal(self, key: str, default: str = "0") -> Decimal:
        """Get decimal configuration value."""
        if self.env_file is None:
            return Decimal(default)
        try:
            return Decimal(os.getenv(key, default))
        except InvalidOperation:
            return Decimal(default)

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value."""
        return self._config.get(key, default)

    def __getitem__(self, key: str) -> Any:
        """Get configuration value using bracket notation."""
        return self._config[key]

    def __contains__(self, key: str) -> bool:
        """Check if configuration key exists."""
        return key in self._config
