"""
Runtime Configuration
=====================

Settings for the traceability backend, read from the environment.
A local .env file is loaded first so development machines can override
defaults without exporting variables.
"""

import os
from typing import List

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """Configuration for the API process."""

    # Database connection settings
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./packtrace.db")
    SQL_ECHO: bool = _env_bool("SQL_ECHO", False)

    # Logging settings
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Every request is aborted after this many seconds
    REQUEST_TIMEOUT_SECONDS: float = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "30"))

    # Barcode timestamps are written in plant local time
    PLANT_TIMEZONE: str = os.getenv("PLANT_TIMEZONE", "Asia/Kolkata")

    # Finalizing a batch with only some of the requested staged items:
    # False rejects the request, True logs a warning and finalizes the subset
    FINALIZE_ALLOW_PARTIAL: bool = _env_bool("FINALIZE_ALLOW_PARTIAL", False)

    # What happens to a stock unit when its producing roll/pack is deleted:
    # "delete" removes the row, "flag" keeps it as consumed
    STOCK_REVERSAL_MODE: str = os.getenv("STOCK_REVERSAL_MODE", "delete")

    # Create the default admin user on startup
    SEED_ADMIN: bool = _env_bool("SEED_ADMIN", True)

    DEFAULT_CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:3001",
    ]

    @classmethod
    def cors_origins(cls) -> List[str]:
        """Default frontend origins plus any listed in CORS_ORIGINS."""
        origins = list(cls.DEFAULT_CORS_ORIGINS)
        env_origins = os.getenv("CORS_ORIGINS", "")
        if env_origins:
            origins.extend([origin.strip() for origin in env_origins.split(",") if origin.strip()])
        return origins

    @classmethod
    def validate(cls) -> None:
        if cls.STOCK_REVERSAL_MODE not in ("delete", "flag"):
            raise ValueError(
                f"STOCK_REVERSAL_MODE must be 'delete' or 'flag', got '{cls.STOCK_REVERSAL_MODE}'"
            )
        if cls.REQUEST_TIMEOUT_SECONDS <= 0:
            raise ValueError("REQUEST_TIMEOUT_SECONDS must be positive")


settings = Settings()
