"""
Configuration Management

Simple utility for loading and validating environment configuration.
"""

import logging
import os
from typing import Optional
from dotenv import load_dotenv

from config import Config


def load_config(env_path: Optional[str] = None) -> bool:
    """
    Load environment configuration from .env file.

    Args:
        env_path: Optional path to .env file. If None, searches in current directory.

    Returns:
        bool: True if .env file was found and loaded, False otherwise
    """
    if env_path:
        return load_dotenv(env_path)
    return load_dotenv()


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure root logging with the standard application format.

    Args:
        level: Log level name. Defaults to Config.LOG_LEVEL.
    """
    level_name = (level or Config.LOG_LEVEL).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def get_database_config() -> dict:
    """
    Get MES database configuration.

    Returns:
        dict: Database configuration

    Raises:
        ValueError: If required configuration is missing
    """
    config = {
        "host": os.getenv("MESDB_HOST"),
        "port": os.getenv("MESDB_PORT", "5432"),
        "database": os.getenv("MESDB_NAME"),
        "user": os.getenv("MESDB_USER"),
        "password": os.getenv("MESDB_PASS"),
    }

    # Validate
    missing = [k for k, v in config.items() if not v]
    if missing:
        raise ValueError(
            f"Missing MES database configuration: {missing}. "
            f"Please check your .env file."
        )

    return config


def get_app_config() -> dict:
    """
    Get application configuration settings.

    Returns:
        dict: Application settings
    """
    return {
        "timezone": Config.TIMEZONE,
        "default_window_days": int(os.getenv("DEFAULT_WINDOW_DAYS", "30")),
        "cache_ttl_seconds": int(os.getenv("CACHE_TTL_SECONDS", "3600")),
        "rate_ceiling": float(os.getenv("RATE_CEILING", "1000")),
        "min_mo_duration_seconds": float(os.getenv("MIN_MO_DURATION_SECONDS", "0")),
        "max_workers": int(os.getenv("MAX_WORKERS", "1")),
    }


def validate_config() -> list:
    """
    Validate all required configuration is present.

    Returns:
        list: List of missing configuration items (empty if all valid)
    """
    missing = []

    try:
        get_database_config()
    except ValueError as e:
        missing.append(f"MES: {str(e)}")

    return missing
