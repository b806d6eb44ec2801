"""
Configuration Package - Domain-Specific Configuration Modules

Structure:
    config/
    ├── __init__.py              # This file - exports and singleton
    ├── app_config.py            # Main config (composes domain configs)
    ├── database_config.py       # PostgreSQL engine store / advisory locks
    ├── build_job_config.py      # Job type -> runner routing
    ├── cluster_config.py        # Remote GPU scheduler
    ├── platform_config.py       # Build lifecycle callbacks
    └── defaults.py              # Default values

Usage:
    # Singleton pattern (preferred)
    from config import get_config
    config = get_config()
    runners = config.build_jobs.job_type_runners

    # Debug output
    from config import debug_config
    info = debug_config()  # Secrets masked
"""

from typing import Optional

from .database_config import DatabaseConfig
from .build_job_config import BuildJobConfig, parse_runner_mapping
from .cluster_config import ClusterConfig
from .platform_config import PlatformConfig
from .app_config import AppConfig


# ============================================================================
# SINGLETON PATTERN
# ============================================================================

_config_instance: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """
    Get global configuration singleton.

    Returns:
        AppConfig instance loaded from environment
    """
    global _config_instance
    if _config_instance is None:
        _config_instance = AppConfig.from_environment()
    return _config_instance


def reset_config() -> None:
    """Drop the cached singleton so the next get_config() re-reads the environment."""
    global _config_instance
    _config_instance = None


def debug_config() -> dict:
    """
    Get sanitized configuration for debugging (masks sensitive values).
    """
    return get_config().debug_dict()


__all__ = [
    "AppConfig",
    "DatabaseConfig",
    "BuildJobConfig",
    "ClusterConfig",
    "PlatformConfig",
    "parse_runner_mapping",
    "get_config",
    "reset_config",
    "debug_config",
]
