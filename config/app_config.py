"""
Main Application Configuration.

Composes domain-specific configuration modules:
    - DatabaseConfig (PostgreSQL engine store and advisory locks)
    - BuildJobConfig (job type -> runner routing, local worker pool)
    - ClusterConfig (remote GPU scheduler)
    - PlatformConfig (build lifecycle callbacks)

Exports:
    AppConfig: Main configuration class

Pattern:
    Composition over inheritance - domain configs are composed, not inherited.
"""

import os
from typing import Optional
from pydantic import BaseModel, Field, field_validator, model_validator

from .defaults import AppDefaults
from .database_config import DatabaseConfig
from .build_job_config import BuildJobConfig
from .cluster_config import ClusterConfig
from .platform_config import PlatformConfig

STORAGE_BACKENDS = ("postgres", "memory")


class AppConfig(BaseModel):
    """
    Application configuration - composition of domain configs.

    The database section is only required (and only loaded) for the
    postgres storage backend.
    """

    # Core settings
    debug_mode: bool = Field(default=AppDefaults.DEBUG_MODE)
    environment: str = Field(default=AppDefaults.ENVIRONMENT)
    log_level: str = Field(default=AppDefaults.LOG_LEVEL)
    storage_backend: str = Field(
        default=AppDefaults.STORAGE_BACKEND,
        description="Engine store and lock provider: postgres | memory"
    )

    # Domain configs
    database: Optional[DatabaseConfig] = None
    build_jobs: BuildJobConfig = Field(default_factory=BuildJobConfig)
    cluster: ClusterConfig = Field(default_factory=ClusterConfig)
    platform: PlatformConfig = Field(default_factory=PlatformConfig)

    @field_validator("storage_backend")
    @classmethod
    def _validate_backend(cls, value: str) -> str:
        value = value.lower()
        if value not in STORAGE_BACKENDS:
            raise ValueError(f"STORAGE_BACKEND must be one of {STORAGE_BACKENDS}, got '{value}'")
        return value

    @model_validator(mode="after")
    def _check_sections(self) -> "AppConfig":
        if self.storage_backend == "postgres" and self.database is None:
            raise ValueError("postgres storage backend requires database settings (POSTGRES_HOST, POSTGRES_DATABASE)")
        if self.build_jobs.uses_cluster and not self.cluster.is_configured:
            raise ValueError("BUILD_JOB_RUNNERS routes to 'cluster' but CLUSTER_API_URL/CLUSTER_ACCESS_KEY/CLUSTER_SECRET_KEY are not set")
        return self

    def debug_dict(self) -> dict:
        """Sanitized configuration for logging (secrets masked)."""
        return {
            "environment": self.environment,
            "debug_mode": self.debug_mode,
            "log_level": self.log_level,
            "storage_backend": self.storage_backend,
            "database": self.database.debug_dict() if self.database else None,
            "build_jobs": self.build_jobs.model_dump(),
            "cluster": self.cluster.debug_dict(),
            "platform": {
                "callback_url": self.platform.callback_url,
                "max_retries": self.platform.max_retries,
            },
        }

    @classmethod
    def from_environment(cls):
        """Load all configs from environment."""
        storage_backend = os.environ.get("STORAGE_BACKEND", AppDefaults.STORAGE_BACKEND).lower()
        return cls(
            debug_mode=os.environ.get("DEBUG_MODE", str(AppDefaults.DEBUG_MODE).lower()).lower() == "true",
            environment=os.environ.get("ENVIRONMENT", AppDefaults.ENVIRONMENT),
            log_level=os.environ.get("LOG_LEVEL", AppDefaults.LOG_LEVEL),
            storage_backend=storage_backend,

            # Domain configs
            database=DatabaseConfig.from_environment() if storage_backend == "postgres" else None,
            build_jobs=BuildJobConfig.from_environment(),
            cluster=ClusterConfig.from_environment(),
            platform=PlatformConfig.from_environment(),
        )
