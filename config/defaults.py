"""
Configuration Defaults - Single source of truth for all default values.

Organization:
    - DatabaseDefaults: PostgreSQL connection and pool settings
    - BuildJobDefaults: Job type to runner mapping and local worker pool
    - ClusterDefaults: Remote cluster scheduler settings
    - PlatformDefaults: Platform callback delivery
    - AppDefaults: Environment, logging, storage backend

Usage:
    from config.defaults import DatabaseDefaults

    # In Pydantic Field definitions:
    port: int = Field(default=DatabaseDefaults.PORT, ...)
"""


# =============================================================================
# DATABASE DEFAULTS
# =============================================================================

class DatabaseDefaults:
    """
    Database configuration defaults.

    The engines table and advisory locks both live in APP_SCHEMA's database.
    """

    PORT = 5432
    APP_SCHEMA = "app"
    ENGINES_TABLE = "translation_engines"
    CONNECTION_TIMEOUT_SECONDS = 30
    MIN_CONNECTIONS = 1
    MAX_CONNECTIONS = 10

    # Lock waits longer than this raise DatabaseError (0 = wait forever)
    LOCK_TIMEOUT_SECONDS = 0

    # Slightly less than the 1-hour managed identity token lifetime
    POOL_MAX_LIFETIME_SECONDS = 55 * 60


# =============================================================================
# BUILD JOB DEFAULTS
# =============================================================================

class BuildJobDefaults:
    """
    Build job routing and local runner defaults.

    BUILD_JOB_RUNNERS format: comma-separated job_type=runner pairs.
    The default runs every stage in-process.
    """

    BUILD_JOB_RUNNERS = "cpu=local,gpu=local"
    LOCAL_RUNNER_WORKERS = 2
    LOCAL_RUNNER_MAX_ATTEMPTS = 3

    # Re-create local jobs for builds no runner holds (after a restart)
    LOCAL_RUNNER_RECOVER = True

    SHUTDOWN_TIMEOUT_SECONDS = 30.0
    ENGINE_TYPES = "nmt,smt_transfer"
    BUILD_FILES_ROOT = "./build_files"


# =============================================================================
# CLUSTER DEFAULTS
# =============================================================================

class ClusterDefaults:
    """
    Remote cluster scheduler defaults (ClearML-style REST API).
    """

    QUEUE = "default"
    MODEL_TYPE = "huggingface"
    PROJECT_PREFIX = "engines"
    DOCKER_IMAGE = "translation-engine-trainer:latest"
    POLL_INTERVAL_SECONDS = 10.0
    REQUEST_TIMEOUT_SECONDS = 30.0
    MAX_RETRIES = 3


# =============================================================================
# PLATFORM DEFAULTS
# =============================================================================

class PlatformDefaults:
    """
    Platform callback defaults.
    """

    TIMEOUT_SECONDS = 10.0
    MAX_RETRIES = 3
    RETRY_BASE_DELAY_SECONDS = 1.0


# =============================================================================
# APPLICATION DEFAULTS
# =============================================================================

class AppDefaults:
    """
    Application-wide defaults.

    Controls debug mode, logging and the storage backend.
    """

    DEBUG_MODE = False
    ENVIRONMENT = "dev"
    LOG_LEVEL = "INFO"

    # "postgres" for deployments, "memory" for single-process standalone runs
    STORAGE_BACKEND = "postgres"
