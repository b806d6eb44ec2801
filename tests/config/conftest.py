"""
Config test fixtures: clean environment via monkeypatch.
"""

import pytest

from config import reset_config


@pytest.fixture
def clean_env(monkeypatch):
    """Remove all env vars that config modules might read, for isolation."""
    env_vars_to_clear = [
        "STORAGE_BACKEND", "ENVIRONMENT", "DEBUG_MODE", "LOG_LEVEL",
        "POSTGRES_HOST", "POSTGRES_PORT", "POSTGRES_USER", "POSTGRES_PASSWORD",
        "POSTGRES_DATABASE", "APP_SCHEMA", "USE_MANAGED_IDENTITY",
        "DB_MANAGED_IDENTITY_CLIENT_ID", "DB_POOL_MIN", "DB_POOL_MAX",
        "DB_CONNECTION_TIMEOUT", "LOCK_TIMEOUT_SECONDS",
        "BUILD_JOB_RUNNERS", "LOCAL_RUNNER_WORKERS", "LOCAL_RUNNER_MAX_ATTEMPTS", "LOCAL_RUNNER_RECOVER",
        "SHUTDOWN_TIMEOUT_SECONDS", "ENGINE_TYPES", "BUILD_FILES_ROOT",
        "CLUSTER_API_URL", "CLUSTER_ACCESS_KEY", "CLUSTER_SECRET_KEY", "CLUSTER_QUEUE",
        "CLUSTER_MODEL_TYPE", "CLUSTER_PROJECT_PREFIX", "CLUSTER_DOCKER_IMAGE",
        "CLUSTER_SHARED_FILE_URI", "CLUSTER_POLL_INTERVAL", "CLUSTER_REQUEST_TIMEOUT",
        "CLUSTER_MAX_RETRIES",
        "PLATFORM_CALLBACK_URL", "PLATFORM_API_KEY", "PLATFORM_TIMEOUT_SECONDS",
        "PLATFORM_MAX_RETRIES", "PLATFORM_RETRY_BASE_DELAY",
    ]
    for var in env_vars_to_clear:
        monkeypatch.delenv(var, raising=False)
    reset_config()
    yield monkeypatch
    reset_config()
