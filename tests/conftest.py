"""
Root conftest.py: sys.path, env vars, shared fixtures.

Sets up the test environment so all production code can be imported
without a database, a cluster or platform callbacks.
"""

import os
import sys

import pytest

# Add project root to sys.path so 'core', 'jobs', 'config', etc. are importable
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)


@pytest.fixture(autouse=True, scope="session")
def set_minimal_env_vars():
    """
    Set minimal environment variables so get_config() builds an
    in-memory, all-local configuration.
    """
    defaults = {
        "STORAGE_BACKEND": "memory",
        "BUILD_JOB_RUNNERS": "cpu=local,gpu=local",
        "ENVIRONMENT": "dev",
    }
    for key, value in defaults.items():
        os.environ.setdefault(key, value)


@pytest.fixture
def engines():
    """Empty in-memory engine repository."""
    from infrastructure.memory_repository import InMemoryEngineRepository
    return InMemoryEngineRepository()


@pytest.fixture
def lock_factory():
    """In-process reader/writer lock factory."""
    from infrastructure.distributed_lock import InMemoryReaderWriterLockFactory
    return InMemoryReaderWriterLockFactory()


@pytest.fixture
def platform():
    """Platform notifier that records every event."""
    from tests.factories.fakes import RecordingPlatform
    return RecordingPlatform()


@pytest.fixture
def local_fake_runner():
    from core.models import BuildJobRunnerType
    from tests.factories.fakes import FakeRunner
    return FakeRunner(BuildJobRunnerType.LOCAL)


@pytest.fixture
def cluster_fake_runner():
    from core.models import BuildJobRunnerType
    from tests.factories.fakes import FakeRunner
    return FakeRunner(BuildJobRunnerType.CLUSTER)


@pytest.fixture
def registry(local_fake_runner, cluster_fake_runner):
    """cpu -> local, gpu -> cluster, both backed by fake runners."""
    from core.runner_registry import BuildJobRunnerRegistry
    return BuildJobRunnerRegistry(
        [local_fake_runner, cluster_fake_runner],
        {"cpu": "local", "gpu": "cluster"},
    )


@pytest.fixture
def build_job_service(registry, engines):
    from core.build_job_service import BuildJobService
    return BuildJobService(registry, engines)
