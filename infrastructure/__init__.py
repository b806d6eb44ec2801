"""
Infrastructure Package - Lazy Loading Implementation.

Provides the repository, lock, runner and notifier implementations with
lazy loading, so importing the package never opens a pool, reads the
environment or pulls in psycopg/httpx until a class is actually used.

    from infrastructure import InMemoryEngineRepository   # imports memory_repository only

Import the interfaces directly (infrastructure.interface_repository) when
only the ABCs are needed.
"""

from typing import TYPE_CHECKING

# For type checking only - doesn't actually import at runtime
if TYPE_CHECKING:
    from .factory import RepositoryFactory as _RepositoryFactory
    from .postgresql import PostgreSQLEngineRepository as _PostgreSQLEngineRepository
    from .memory_repository import InMemoryEngineRepository as _InMemoryEngineRepository
    from .connection_pool import ConnectionPoolManager as _ConnectionPoolManager
    from .distributed_lock import (
        PostgreSQLReaderWriterLockFactory as _PostgreSQLReaderWriterLockFactory,
        InMemoryReaderWriterLockFactory as _InMemoryReaderWriterLockFactory,
    )
    from .local_runner import LocalBuildJobRunner as _LocalBuildJobRunner
    from .cluster_runner import ClusterBuildJobRunner as _ClusterBuildJobRunner
    from .cluster_client import ClusterClient as _ClusterClient
    from .platform import (
        HttpPlatformService as _HttpPlatformService,
        LoggingPlatformService as _LoggingPlatformService,
    )


_LAZY_EXPORTS = {
    # Factory - most common import
    "RepositoryFactory": ".factory",

    # Engine repositories
    "PostgreSQLEngineRepository": ".postgresql",
    "InMemoryEngineRepository": ".memory_repository",
    "ConnectionPoolManager": ".connection_pool",

    # Locks
    "PostgreSQLReaderWriterLockFactory": ".distributed_lock",
    "InMemoryReaderWriterLockFactory": ".distributed_lock",

    # Runners
    "LocalBuildJobRunner": ".local_runner",
    "ClusterBuildJobRunner": ".cluster_runner",
    "NmtClusterBuildJobFactory": ".cluster_runner",
    "ClusterClient": ".cluster_client",

    # Platform notifiers
    "HttpPlatformService": ".platform",
    "LoggingPlatformService": ".platform",

    # Interfaces
    "IEngineRepository": ".interface_repository",
    "IBuildJobRunner": ".interface_repository",
    "IDistributedReaderWriterLockFactory": ".interface_repository",
    "IPlatformService": ".interface_repository",
}


def __getattr__(name: str):
    """
    Lazy import mechanism - only imports when actually accessed.
    """
    module_name = _LAZY_EXPORTS.get(name)
    if module_name is None:
        raise AttributeError(f"module 'infrastructure' has no attribute '{name}'")

    import importlib
    module = importlib.import_module(module_name, __name__)
    return getattr(module, name)


__all__ = list(_LAZY_EXPORTS)
