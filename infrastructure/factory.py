"""
Repository Factory - Central Creation Point

Creates the storage-backed infrastructure for the configured backend:

    STORAGE_BACKEND=postgres  PostgreSQLEngineRepository + advisory locks
                              on one shared AsyncConnectionPool
    STORAGE_BACKEND=memory    InMemoryEngineRepository + asyncio locks
                              (single process, state lost on exit)

and the HTTP adapters (platform notifier, cluster client).

Exports:
    RepositoryFactory
"""

from typing import Optional, Tuple

import httpx

from config import AppConfig
from util_logger import LoggerFactory, ComponentType

from .cluster_client import ClusterClient
from .connection_pool import ConnectionPoolManager
from .distributed_lock import InMemoryReaderWriterLockFactory, PostgreSQLReaderWriterLockFactory
from .interface_repository import (
    IDistributedReaderWriterLockFactory,
    IEngineRepository,
    IPlatformService,
)
from .memory_repository import InMemoryEngineRepository
from .platform import HttpPlatformService, LoggingPlatformService
from .postgresql import PostgreSQLEngineRepository

logger = LoggerFactory.create_logger(ComponentType.FACTORY, "RepositoryFactory")


class RepositoryFactory:
    """
    Factory for creating infrastructure instances.

    Configuration-driven backend selection; callers only see the
    interfaces.
    """

    @staticmethod
    async def create_engine_store(
        config: AppConfig
    ) -> Tuple[IEngineRepository, IDistributedReaderWriterLockFactory]:
        """
        Create the engine repository and the matching lock factory.

        Both backends must agree: advisory locks only serialize processes
        that share the database the repository writes to.

        Returns:
            (engine repository, lock factory)
        """
        if config.storage_backend == "memory":
            logger.info("🏭 Creating in-memory engine store")
            return InMemoryEngineRepository(), InMemoryReaderWriterLockFactory()

        db_config = config.database
        logger.info(f"🏭 Creating PostgreSQL engine store ({db_config.host}/{db_config.database})")
        pool = await ConnectionPoolManager.get_pool(db_config)

        engines = PostgreSQLEngineRepository(pool, schema_name=db_config.app_schema)
        await engines.ensure_schema()

        lock_factory = PostgreSQLReaderWriterLockFactory(pool, db_config.lock_timeout_seconds)
        logger.info("✅ PostgreSQL engine store ready")
        return engines, lock_factory

    @staticmethod
    def create_platform_service(
        config: AppConfig,
        client: Optional[httpx.AsyncClient] = None
    ) -> IPlatformService:
        """HTTP notifier when a callback URL is configured, log-only otherwise."""
        if config.platform.is_configured:
            logger.info(f"📣 Platform callbacks to {config.platform.callback_url}")
            return HttpPlatformService(config.platform, client=client)
        logger.info("📣 No PLATFORM_CALLBACK_URL, build events are logged only")
        return LoggingPlatformService()

    @staticmethod
    def create_cluster_client(
        config: AppConfig,
        client: Optional[httpx.AsyncClient] = None
    ) -> Optional[ClusterClient]:
        """Cluster client, or None when the cluster is not configured."""
        if not config.cluster.is_configured:
            return None
        return ClusterClient(config.cluster, client=client)

    @staticmethod
    async def close() -> None:
        """Release the shared connection pool, if one was opened."""
        await ConnectionPoolManager.close_pool()
