"""
Async Connection Pool Manager.

One psycopg_pool.AsyncConnectionPool per process, shared by the engine
repository and the advisory lock factory.

================================================================================
CONNECTION SETTINGS
================================================================================
Every pooled connection is:
    - autocommit (each repository statement is its own transaction;
      session advisory locks are independent of transactions)
    - dict_row (rows come back as dicts)
    - reset with pg_advisory_unlock_all() when returned, so a lock whose
      release was interrupted never leaks to the next borrower

================================================================================
TOKEN AUTHENTICATION
================================================================================
With USE_MANAGED_IDENTITY=true the password of every NEW connection is a
fresh Azure AD access token. Connections are recycled before the token
lifetime (1 hour) runs out via max_lifetime.

Exports:
    ConnectionPoolManager: Class with class methods for pool management
    acquire_postgres_token: Azure AD token for PostgreSQL
"""

import asyncio
import logging
from typing import Any, Optional

import psycopg
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from config import DatabaseConfig
from config.defaults import DatabaseDefaults

logger = logging.getLogger(__name__)

# OAuth scope for Azure Database for PostgreSQL
POSTGRES_SCOPE = "https://ossrdbms-aad.database.windows.net/.default"

# Timeout for draining connections on pool close (seconds)
POOL_CLOSE_TIMEOUT = 30.0


def acquire_postgres_token(db_config: DatabaseConfig) -> str:
    """
    Get PostgreSQL OAuth token using Managed Identity.

    Uses a user-assigned identity when a client id is configured,
    otherwise DefaultAzureCredential (system identity or az login).
    Blocking; call it from a worker thread.
    """
    from azure.identity import DefaultAzureCredential, ManagedIdentityCredential

    client_id = db_config.managed_identity_client_id
    if client_id:
        logger.debug(f"🔑 Using user-assigned Managed Identity: {client_id[:8]}...")
        credential = ManagedIdentityCredential(client_id=client_id)
    else:
        logger.debug("🔑 Using DefaultAzureCredential")
        credential = DefaultAzureCredential()

    token = credential.get_token(POSTGRES_SCOPE)
    logger.debug("✅ PostgreSQL token acquired")
    return token.token


class TokenAuthConnection(psycopg.AsyncConnection):
    """
    AsyncConnection that injects a managed identity token as password.

    The pool calls connect() for every new physical connection, so each
    one gets a token that is valid at connect time.
    """

    db_config: Optional[DatabaseConfig] = None

    @classmethod
    async def connect(cls, conninfo: str = "", **kwargs: Any) -> "TokenAuthConnection":
        if cls.db_config is None:
            raise RuntimeError("TokenAuthConnection.db_config is not set")
        kwargs["password"] = await asyncio.to_thread(acquire_postgres_token, cls.db_config)
        return await super().connect(conninfo, **kwargs)


class ConnectionPoolManager:
    """
    Process-wide async connection pool.

    Class-level state is used because:
    1. Pool should be shared across all repository instances
    2. Only one pool per process is needed

    Usage:
        pool = await ConnectionPoolManager.get_pool(config.database)
        async with pool.connection() as conn:
            await conn.execute("SELECT 1")

        await ConnectionPoolManager.close_pool()
    """

    _pool: Optional[AsyncConnectionPool] = None
    _pool_lock = asyncio.Lock()

    @staticmethod
    async def _configure_connection(conn: psycopg.AsyncConnection) -> None:
        """Configure a connection after it's created by the pool."""
        conn.row_factory = dict_row

    @staticmethod
    async def _reset_connection(conn: psycopg.AsyncConnection) -> None:
        """Release stray session advisory locks before the connection is reused."""
        await conn.execute("SELECT pg_advisory_unlock_all()")

    @classmethod
    def _create_pool(cls, db_config: DatabaseConfig) -> AsyncConnectionPool:
        connection_class = psycopg.AsyncConnection
        if db_config.use_managed_identity:
            TokenAuthConnection.db_config = db_config
            connection_class = TokenAuthConnection

        logger.info(
            f"Creating connection pool: min={db_config.min_connections}, "
            f"max={db_config.max_connections}, managed_identity={db_config.use_managed_identity}"
        )
        return AsyncConnectionPool(
            conninfo=db_config.connection_string,
            connection_class=connection_class,
            kwargs={"autocommit": True},
            min_size=db_config.min_connections,
            max_size=db_config.max_connections,
            timeout=float(db_config.connection_timeout_seconds),
            max_lifetime=float(DatabaseDefaults.POOL_MAX_LIFETIME_SECONDS),
            configure=cls._configure_connection,
            reset=cls._reset_connection,
            open=False,
        )

    @classmethod
    async def get_pool(cls, db_config: DatabaseConfig) -> AsyncConnectionPool:
        """
        Get existing pool or create and open a new one.
        """
        if cls._pool is None:
            async with cls._pool_lock:
                if cls._pool is None:
                    pool = cls._create_pool(db_config)
                    await pool.open(wait=True)
                    cls._pool = pool
                    logger.info("✅ Connection pool opened")
        return cls._pool

    @classmethod
    async def close_pool(cls) -> None:
        """Close the pool, waiting for borrowed connections to come back."""
        async with cls._pool_lock:
            if cls._pool is not None:
                await cls._pool.close(timeout=POOL_CLOSE_TIMEOUT)
                cls._pool = None
                logger.info("🔌 Connection pool closed")
