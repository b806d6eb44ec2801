"""
PostgreSQL Database Configuration.

Provides configuration for the application database that holds the
translation engine records and serves the per-engine advisory locks.

Supports both password-based and Azure Managed Identity authentication.

Exports:
    DatabaseConfig: App database configuration
"""

import os
from typing import Optional
from pydantic import BaseModel, Field

from .defaults import DatabaseDefaults


# ============================================================================
# DATABASE CONFIGURATION
# ============================================================================

class DatabaseConfig(BaseModel):
    """
    PostgreSQL configuration with managed identity support.
    """

    # Connection settings
    host: str = Field(
        ...,
        description="PostgreSQL server hostname",
        examples=["engines-db.postgres.database.azure.com"]
    )

    port: int = Field(
        default=DatabaseDefaults.PORT,
        description="PostgreSQL server port number"
    )

    user: Optional[str] = Field(
        default=None,
        description="""PostgreSQL username.

        With password auth this is the login role. With managed identity it
        must match the principal name created in PostgreSQL.
        """
    )

    password: Optional[str] = Field(
        default=None,
        repr=False,
        description="PostgreSQL password (ignored with managed identity)"
    )

    database: str = Field(
        ...,
        description="PostgreSQL database name",
        examples=["engines"]
    )

    app_schema: str = Field(
        default=DatabaseDefaults.APP_SCHEMA,
        description="Schema holding the translation_engines table"
    )

    # Managed identity settings
    use_managed_identity: bool = Field(
        default=False,
        description="""Enable Azure Managed Identity for passwordless PostgreSQL authentication.

        Behavior:
            - When True: acquires an access token for the PostgreSQL scope and
              uses it as the password
            - When False: uses traditional password-based authentication

        Environment Variable: USE_MANAGED_IDENTITY
        """
    )

    managed_identity_client_id: Optional[str] = Field(
        default=None,
        description="Client ID of a user-assigned managed identity (None = DefaultAzureCredential)"
    )

    # Pool settings
    min_connections: int = Field(
        default=DatabaseDefaults.MIN_CONNECTIONS,
        ge=0,
        description="Minimum pooled connections"
    )

    max_connections: int = Field(
        default=DatabaseDefaults.MAX_CONNECTIONS,
        ge=1,
        description="Maximum pooled connections (each held lock pins one)"
    )

    connection_timeout_seconds: int = Field(
        default=DatabaseDefaults.CONNECTION_TIMEOUT_SECONDS,
        description="Seconds to wait for a pooled connection"
    )

    lock_timeout_seconds: int = Field(
        default=DatabaseDefaults.LOCK_TIMEOUT_SECONDS,
        ge=0,
        description="PostgreSQL lock_timeout for advisory lock waits (0 disables)"
    )

    @property
    def connection_string(self) -> str:
        """
        Build PostgreSQL connection string for password auth.

        Managed identity connections get their password (token) injected
        by the connection pool at connect time.
        """
        if self.use_managed_identity:
            user_part = f" user={self.user}" if self.user else ""
            return f"host={self.host} port={self.port} dbname={self.database}{user_part} sslmode=require"
        if not self.user:
            raise ValueError("POSTGRES_USER is required for password authentication")
        password_part = f" password={self.password}" if self.password else ""
        return f"host={self.host} port={self.port} dbname={self.database} user={self.user}{password_part}"

    def debug_dict(self) -> dict:
        """Debug output with masked password."""
        return {
            "host": self.host,
            "port": self.port,
            "user": self.user,
            "database": self.database,
            "password": "***MASKED***" if self.password else None,
            "managed_identity": self.use_managed_identity,
            "managed_identity_client_id": self.managed_identity_client_id[:8] + "..." if self.managed_identity_client_id else None,
            "app_schema": self.app_schema,
            "pool": f"{self.min_connections}-{self.max_connections}",
            "lock_timeout_seconds": self.lock_timeout_seconds,
        }

    @classmethod
    def from_environment(cls):
        """Load from environment variables.

        POSTGRES_HOST and POSTGRES_DATABASE are required (ValidationError if unset).
        """
        return cls(
            host=os.environ.get("POSTGRES_HOST"),
            port=int(os.environ.get("POSTGRES_PORT", str(DatabaseDefaults.PORT))),
            user=os.environ.get("POSTGRES_USER"),
            password=os.environ.get("POSTGRES_PASSWORD"),
            database=os.environ.get("POSTGRES_DATABASE"),
            app_schema=os.environ.get("APP_SCHEMA", DatabaseDefaults.APP_SCHEMA),
            use_managed_identity=os.environ.get("USE_MANAGED_IDENTITY", "false").lower() == "true",
            managed_identity_client_id=os.environ.get("DB_MANAGED_IDENTITY_CLIENT_ID"),
            min_connections=int(os.environ.get("DB_POOL_MIN", str(DatabaseDefaults.MIN_CONNECTIONS))),
            max_connections=int(os.environ.get("DB_POOL_MAX", str(DatabaseDefaults.MAX_CONNECTIONS))),
            connection_timeout_seconds=int(os.environ.get("DB_CONNECTION_TIMEOUT", str(DatabaseDefaults.CONNECTION_TIMEOUT_SECONDS))),
            lock_timeout_seconds=int(os.environ.get("LOCK_TIMEOUT_SECONDS", str(DatabaseDefaults.LOCK_TIMEOUT_SECONDS))),
        )
