"""
PostgreSQL Client Wrapper

Centralized asyncpg connection pool wrapper. Provides a consistent database
access pattern for service repositories.

Usage:
    from core.postgres_client import PostgresClientWrapper

    db = PostgresClientWrapper("access_review_service")

    # Execute queries
    async with db:
        rows = await db.query("SELECT * FROM campaigns WHERE tenant_id = $1", [tenant_id])
"""

import json
import logging
from typing import Any, Dict, List, Optional

import asyncpg

from core.config import InfraConfig, get_settings

logger = logging.getLogger(__name__)


async def _init_connection(connection: asyncpg.Connection) -> None:
    """Decode json/jsonb columns to Python objects"""
    for type_name in ("json", "jsonb"):
        await connection.set_type_codec(
            type_name, encoder=json.dumps, decoder=json.loads, schema="pg_catalog"
        )


class PostgresClientWrapper:
    """
    PostgreSQL client wrapper around an asyncpg pool.

    Rows come back as plain dicts; the pool is created lazily on connect()
    or on entering the async context.
    """

    def __init__(
        self,
        service_name: str,
        config: Optional[InfraConfig] = None,
        dsn: Optional[str] = None,
    ):
        """
        Initialize PostgreSQL client wrapper.

        Args:
            service_name: Name of the service using this client
            config: Infrastructure config (defaults to global settings)
            dsn: Optional DSN overriding host/port/credentials from config
        """
        self.service_name = service_name
        self.config = config or get_settings().infrastructure
        self.dsn = dsn or self.config.postgres_dsn
        self._pool: Optional[asyncpg.Pool] = None

        logger.info(
            f"PostgreSQL client initialized for {service_name}: "
            f"{self.config.postgres_host}:{self.config.postgres_port}/{self.config.postgres_db}"
        )

    @property
    def pool(self) -> asyncpg.Pool:
        """Get underlying asyncpg pool"""
        if self._pool is None:
            raise RuntimeError("PostgreSQL client not connected. Call connect() first.")
        return self._pool

    async def connect(self) -> None:
        if self._pool is not None:
            return
        self._pool = await asyncpg.create_pool(
            dsn=self.dsn,
            min_size=self.config.postgres_min_pool_size,
            max_size=self.config.postgres_max_pool_size,
            init=_init_connection,
        )
        logger.info(f"PostgreSQL pool ready for {self.service_name}")

    async def __aenter__(self):
        """Async context manager entry"""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit"""
        await self.close()

    async def health_check(self) -> bool:
        """Check database health"""
        try:
            return await self.pool.fetchval("SELECT 1") == 1
        except Exception as e:
            logger.error(f"PostgreSQL health check failed: {e}")
            return False

    async def query(self, sql: str, params: Optional[List[Any]] = None) -> List[Dict[str, Any]]:
        """Execute query and return results"""
        rows = await self.pool.fetch(sql, *(params or []))
        return [dict(row) for row in rows]

    async def query_row(self, sql: str, params: Optional[List[Any]] = None) -> Optional[Dict[str, Any]]:
        """Execute query and return single row"""
        row = await self.pool.fetchrow(sql, *(params or []))
        return dict(row) if row is not None else None

    async def query_value(self, sql: str, params: Optional[List[Any]] = None) -> Any:
        """Execute query and return the first column of the first row"""
        return await self.pool.fetchval(sql, *(params or []))

    async def execute(self, sql: str, params: Optional[List[Any]] = None) -> str:
        """Execute SQL statement, returning the command status (e.g. 'DELETE 1')"""
        return await self.pool.execute(sql, *(params or []))

    async def close(self):
        """Close connection pool"""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info(f"PostgreSQL pool closed for {self.service_name}")
