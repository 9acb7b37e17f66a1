"""
Postgres client for the Retainer Settlements service.

Thin async wrapper over a SQLAlchemy 2.0 engine (asyncpg driver) executing
raw SQL. The repositories own the SQL; this module owns connection
management, row conversion and error classification.

Writes report what they touched (rowcount or RETURNING rows) so callers can
check that a link/unlink/update hit the rows they expected.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

import structlog
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..config import config
from ..errors import DatabaseConnectionError, wrap_db_error

logger = structlog.get_logger(__name__)


def _sanitize_url(url: str) -> str:
    """Remove URL query params that asyncpg does not understand.

    Hosted Postgres pooler URLs include ``channel_binding=require`` and
    ``sslmode=require`` which are libpq parameters. asyncpg rejects unknown
    connection params; SSL is passed through ``connect_args`` instead.
    """
    _STRIP_PARAMS = {'channel_binding', 'sslmode'}
    parsed = urlparse(url)
    if not parsed.query:
        return url
    params = parse_qs(parsed.query)
    filtered = {k: v for k, v in params.items() if k not in _STRIP_PARAMS}
    new_query = urlencode(filtered, doseq=True)
    return urlunparse(parsed._replace(query=new_query))


def _normalise_driver(url: str) -> str:
    if url.startswith('postgres://'):
        return url.replace('postgres://', 'postgresql+asyncpg://', 1)
    if url.startswith('postgresql://') and '+asyncpg' not in url:
        return url.replace('postgresql://', 'postgresql+asyncpg://', 1)
    return url


class PostgresClient:
    """
    Async Postgres client used by the settlement and invoice repositories.

    Reads are retried on connection failures; writes are not, since a write
    that reached the server before the connection dropped would be applied
    twice.
    """

    def __init__(self, database_url: str | None = None, ssl: bool | None = None):
        """
        Args:
            database_url: Postgres connection URL. 'postgres://' and
                          'postgresql://' URLs are switched to asyncpg.
            ssl: Require SSL (defaults to config.DATABASE_SSL)
        """
        self._engine: AsyncEngine | None = None
        self._database_url = database_url
        self._ssl = config.DATABASE_SSL if ssl is None else ssl

    async def connect(self, database_url: str | None = None) -> None:
        """Create the async engine. No-op if already connected."""
        if self._engine is not None:
            return

        url = database_url or self._database_url
        if not url:
            raise ValueError('database_url is required')

        url = _normalise_driver(_sanitize_url(url))

        connect_args: dict[str, Any] = {'prepared_statement_cache_size': 0}
        if self._ssl:
            connect_args['ssl'] = 'require'

        self._engine = create_async_engine(
            url,
            pool_size=config.DATABASE_POOL_SIZE,
            max_overflow=5,
            pool_pre_ping=True,
            pool_timeout=30,
            connect_args=connect_args,
        )
        logger.info('postgres_client.connected')

    async def close(self) -> None:
        """Dispose of the engine and connection pool."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            logger.info('postgres_client.closed')

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError('PostgresClient not connected, call connect() first')
        return self._engine

    async def verify_connectivity(self) -> bool:
        """Return True if we can execute a simple query."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text('SELECT 1'))
            return True
        except Exception:
            logger.exception('postgres_client.connectivity_check_failed')
            return False

    # =========================================================================
    # Reads
    # =========================================================================

    @retry(
        retry=retry_if_exception_type(DatabaseConnectionError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    async def fetch_all(self, sql: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        """Run a SELECT and return every row as a dict."""
        try:
            async with self.engine.connect() as conn:
                result = await conn.execute(text(sql), params or {})
                return [dict(row) for row in result.mappings().all()]
        except SQLAlchemyError as e:
            raise wrap_db_error(e, {'operation': 'fetch_all'}) from e

    async def fetch_one(self, sql: str, params: dict[str, Any] | None = None) -> dict[str, Any] | None:
        """Run a SELECT and return the first row, or None."""
        rows = await self.fetch_all(sql, params)
        return rows[0] if rows else None

    # =========================================================================
    # Writes
    # =========================================================================

    async def execute(self, sql: str, params: dict[str, Any] | None = None) -> int:
        """Run a write statement in its own transaction; return rowcount."""
        try:
            async with self.engine.begin() as conn:
                result = await conn.execute(text(sql), params or {})
                return result.rowcount
        except SQLAlchemyError as e:
            raise wrap_db_error(e, {'operation': 'execute'}) from e

    async def execute_returning(
        self, sql: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """Run a write statement with a RETURNING clause; return those rows."""
        try:
            async with self.engine.begin() as conn:
                result = await conn.execute(text(sql), params or {})
                return [dict(row) for row in result.mappings().all()]
        except SQLAlchemyError as e:
            raise wrap_db_error(e, {'operation': 'execute_returning'}) from e
