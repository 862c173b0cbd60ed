"""
External system of record.

Products and distributors are mastered in a SQL Server database. The
reconciliation engine only needs "run this read query and give me rows
as dicts", so sources implement that behind an async context manager
that scopes one connection to one reconciliation run.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from schemehub.config import settings
from schemehub.core.exceptions import ExternalSourceError


logger = logging.getLogger(__name__)


def product_query(table: Optional[str] = None) -> str:
    """Read query for the product master; column aliases match the reconciler."""
    return f"""
        SELECT
            BRANDNAME,
            ITEMID,
            ITEMNAME,
            PACKTYPEGROUPNAME,
            PRODUCTSTYLEID AS Style,
            PACKTYPE,
            PRODUCTCONFIGURATIONID AS Configuration,
            NOB,
            PRODUCTSEGMENTNAME AS FLAVOURTYPE
        FROM {table or settings.MSSQL_PRODUCT_TABLE}
    """


def distributor_query(table: Optional[str] = None) -> str:
    """Read query for the customer master."""
    return f"""
        SELECT
            SALESHIERARCHYCODE AS SMCODE,
            CUSTOMERACCOUNT,
            ORGANIZATIONNAME,
            ADDRESSCITY,
            LINEDISCOUNTCODE AS CUSTOMERGROUPID
        FROM {table or settings.MSSQL_CUSTOMER_TABLE}
    """


class ExternalSource(ABC):
    """Read-only access to the external system of record."""

    name: str = "external"

    @abstractmethod
    def connect(self):
        """
        Async context manager yielding a connected session object.
        The connection is released on exit even when the run fails.
        """
        pass

    @abstractmethod
    async def execute_query(self, session: Any, sql: str, params: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
        """Run one read query and return rows as dicts keyed by column name."""
        pass


class MSSQLSource(ExternalSource):
    """SQL Server source over the async ODBC driver."""

    name = "mssql"

    def __init__(
        self,
        url: Optional[str] = None,
        connect_timeout: Optional[int] = None,
        request_timeout: Optional[int] = None,
    ):
        self.url = url or settings.mssql_url
        self.connect_timeout = connect_timeout or settings.MSSQL_CONNECT_TIMEOUT
        self.request_timeout = request_timeout or settings.MSSQL_REQUEST_TIMEOUT
        self._engine: Optional[AsyncEngine] = None

    def _get_engine(self) -> AsyncEngine:
        if self._engine is None:
            self._engine = create_async_engine(
                self.url,
                pool_pre_ping=True,
                connect_args={"timeout": self.connect_timeout},
            )
        return self._engine

    @asynccontextmanager
    async def connect(self) -> AsyncIterator[AsyncConnection]:
        engine = self._get_engine()
        try:
            conn = await asyncio.wait_for(engine.connect(), timeout=self.connect_timeout)
        except asyncio.TimeoutError:
            raise ExternalSourceError(
                f"Timed out connecting to {settings.MSSQL_SERVER} after {self.connect_timeout}s"
            )
        except SQLAlchemyError as e:
            raise ExternalSourceError(f"Could not connect to external source: {e}")

        logger.info(f"Connected to external source {settings.MSSQL_SERVER}/{settings.MSSQL_DATABASE}")
        try:
            yield conn
        finally:
            await conn.close()
            logger.info("External source connection closed")

    async def execute_query(
        self,
        session: AsyncConnection,
        sql: str,
        params: Optional[Mapping[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        try:
            result = await asyncio.wait_for(
                session.execute(text(sql), dict(params or {})),
                timeout=self.request_timeout,
            )
        except asyncio.TimeoutError:
            raise ExternalSourceError(f"External query timed out after {self.request_timeout}s")
        except SQLAlchemyError as e:
            raise ExternalSourceError(f"External query failed: {e}")
        return [dict(row) for row in result.mappings().all()]

    async def dispose(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None


class StaticSource(ExternalSource):
    """
    In-memory source serving fixed rows per query.

    Used by the seed script and tests. Rows are looked up by the table
    name appearing in the query's FROM clause.
    """

    name = "static"

    def __init__(self, tables: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self.tables = tables or {}
        self.queries: List[str] = []

    @asynccontextmanager
    async def connect(self) -> AsyncIterator["StaticSource"]:
        yield self

    async def execute_query(self, session: Any, sql: str, params: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
        self.queries.append(sql)
        for table, rows in self.tables.items():
            if table in sql:
                return [dict(row) for row in rows]
        raise ExternalSourceError(f"No rows configured for query: {sql.strip()[:60]}")


_default_source: Optional[ExternalSource] = None


def get_external_source() -> ExternalSource:
    """Process-wide source used by the scheduler and sync endpoints."""
    global _default_source
    if _default_source is None:
        _default_source = MSSQLSource()
    return _default_source


async def close_external_source() -> None:
    """Release the process-wide source's connections, if one was opened."""
    global _default_source
    if isinstance(_default_source, MSSQLSource):
        await _default_source.dispose()
    _default_source = None
