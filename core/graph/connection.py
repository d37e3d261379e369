"""Neo4j connection management.

This module provides the GraphConnection class for managing connections to
the Neo4j database. It supports async context management, connection pooling,
explicit write transactions, and health checks.
"""

import os
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, TypeVar

import structlog
from neo4j import (
    AsyncDriver,
    AsyncGraphDatabase,
    AsyncManagedTransaction,
    AsyncSession,
    AsyncTransaction,
)
from neo4j.exceptions import Neo4jError, ServiceUnavailable

from .queries import QUERIES

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class GraphConnectionError(Exception):
    """Exception raised for graph connection errors."""

    pass


class GraphConnection:
    """Manages connections to the Neo4j graph database.

    Attributes:
        uri: Neo4j connection URI.
        user: Neo4j username.
        password: Neo4j password.
        database: Neo4j database name.
    """

    def __init__(
        self,
        uri: str | None = None,
        user: str | None = None,
        password: str | None = None,
        database: str = "neo4j",
        max_connection_pool_size: int = 50,
        connection_acquisition_timeout: float = 60.0,
    ) -> None:
        """Initialize the graph connection.

        Args:
            uri: Neo4j connection URI. Defaults to NEO4J_URI env var.
            user: Neo4j username. Defaults to NEO4J_USER env var.
            password: Neo4j password. Defaults to NEO4J_PASSWORD env var.
            database: Neo4j database name.
            max_connection_pool_size: Maximum connections in the pool.
            connection_acquisition_timeout: Timeout for acquiring a connection.
        """
        self.uri = uri or os.getenv("NEO4J_URI", "bolt://localhost:7687")
        self.user = user or os.getenv("NEO4J_USER", "neo4j")
        self.password = password or os.getenv("NEO4J_PASSWORD", "password")
        self.database = database
        self._max_pool_size = max_connection_pool_size
        self._acquisition_timeout = connection_acquisition_timeout
        self._driver: AsyncDriver | None = None

    async def connect(self) -> None:
        """Establish connection to Neo4j.

        Raises:
            GraphConnectionError: If connection fails.
        """
        if self._driver is not None:
            return

        try:
            self._driver = AsyncGraphDatabase.driver(
                self.uri,
                auth=(self.user, self.password),
                max_connection_pool_size=self._max_pool_size,
                connection_acquisition_timeout=self._acquisition_timeout,
            )
            await self._driver.verify_connectivity()
            logger.info("Connected to Neo4j", uri=self.uri)
        except ServiceUnavailable as e:
            raise GraphConnectionError(f"Failed to connect to Neo4j: {e}") from e
        except Exception as e:
            raise GraphConnectionError(f"Unexpected error connecting to Neo4j: {e}") from e

    async def close(self) -> None:
        """Close the driver and release all pooled connections."""
        if self._driver is not None:
            await self._driver.close()
            self._driver = None
            logger.info("Disconnected from Neo4j")

    async def __aenter__(self) -> "GraphConnection":
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    @property
    def driver(self) -> AsyncDriver:
        """Get the Neo4j driver.

        Raises:
            GraphConnectionError: If not connected.
        """
        if self._driver is None:
            raise GraphConnectionError("Not connected to Neo4j. Call connect() first.")
        return self._driver

    @asynccontextmanager
    async def session(self, **kwargs: Any) -> AsyncGenerator[AsyncSession, None]:
        """Get a Neo4j session as an async context manager.

        Args:
            **kwargs: Additional session configuration.

        Yields:
            An async Neo4j session.

        Raises:
            GraphConnectionError: If not connected.
        """
        session = self.driver.session(database=self.database, **kwargs)
        try:
            yield session
        finally:
            await session.close()

    async def health_check(self) -> dict[str, Any]:
        """Check the health of the Neo4j connection.

        Returns:
            Dictionary with health status information.
        """
        try:
            if self._driver is None:
                return {
                    "status": "disconnected",
                    "message": "Driver not initialized",
                }

            await self._driver.verify_connectivity()
            return {
                "status": "healthy",
                "uri": self.uri,
                "database": self.database,
            }
        except ServiceUnavailable as e:
            return {
                "status": "unhealthy",
                "message": f"Service unavailable: {e}",
            }
        except Neo4jError as e:
            return {
                "status": "unhealthy",
                "message": f"Neo4j error: {e}",
            }

    async def execute_read(
        self,
        query: str,
        parameters: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> list[dict[str, Any]]:
        """Execute a read query within a transaction.

        Args:
            query: Cypher query string.
            parameters: Query parameters.
            **kwargs: Additional session configuration.

        Returns:
            List of result records as dictionaries.
        """
        if parameters is None:
            parameters = {}

        async with self.session(**kwargs) as session:

            async def _read_tx(tx: AsyncManagedTransaction) -> list[dict[str, Any]]:
                result = await tx.run(query, parameters)
                return await result.data()

            return await session.execute_read(_read_tx)

    async def execute_write(
        self,
        query: str,
        parameters: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> list[dict[str, Any]]:
        """Execute a single write query within a transaction.

        Args:
            query: Cypher query string.
            parameters: Query parameters.
            **kwargs: Additional session configuration.

        Returns:
            List of result records as dictionaries.
        """
        if parameters is None:
            parameters = {}

        async def _write_tx(tx: AsyncTransaction) -> list[dict[str, Any]]:
            result = await tx.run(query, parameters)
            return await result.data()

        return await self.execute_write_transaction(_write_tx, **kwargs)

    async def execute_write_transaction(
        self,
        work: Callable[[AsyncTransaction], Awaitable[T]],
        **kwargs: Any,
    ) -> T:
        """Run several statements as one explicit write transaction.

        The transaction commits only if ``work`` returns; any exception rolls
        back every statement it ran. Unlike managed transactions, transient
        failures are not retried.

        Args:
            work: Async function receiving the open transaction.
            **kwargs: Additional session configuration.

        Returns:
            Whatever ``work`` returns.
        """
        async with self.session(**kwargs) as session:
            tx = await session.begin_transaction()
            try:
                result = await work(tx)
                await tx.commit()
                return result
            except BaseException:
                if not tx.closed():
                    await tx.rollback()
                raise
            finally:
                await tx.close()

    async def create_constraints(self) -> None:
        """Create uniqueness constraints and lookup indexes.

        Failures are logged; the schema may already exist in another form.
        """
        for schema_query in (*QUERIES.CONSTRAINTS, *QUERIES.INDEXES):
            try:
                await self.execute_write(schema_query)
            except Neo4jError as e:
                logger.warning("Failed to create schema element", error=str(e))

        logger.info("Graph constraints created/verified")
