"""Dependency injection setup for the Docsmith API.

This module provides FastAPI dependency functions for injecting
services and resources into route handlers.
"""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends

from core.graph.connection import GraphConnection
from core.graph.store import ProjectStore
from core.ingestion.dispatcher import ParserDispatcher
from core.ingestion.pipeline import PushPipeline
from core.ingestion.repo import RepositoryManager
from core.ingestion.supervisor import IngestionSupervisor

from .config import Settings, get_settings

# Type aliases for dependency injection
SettingsDep = Annotated[Settings, Depends(get_settings)]


# Global instances for connection management
_graph_connection: GraphConnection | None = None
_project_store: ProjectStore | None = None
_supervisor: IngestionSupervisor | None = None


async def init_dependencies(settings: Settings) -> None:
    """Initialize global dependencies on application startup.

    Connects to Neo4j, makes sure the schema exists and wires the pipeline
    that will serve every push.

    Args:
        settings: Application settings instance.
    """
    global _graph_connection, _project_store, _supervisor

    # Initialize Neo4j connection
    _graph_connection = GraphConnection(
        uri=settings.neo4j_uri,
        user=settings.neo4j_user,
        password=settings.neo4j_password,
        database=settings.neo4j_database,
    )
    await _graph_connection.connect()
    await _graph_connection.create_constraints()

    _project_store = ProjectStore(_graph_connection)

    pipeline = PushPipeline(
        _project_store,
        ParserDispatcher.with_defaults(),
        workspace_base_dir=settings.workspace_base_dir,
        repository_manager=RepositoryManager(
            clone_timeout=settings.clone_timeout_seconds,
            depth=settings.clone_depth,
        ),
        run_timeout=settings.run_timeout_seconds,
    )
    _supervisor = IngestionSupervisor(
        pipeline,
        supersede_inflight=settings.supersede_inflight,
        history_size=settings.history_size,
    )


async def shutdown_dependencies() -> None:
    """Cleanup dependencies on application shutdown.

    Cancels unfinished runs, then closes the database connection.
    """
    global _graph_connection, _project_store, _supervisor

    if _supervisor is not None:
        await _supervisor.shutdown()
        _supervisor = None

    if _graph_connection is not None:
        await _graph_connection.close()
        _graph_connection = None

    _project_store = None


async def get_graph_connection() -> AsyncGenerator[GraphConnection, None]:
    """Get the Neo4j graph connection.

    Yields:
        The shared GraphConnection instance.

    Raises:
        RuntimeError: If dependencies have not been initialized.
    """
    if _graph_connection is None:
        raise RuntimeError(
            "Graph connection not initialized. Ensure init_dependencies() was called on startup."
        )
    yield _graph_connection


async def get_supervisor() -> AsyncGenerator[IngestionSupervisor, None]:
    """Get the supervisor running push ingestion in the background.

    Yields:
        The shared IngestionSupervisor instance.

    Raises:
        RuntimeError: If dependencies have not been initialized.
    """
    if _supervisor is None:
        raise RuntimeError(
            "Ingestion supervisor not initialized. Ensure init_dependencies() was called on startup."
        )
    yield _supervisor


# Type aliases for commonly used dependencies
GraphConnectionDep = Annotated[GraphConnection, Depends(get_graph_connection)]
SupervisorDep = Annotated[IngestionSupervisor, Depends(get_supervisor)]
