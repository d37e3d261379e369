"""Graph module for Neo4j operations.

This module provides the components needed to persist project snapshots in
the Neo4j graph database: connection management, query templates, and the
ProjectStore class.

Example usage:
    ```python
    from core.graph import GraphConnection, ProjectStore

    async with GraphConnection() as conn:
        store = ProjectStore(conn)
        await store.save(project, compounds)

        compounds = await store.get_compounds("my-project")
    ```
"""

from .connection import GraphConnection, GraphConnectionError
from .queries import QUERIES, CypherQueries
from .store import (
    ProjectStore,
    batched,
    compound_uid,
    project_to_properties,
    properties_to_project,
)

__all__ = [
    # Connection
    "GraphConnection",
    "GraphConnectionError",
    # Store
    "ProjectStore",
    # Queries
    "QUERIES",
    "CypherQueries",
    # Utils
    "batched",
    "compound_uid",
    "project_to_properties",
    "properties_to_project",
]
