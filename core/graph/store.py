"""Project snapshot persistence in Neo4j.

This module provides the ProjectStore class which replaces the stored
snapshot of a project (its metadata and all of its compounds) in a single
transaction, and reads snapshots back.
"""

from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any

import structlog
from neo4j import AsyncTransaction
from neo4j.exceptions import DriverError, Neo4jError

from core.ingestion.errors import PersistenceError
from core.ingestion.locks import KeyedLocks
from core.ingestion.models import Destination, Project, RepositoryRef
from core.parser.models import Compound

from .connection import GraphConnection, GraphConnectionError
from .queries import QUERIES

logger = structlog.get_logger(__name__)

# Maximum number of compounds sent in one UNWIND statement
BATCH_SIZE = 500


def compound_uid(slug: str, compound_id: str) -> str:
    """Build the store-wide key of a compound.

    Compound ids are only unique within one project, so the stored key is
    prefixed with the project slug.

    Args:
        slug: Project slug.
        compound_id: Parser-assigned compound id.

    Returns:
        Unique compound key.
    """
    return f"{slug}::{compound_id}"


def project_to_properties(project: Project) -> dict[str, Any]:
    """Flatten a project into Neo4j node properties.

    Args:
        project: The project record.

    Returns:
        Parameters for the project upsert query.
    """
    return {
        "slug": project.slug,
        "type": project.type,
        "destination_type": project.destination.type,
        "destination_name": project.destination.name,
        "repository_name": project.repository.name,
        "repository_clone_url": project.repository.clone_url,
        "summary": project.summary,
        "updated_at": datetime.now(tz=UTC).isoformat(),
    }


def properties_to_project(props: dict[str, Any]) -> Project:
    """Rebuild a project from stored node properties."""
    return Project(
        type=props["type"],
        slug=props["slug"],
        destination=Destination(type=props["destination_type"], name=props["destination_name"]),
        repository=RepositoryRef(
            name=props["repository_name"],
            clone_url=props["repository_clone_url"],
        ),
        summary=props.get("summary") or "",
    )


def batched(rows: list[dict[str, Any]], batch_size: int = BATCH_SIZE) -> list[list[dict[str, Any]]]:
    """Split query rows into UNWIND-sized batches.

    Args:
        rows: Parameter rows to split.
        batch_size: Maximum rows per batch.

    Returns:
        List of batches, empty for no rows.
    """
    return [rows[i : i + batch_size] for i in range(0, len(rows), batch_size)]


class ProjectStore:
    """Stores project snapshots in Neo4j.

    A snapshot is a Project node plus the Compound nodes it owns through
    HAS_COMPOUND relationships. Saving a project replaces its snapshot
    wholesale inside one transaction, so readers see either the previous or
    the new compound set, never a mix.

    Attributes:
        connection: The Neo4j connection instance.
    """

    def __init__(self, connection: GraphConnection) -> None:
        """Initialize the project store.

        Args:
            connection: An established GraphConnection instance.
        """
        self.connection = connection
        self._locks = KeyedLocks()

    # ==========================================================================
    # Snapshot Replacement
    # ==========================================================================

    async def save(self, project: Project, compounds: Sequence[Compound]) -> int:
        """Upsert a project and replace its compounds.

        Saves for the same slug are serialized within this process; the
        transaction boundary covers concurrent writers elsewhere.

        Args:
            project: Project record, keyed by slug.
            compounds: Complete compound set for the project.

        Returns:
            Number of compounds stored.

        Raises:
            PersistenceError: If the database is unavailable or rejects the
                write. The previous snapshot is left untouched.
        """
        project_params = project_to_properties(project)
        rows = [
            {
                "uid": compound_uid(project.slug, c.id),
                "props": c.model_dump(mode="json", exclude_none=True),
            }
            for c in compounds
        ]
        links = [
            {
                "parent_uid": compound_uid(project.slug, c.parent_id),
                "child_uid": compound_uid(project.slug, c.id),
            }
            for c in compounds
            if c.parent_id
        ]

        async def _replace_snapshot(tx: AsyncTransaction) -> tuple[int, int]:
            await tx.run(QUERIES.UPSERT_PROJECT, project_params)

            result = await tx.run(QUERIES.DELETE_PROJECT_COMPOUNDS, {"slug": project.slug})
            record = await result.single()
            deleted = record["deleted"] if record else 0

            created = 0
            for batch in batched(rows):
                result = await tx.run(
                    QUERIES.CREATE_COMPOUNDS, {"slug": project.slug, "compounds": batch}
                )
                record = await result.single()
                created += record["created"] if record else 0

            for batch in batched(links):
                await tx.run(QUERIES.LINK_COMPOUND_PARENTS, {"links": batch})

            return deleted, created

        async with self._locks.hold(project.slug):
            try:
                deleted, created = await self.connection.execute_write_transaction(
                    _replace_snapshot
                )
            except (Neo4jError, DriverError, GraphConnectionError) as e:
                raise PersistenceError(
                    f"Failed to save project {project.slug!r}: {e}"
                ) from e

        logger.info(
            "Saved project snapshot",
            slug=project.slug,
            replaced=deleted,
            compounds=created,
        )
        return created

    # ==========================================================================
    # Read Operations
    # ==========================================================================

    async def get_project(self, slug: str) -> Project | None:
        """Get a project by slug.

        Args:
            slug: The project slug.

        Returns:
            The project, or None if not found.

        Raises:
            PersistenceError: If the read fails.
        """
        try:
            result = await self.connection.execute_read(QUERIES.GET_PROJECT, {"slug": slug})
        except (Neo4jError, DriverError, GraphConnectionError) as e:
            raise PersistenceError(f"Failed to read project {slug!r}: {e}") from e

        if result and result[0].get("p"):
            return properties_to_project(dict(result[0]["p"]))
        return None

    async def get_compounds(self, slug: str) -> list[Compound]:
        """Get the stored compounds of a project.

        Args:
            slug: The project slug.

        Returns:
            Compounds ordered by file and line, empty if none are stored.

        Raises:
            PersistenceError: If the read fails.
        """
        try:
            result = await self.connection.execute_read(
                QUERIES.GET_PROJECT_COMPOUNDS, {"slug": slug}
            )
        except (Neo4jError, DriverError, GraphConnectionError) as e:
            raise PersistenceError(f"Failed to read compounds of {slug!r}: {e}") from e

        compounds = []
        for record in result:
            props = dict(record["c"])
            props.pop("uid", None)
            props.pop("project_slug", None)
            compounds.append(Compound.model_validate(props))
        return compounds
