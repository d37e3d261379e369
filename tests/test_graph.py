"""Tests for the Neo4j graph module.

This module contains tests for:
- Cypher query templates
- Property conversion helpers
- GraphConnection transaction handling (with a mocked driver)
- ProjectStore snapshot replacement and reads (with a mocked connection)

All tests use mocks for the Neo4j driver to avoid requiring a real database.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from neo4j.exceptions import Neo4jError, ServiceUnavailable

from core.graph.connection import GraphConnection, GraphConnectionError
from core.graph.queries import QUERIES, CypherQueries
from core.graph.store import (
    BATCH_SIZE,
    ProjectStore,
    batched,
    compound_uid,
    project_to_properties,
    properties_to_project,
)
from core.ingestion.errors import PersistenceError
from core.ingestion.models import Destination, PipelineStage, Project, RepositoryRef
from core.parser.models import Compound, CompoundKind

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def sample_project() -> Project:
    """Create a sample project."""
    return Project(
        type="library",
        slug="demo",
        destination=Destination(type="team", name="platform"),
        repository=RepositoryRef(name="demo", clone_url="https://example.com/acme/demo.git"),
        summary="Demo",
    )


@pytest.fixture
def sample_compounds() -> list[Compound]:
    """Create a module with one function."""
    module = Compound(
        id="lib.py:lib:1",
        kind=CompoundKind.MODULE,
        name="lib",
        qualified_name="lib",
        file_path="lib.py",
        start_line=1,
        end_line=6,
        docstring="Demo library.",
        language="python",
    )
    function = Compound(
        id="lib.py:lib.answer:4",
        kind=CompoundKind.FUNCTION,
        name="answer",
        qualified_name="lib.answer",
        file_path="lib.py",
        start_line=4,
        end_line=6,
        docstring="Return the answer.",
        signature="() -> int",
        language="python",
        parent_id=module.id,
    )
    return [module, function]


class FakeResult:
    """Minimal stand-in for an AsyncResult."""

    def __init__(self, record: dict[str, Any] | None) -> None:
        self._record = record

    async def single(self) -> dict[str, Any] | None:
        return self._record


@pytest.fixture
def mock_tx() -> MagicMock:
    """Create a mock transaction answering the snapshot queries."""
    tx = MagicMock()

    async def run(query: str, parameters: dict[str, Any] | None = None) -> FakeResult:
        if query == QUERIES.DELETE_PROJECT_COMPOUNDS:
            return FakeResult({"deleted": 3})
        if query == QUERIES.CREATE_COMPOUNDS:
            return FakeResult({"created": len(parameters["compounds"])})
        return FakeResult(None)

    tx.run = AsyncMock(side_effect=run)
    return tx


@pytest.fixture
def mock_connection(mock_tx: MagicMock) -> MagicMock:
    """Create a mock GraphConnection running work against ``mock_tx``."""
    connection = MagicMock()

    async def execute_write_transaction(work, **kwargs):
        return await work(mock_tx)

    connection.execute_write_transaction = AsyncMock(side_effect=execute_write_transaction)
    connection.execute_read = AsyncMock(return_value=[])
    return connection


@pytest.fixture
def store(mock_connection: MagicMock) -> ProjectStore:
    """Create a ProjectStore over the mock connection."""
    return ProjectStore(mock_connection)


def _queries(tx: MagicMock) -> list[str]:
    return [c.args[0] for c in tx.run.await_args_list]


# =============================================================================
# Query and Helper Tests
# =============================================================================


class TestQueries:
    """Tests for the Cypher query templates."""

    def test_singleton(self):
        assert isinstance(QUERIES, CypherQueries)

    def test_queries_are_parameterized(self):
        assert "$slug" in QUERIES.UPSERT_PROJECT
        assert "$compounds" in QUERIES.CREATE_COMPOUNDS
        assert "$links" in QUERIES.LINK_COMPOUND_PARENTS
        assert "DETACH DELETE" in QUERIES.DELETE_PROJECT_COMPOUNDS

    def test_schema_covers_keys(self):
        schema = " ".join(QUERIES.CONSTRAINTS)
        assert "p.slug IS UNIQUE" in schema
        assert "c.uid IS UNIQUE" in schema


class TestHelpers:
    """Tests for property conversion helpers."""

    def test_compound_uid(self):
        assert compound_uid("demo", "lib.py:lib:1") == "demo::lib.py:lib:1"

    def test_project_round_trip(self, sample_project):
        props = project_to_properties(sample_project)

        assert props["destination_type"] == "team"
        assert props["repository_clone_url"] == "https://example.com/acme/demo.git"
        assert "updated_at" in props
        assert properties_to_project(props) == sample_project

    def test_batched(self):
        rows = [{"n": i} for i in range(5)]

        assert batched(rows, 2) == [rows[0:2], rows[2:4], rows[4:5]]
        assert batched([], 2) == []


# =============================================================================
# GraphConnection Tests
# =============================================================================


@pytest.fixture
def mock_neo4j_tx() -> MagicMock:
    """Create a mock explicit transaction."""
    tx = MagicMock()
    tx.commit = AsyncMock()
    tx.rollback = AsyncMock()
    tx.close = AsyncMock()
    tx.closed = MagicMock(return_value=False)
    return tx


@pytest.fixture
def graph_connection(mock_neo4j_tx: MagicMock) -> GraphConnection:
    """Create a GraphConnection with a mocked driver and session."""
    connection = GraphConnection(uri="bolt://localhost:7687", user="neo4j", password="password")
    connection._driver = AsyncMock()

    session = MagicMock()
    session.begin_transaction = AsyncMock(return_value=mock_neo4j_tx)

    @asynccontextmanager
    async def mock_session_cm(**kwargs):
        yield session

    connection.session = MagicMock(side_effect=mock_session_cm)
    return connection


class TestGraphConnection:
    """Tests for GraphConnection."""

    def test_driver_requires_connect(self):
        with pytest.raises(GraphConnectionError):
            _ = GraphConnection().driver

    @pytest.mark.asyncio
    async def test_context_manager_connects_and_closes(self):
        driver = MagicMock()
        driver.verify_connectivity = AsyncMock()
        driver.close = AsyncMock()

        with patch(
            "core.graph.connection.AsyncGraphDatabase.driver", return_value=driver
        ) as factory:
            async with GraphConnection(uri="bolt://db:7687") as connection:
                assert connection.driver is driver

        assert factory.call_args.args[0] == "bolt://db:7687"
        driver.verify_connectivity.assert_awaited_once()
        driver.close.assert_awaited_once()
        assert connection._driver is None

    @pytest.mark.asyncio
    async def test_connect_unavailable(self):
        driver = MagicMock()
        driver.verify_connectivity = AsyncMock(side_effect=ServiceUnavailable("down"))

        with patch("core.graph.connection.AsyncGraphDatabase.driver", return_value=driver):
            with pytest.raises(GraphConnectionError, match="Failed to connect"):
                await GraphConnection().connect()

    @pytest.mark.asyncio
    async def test_transaction_commits(self, graph_connection, mock_neo4j_tx):
        async def work(tx):
            assert tx is mock_neo4j_tx
            return "done"

        result = await graph_connection.execute_write_transaction(work)

        assert result == "done"
        mock_neo4j_tx.commit.assert_awaited_once()
        mock_neo4j_tx.rollback.assert_not_awaited()
        mock_neo4j_tx.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_transaction_rolls_back_on_error(self, graph_connection, mock_neo4j_tx):
        async def work(tx):
            raise Neo4jError("constraint violated")

        with pytest.raises(Neo4jError):
            await graph_connection.execute_write_transaction(work)

        mock_neo4j_tx.commit.assert_not_awaited()
        mock_neo4j_tx.rollback.assert_awaited_once()
        mock_neo4j_tx.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failed_work_is_not_retried(self, graph_connection):
        work = AsyncMock(side_effect=ServiceUnavailable("gone"))

        with pytest.raises(ServiceUnavailable):
            await graph_connection.execute_write_transaction(work)

        assert work.await_count == 1

    @pytest.mark.asyncio
    async def test_health_check_disconnected(self):
        health = await GraphConnection().health_check()

        assert health["status"] == "disconnected"

    @pytest.mark.asyncio
    async def test_health_check_unavailable(self, graph_connection):
        graph_connection._driver.verify_connectivity = AsyncMock(
            side_effect=ServiceUnavailable("down")
        )

        health = await graph_connection.health_check()

        assert health["status"] == "unhealthy"

    @pytest.mark.asyncio
    async def test_create_constraints_tolerates_errors(self):
        connection = GraphConnection()
        connection.execute_write = AsyncMock(side_effect=Neo4jError("exists"))

        await connection.create_constraints()

        assert connection.execute_write.await_count == len(QUERIES.CONSTRAINTS) + len(
            QUERIES.INDEXES
        )


# =============================================================================
# ProjectStore Tests
# =============================================================================


class TestProjectStoreSave:
    """Tests for ProjectStore.save."""

    @pytest.mark.asyncio
    async def test_single_transaction_in_order(
        self, store, mock_connection, mock_tx, sample_project, sample_compounds
    ):
        created = await store.save(sample_project, sample_compounds)

        assert created == 2
        mock_connection.execute_write_transaction.assert_awaited_once()
        assert _queries(mock_tx) == [
            QUERIES.UPSERT_PROJECT,
            QUERIES.DELETE_PROJECT_COMPOUNDS,
            QUERIES.CREATE_COMPOUNDS,
            QUERIES.LINK_COMPOUND_PARENTS,
        ]

    @pytest.mark.asyncio
    async def test_compound_rows(self, store, mock_tx, sample_project, sample_compounds):
        await store.save(sample_project, sample_compounds)

        params = mock_tx.run.await_args_list[2].args[1]
        assert params["slug"] == "demo"
        rows = params["compounds"]
        assert [row["uid"] for row in rows] == [
            "demo::lib.py:lib:1",
            "demo::lib.py:lib.answer:4",
        ]
        assert rows[0]["props"]["kind"] == "module"
        assert "parent_id" not in rows[0]["props"]
        assert rows[1]["props"]["signature"] == "() -> int"

    @pytest.mark.asyncio
    async def test_parent_links(self, store, mock_tx, sample_project, sample_compounds):
        await store.save(sample_project, sample_compounds)

        params = mock_tx.run.await_args_list[3].args[1]
        assert params["links"] == [
            {"parent_uid": "demo::lib.py:lib:1", "child_uid": "demo::lib.py:lib.answer:4"}
        ]

    @pytest.mark.asyncio
    async def test_empty_snapshot_clears_compounds(self, store, mock_tx, sample_project):
        created = await store.save(sample_project, [])

        assert created == 0
        assert _queries(mock_tx) == [
            QUERIES.UPSERT_PROJECT,
            QUERIES.DELETE_PROJECT_COMPOUNDS,
        ]

    @pytest.mark.asyncio
    async def test_large_snapshot_is_batched(self, store, mock_tx, sample_project):
        compounds = [
            Compound(
                id=f"mod.py:mod.f{i}:{i + 1}",
                kind=CompoundKind.FUNCTION,
                name=f"f{i}",
                qualified_name=f"mod.f{i}",
                file_path="mod.py",
                start_line=i + 1,
                end_line=i + 1,
                language="python",
            )
            for i in range(BATCH_SIZE * 2 + 1)
        ]

        created = await store.save(sample_project, compounds)

        assert created == len(compounds)
        assert _queries(mock_tx).count(QUERIES.CREATE_COMPOUNDS) == 3

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            Neo4jError("write failed"),
            ServiceUnavailable("database down"),
            GraphConnectionError("Not connected"),
        ],
    )
    async def test_failures_become_persistence_errors(
        self, store, mock_connection, sample_project, sample_compounds, error
    ):
        mock_connection.execute_write_transaction = AsyncMock(side_effect=error)

        with pytest.raises(PersistenceError) as exc_info:
            await store.save(sample_project, sample_compounds)

        assert exc_info.value.stage == PipelineStage.PERSIST
        assert exc_info.value.__cause__ is error

    @pytest.mark.asyncio
    async def test_same_slug_saves_are_serialized(
        self, store, mock_connection, sample_project, sample_compounds
    ):
        active = 0
        overlaps = 0

        async def slow_transaction(work, **kwargs):
            nonlocal active, overlaps
            active += 1
            overlaps = max(overlaps, active)
            await asyncio.sleep(0.01)
            active -= 1
            return (0, 0)

        mock_connection.execute_write_transaction = AsyncMock(side_effect=slow_transaction)

        await asyncio.gather(
            *(store.save(sample_project, sample_compounds) for _ in range(3))
        )

        assert overlaps == 1
        assert mock_connection.execute_write_transaction.await_count == 3
        assert sample_project.slug not in store._locks


class TestProjectStoreRead:
    """Tests for ProjectStore read helpers."""

    @pytest.mark.asyncio
    async def test_get_project(self, store, mock_connection, sample_project):
        mock_connection.execute_read = AsyncMock(
            return_value=[{"p": project_to_properties(sample_project)}]
        )

        assert await store.get_project("demo") == sample_project

    @pytest.mark.asyncio
    async def test_get_project_missing(self, store):
        assert await store.get_project("missing") is None

    @pytest.mark.asyncio
    async def test_get_compounds(self, store, mock_connection, sample_compounds):
        mock_connection.execute_read = AsyncMock(
            return_value=[
                {
                    "c": {
                        **c.model_dump(mode="json", exclude_none=True),
                        "uid": compound_uid("demo", c.id),
                        "project_slug": "demo",
                    }
                }
                for c in sample_compounds
            ]
        )

        assert await store.get_compounds("demo") == sample_compounds

    @pytest.mark.asyncio
    async def test_read_failure(self, store, mock_connection):
        mock_connection.execute_read = AsyncMock(side_effect=ServiceUnavailable("down"))

        with pytest.raises(PersistenceError):
            await store.get_compounds("demo")
