"""Pytest configuration and shared fixtures.

This module provides common fixtures used across the test suite: sample
Python snippets, temporary git repositories, an in-memory project store,
and stub components for driving the push pipeline without the network.
"""

import asyncio
import json
import shutil
import subprocess
from collections.abc import Callable, Sequence
from pathlib import Path

import pytest

from core.ingestion.errors import PersistenceError
from core.ingestion.models import Destination, Project, PushEvent, RepositoryRef
from core.ingestion.project_config import DESCRIPTOR_FILENAME
from core.parser import Compound, CompoundKind, CompoundParser

# ---------------------------------------------------------------------------
# Sample Python Code Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def simple_function_code() -> str:
    """Simple function with a docstring."""
    return '''def greet(name):
    """Say hello to someone."""
    return f"Hello, {name}!"
'''


@pytest.fixture
def simple_class_code() -> str:
    """Simple class with methods."""
    return '''class Calculator:
    """A simple calculator class."""

    precision: int = 2

    def __init__(self, initial_value: float = 0.0):
        """Initialize the calculator."""
        self.value = initial_value

    def add(self, x: float) -> float:
        """Add a number to the current value."""
        self.value += x
        return self.value
'''


@pytest.fixture
def complex_module_code() -> str:
    """A complete module with all compound kinds."""
    return '''"""A module demonstrating various Python constructs."""

from dataclasses import dataclass


@dataclass
class Config:
    """Application configuration."""

    host: str = "localhost"
    port: int = 8080


class Service(Base, metaclass=Meta):
    """A service class with various method types."""

    class State:
        """Nested lifecycle state."""

    def __init__(self, config: Config):
        self.config = config

    async def start(self) -> None:
        """Start the service."""
        def helper():
            """Not a documented unit."""
        helper()

    @classmethod
    def create(cls) -> "Service":
        return cls(Config())


def create_service(host: str = "localhost", port: int = 8080) -> Service:
    """Factory function to create a service."""
    return Service(Config(host=host, port=port))


async def shutdown_all() -> None:
    pass
'''


@pytest.fixture
def syntax_error_code() -> str:
    """A valid function followed by code with a syntax error."""
    return '''def valid_function():
    """Still extracted."""
    return 1


def broken_function(:
    pass
'''


# ---------------------------------------------------------------------------
# Push Event Fixtures
# ---------------------------------------------------------------------------


def make_push_event(
    slug: str = "demo",
    clone_url: str = "https://example.com/acme/demo.git",
    repo_name: str = "demo",
) -> PushEvent:
    """Build a push event with sensible defaults."""
    return PushEvent(
        type="library",
        slug=slug,
        destination=Destination(type="team", name="platform"),
        repository=RepositoryRef(name=repo_name, clone_url=clone_url),
    )


@pytest.fixture
def push_event() -> PushEvent:
    """A push event for the ``demo`` project."""
    return make_push_event()


@pytest.fixture
def demo_descriptor() -> dict:
    """Descriptor of the ``demo`` project."""
    return {"summary": "Demo", "parser": "python", "ignore": ["tests/"]}


@pytest.fixture
def demo_files(demo_descriptor: dict) -> dict[str, str]:
    """Working tree of the ``demo`` project."""
    return {
        DESCRIPTOR_FILENAME: json.dumps(demo_descriptor),
        "lib.py": '"""Demo library."""\n\n\ndef answer() -> int:\n    """Return the answer."""\n    return 42\n',
        "tests/test_lib.py": "from lib import answer\n\n\ndef test_answer():\n    assert answer() == 42\n",
    }


# ---------------------------------------------------------------------------
# Filesystem and Git Fixtures
# ---------------------------------------------------------------------------


def write_tree(root: Path, files: dict[str, str]) -> Path:
    """Write a mapping of relative paths to contents under ``root``."""
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root


def _git(repo_path: Path, *args: str) -> None:
    subprocess.run(
        [
            "git",
            "-c",
            "user.email=test@example.com",
            "-c",
            "user.name=Test User",
            *args,
        ],
        cwd=repo_path,
        capture_output=True,
        check=True,
    )


@pytest.fixture
def make_git_repo(tmp_path: Path) -> Callable[[dict[str, str]], Path]:
    """Factory fixture creating committed git repositories.

    Returns:
        Function taking a file mapping and returning the repository path.
    """
    counter = 0

    def _create(files: dict[str, str]) -> Path:
        nonlocal counter
        counter += 1
        repo_path = tmp_path / f"origin-{counter}"
        repo_path.mkdir()
        _git(repo_path, "init")
        write_tree(repo_path, files)
        _git(repo_path, "add", "-A")
        _git(repo_path, "commit", "-m", "Initial commit")
        return repo_path

    return _create


@pytest.fixture
def workspace_base(tmp_path: Path) -> Path:
    """Base directory for run workspaces."""
    return tmp_path / "workspaces"


# ---------------------------------------------------------------------------
# Test Doubles
# ---------------------------------------------------------------------------


class InMemoryProjectStore:
    """ProjectStore double keeping snapshots in a dictionary.

    Setting ``fail_with`` makes the next saves raise that error without
    touching the stored snapshots.
    """

    def __init__(self) -> None:
        self.projects: dict[str, Project] = {}
        self.compounds: dict[str, list[Compound]] = {}
        self.saves: list[str] = []
        self.fail_with: Exception | None = None

    async def save(self, project: Project, compounds: Sequence[Compound]) -> int:
        if self.fail_with is not None:
            raise self.fail_with
        self.projects[project.slug] = project
        self.compounds[project.slug] = list(compounds)
        self.saves.append(project.slug)
        return len(compounds)

    async def get_project(self, slug: str) -> Project | None:
        return self.projects.get(slug)

    async def get_compounds(self, slug: str) -> list[Compound]:
        return list(self.compounds.get(slug, []))


@pytest.fixture
def memory_store() -> InMemoryProjectStore:
    """Create an empty in-memory project store."""
    return InMemoryProjectStore()


@pytest.fixture
def failing_store() -> InMemoryProjectStore:
    """Create a store whose saves fail."""
    store = InMemoryProjectStore()
    store.fail_with = PersistenceError("Database unavailable")
    return store


class CopyRetriever:
    """Retriever double that copies a local directory instead of cloning.

    Unlike a git clone, the copy keeps every entry of the source directory,
    so tests can place arbitrary metadata directories in the working copy.
    """

    def __init__(self, source: Path, delay: float = 0.0) -> None:
        self.source = source
        self.delay = delay
        self.calls: list[tuple[str, Path]] = []

    async def clone(self, url: str, destination: str | Path) -> Path:
        self.calls.append((url, Path(destination)))
        if self.delay:
            await asyncio.sleep(self.delay)
        shutil.copytree(self.source, destination, symlinks=True)
        return Path(destination)


class RecordingParser(CompoundParser):
    """Parser emitting one module compound per file it sees.

    Attributes:
        seen: Relative paths of all files present at parse time.
    """

    parser_id = "recording"

    def __init__(self) -> None:
        self.seen: list[str] = []

    async def parse_tree(self, root: Path) -> list[Compound]:
        self.seen = sorted(
            p.relative_to(root).as_posix() for p in root.rglob("*") if p.is_file()
        )
        return [
            Compound(
                id=f"{relative}:file:1",
                kind=CompoundKind.MODULE,
                name=relative,
                qualified_name=relative,
                file_path=relative,
                start_line=1,
                end_line=1,
                language="text",
            )
            for relative in self.seen
        ]


class FailingParser(CompoundParser):
    """Parser that always raises the configured exception."""

    parser_id = "failing"

    def __init__(self, error: Exception | None = None) -> None:
        self.error = error or RuntimeError("parser exploded")

    async def parse_tree(self, root: Path) -> list[Compound]:
        raise self.error


@pytest.fixture
def recording_parser() -> RecordingParser:
    """Create a parser that records the files it sees."""
    return RecordingParser()


@pytest.fixture
def make_push() -> Callable[..., PushEvent]:
    """Factory fixture building push events."""
    return make_push_event


@pytest.fixture
def make_retriever() -> Callable[..., CopyRetriever]:
    """Factory fixture building copy retrievers for a source directory."""
    return CopyRetriever


@pytest.fixture
def make_failing_parser() -> Callable[..., FailingParser]:
    """Factory fixture building failing parsers."""
    return FailingParser
