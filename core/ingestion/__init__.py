"""Ingestion module for push-triggered documentation runs.

This module turns source-control push notifications into persisted project
snapshots: it clones each pushed repository into a private workspace,
sanitizes the working copy, reads the project descriptor, runs the selected
compound parser and hands the result to the persistence layer.

Example:
    >>> from core.ingestion import IngestionSupervisor, PushPipeline
    >>> pipeline = PushPipeline(store, workspace_base_dir="/var/tmp/docsmith")
    >>> outcome = await pipeline.run(event)
    >>> print(outcome.status, outcome.compounds)

    >>> # Fire-and-forget
    >>> supervisor = IngestionSupervisor(pipeline, supersede_inflight=True)
    >>> run_id = supervisor.submit(event)
"""

from .dispatcher import ParserDispatcher
from .errors import (
    ConfigError,
    ParseError,
    PersistenceError,
    PipelineError,
    RetrievalError,
    RunTimeoutError,
    SanitizeError,
    UnknownParserError,
    WorkspaceError,
)
from .locks import KeyedLocks
from .models import (
    Destination,
    PipelineStage,
    Project,
    ProjectConfig,
    PushEvent,
    RepositoryRef,
    RunContext,
    RunOutcome,
    RunStatus,
    Workspace,
)
from .pipeline import PushPipeline
from .project_config import DESCRIPTOR_FILENAME, parse_config, read_config
from .repo import RepositoryManager
from .sanitizer import SYSTEM_PATTERNS, FilesystemSanitizer
from .supervisor import IngestionSupervisor
from .workspace import WorkspaceManager

__all__ = [
    # Controller
    "PushPipeline",
    "IngestionSupervisor",
    # Components
    "WorkspaceManager",
    "RepositoryManager",
    "FilesystemSanitizer",
    "SYSTEM_PATTERNS",
    "ParserDispatcher",
    "KeyedLocks",
    "DESCRIPTOR_FILENAME",
    "read_config",
    "parse_config",
    # Models
    "PushEvent",
    "Destination",
    "RepositoryRef",
    "Workspace",
    "ProjectConfig",
    "Project",
    "RunContext",
    "RunOutcome",
    "RunStatus",
    "PipelineStage",
    # Errors
    "PipelineError",
    "WorkspaceError",
    "RetrievalError",
    "SanitizeError",
    "ConfigError",
    "UnknownParserError",
    "ParseError",
    "PersistenceError",
    "RunTimeoutError",
]
