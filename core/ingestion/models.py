"""Pydantic models for the ingestion module.

This module defines the data models used by the push ingestion pipeline:
the inbound push event, the run workspace, the project descriptor, the
persisted project record, and the typed outcome of a pipeline run.
"""

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from core.parser.models import Compound


class PipelineStage(str, Enum):
    """Stages of a pipeline run, in execution order."""

    WORKSPACE = "workspace"
    RETRIEVE = "retrieve"
    SANITIZE_SYSTEM = "sanitize_system"
    LOAD_CONFIG = "load_config"
    SANITIZE_PROJECT = "sanitize_project"
    PARSE = "parse"
    PERSIST = "persist"


class RunStatus(str, Enum):
    """Final status of a pipeline run."""

    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class Destination(BaseModel):
    """Where a project logically belongs (e.g. a team or a product)."""

    model_config = ConfigDict(frozen=True)

    type: str = Field(..., description="Destination type")
    name: str = Field(..., description="Destination name")


class RepositoryRef(BaseModel):
    """Repository that triggered the push."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Repository name")
    clone_url: str = Field(..., min_length=1, description="URL to clone from")


class PushEvent(BaseModel):
    """Push notification for a watched repository.

    Attributes:
        type: Project type declared by the sender.
        slug: Unique project identifier.
        destination: Where the project belongs.
        repository: Repository to ingest.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    type: str = Field(..., description="Project type")
    slug: str = Field(..., min_length=1, description="Unique project identifier")
    destination: Destination = Field(..., description="Logical destination")
    repository: RepositoryRef = Field(..., description="Repository reference")


class Workspace(BaseModel):
    """Run-exclusive directory tree holding a cloned repository.

    Attributes:
        run_id: Identifier of the run owning this workspace.
        root_path: Root directory of the workspace.
        repo_path: Directory the repository is cloned into.
    """

    model_config = ConfigDict(frozen=True)

    run_id: str = Field(..., description="Owning run identifier")
    root_path: Path = Field(..., description="Workspace root directory")
    repo_path: Path = Field(..., description="Clone destination inside the root")


class ProjectConfig(BaseModel):
    """Project descriptor read from the repository root.

    Attributes:
        summary: Free-text project summary.
        parser: Identifier of a registered parser.
        ignore: Glob patterns removed before parsing.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", strict=True)

    summary: str = Field(..., description="Project summary")
    parser: str = Field(..., min_length=1, description="Registered parser identifier")
    ignore: list[str] = Field(..., description="Glob patterns to remove before parsing")


class Project(BaseModel):
    """Persisted project record, identified by its slug."""

    model_config = ConfigDict(frozen=True)

    type: str = Field(..., description="Project type")
    slug: str = Field(..., description="Unique project identifier")
    destination: Destination = Field(..., description="Logical destination")
    repository: RepositoryRef = Field(..., description="Repository reference")
    summary: str = Field(..., description="Project summary from the descriptor")

    @classmethod
    def from_push(cls, event: PushEvent, config: ProjectConfig) -> "Project":
        """Build the project record for a push and its descriptor.

        Args:
            event: The push event being ingested.
            config: The loaded project descriptor.

        Returns:
            The project record to persist.
        """
        return cls(
            type=event.type,
            slug=event.slug,
            destination=event.destination,
            repository=event.repository,
            summary=config.summary,
        )


class RunContext(BaseModel):
    """Values handed from one pipeline stage to the next.

    Stages never mutate a context; they return a copy with their output
    added via ``model_copy(update=...)``.
    """

    model_config = ConfigDict(frozen=True)

    run_id: str = Field(..., description="Run identifier")
    event: PushEvent = Field(..., description="Push event being ingested")
    workspace: Workspace | None = Field(None, description="Allocated workspace")
    config: ProjectConfig | None = Field(None, description="Loaded project descriptor")
    compounds: tuple[Compound, ...] = Field(default=(), description="Parsed compounds")


class RunOutcome(BaseModel):
    """Typed outcome of one pipeline run.

    Attributes:
        run_id: Run identifier.
        slug: Project slug the run was for.
        status: Completed, failed or cancelled.
        stage: Stage that failed, None on success.
        error_type: Exception class name on failure.
        message: Error message on failure.
        compounds: Number of compounds persisted.
        elapsed_seconds: Wall-clock time from run start to finish.
    """

    model_config = ConfigDict(frozen=True)

    run_id: str = Field(..., description="Run identifier")
    slug: str = Field(..., description="Project slug")
    status: RunStatus = Field(..., description="Final run status")
    stage: PipelineStage | None = Field(None, description="Failed stage")
    error_type: str | None = Field(None, description="Error class name")
    message: str | None = Field(None, description="Error message")
    compounds: int = Field(0, ge=0, description="Compounds persisted")
    elapsed_seconds: float = Field(..., ge=0, description="Run duration in seconds")

    @property
    def succeeded(self) -> bool:
        """Whether the run completed and persisted its snapshot."""
        return self.status == RunStatus.COMPLETED
