"""Push ingestion pipeline controller.

This module provides the PushPipeline class which turns one push event into
a persisted project snapshot. It allocates a workspace, clones the
repository, sanitizes the working copy, loads the project descriptor, runs
the selected parser and stores the result, in that order. The first failing
stage ends the run and is reported in the returned RunOutcome.
"""

import asyncio
import tempfile
import time
import uuid
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

from core.parser.models import Compound

from .dispatcher import ParserDispatcher
from .errors import PipelineError, RunTimeoutError
from .locks import KeyedLocks
from .models import (
    PipelineStage,
    Project,
    ProjectConfig,
    PushEvent,
    RunContext,
    RunOutcome,
    RunStatus,
    Workspace,
)
from .project_config import DESCRIPTOR_FILENAME, read_config
from .repo import RepositoryManager
from .sanitizer import FilesystemSanitizer
from .workspace import WorkspaceManager

if TYPE_CHECKING:
    from core.graph.store import ProjectStore

logger = structlog.get_logger(__name__)


class _StageTrace:
    """Tracks the executing stage of one run and logs stage boundaries."""

    def __init__(self, log: Any) -> None:
        self.log = log
        self.started = time.perf_counter()
        self.stage: PipelineStage | None = None
        self._stage_started = self.started

    def elapsed(self) -> float:
        return round(time.perf_counter() - self.started, 3)

    def enter(self, stage: PipelineStage) -> None:
        self.stage = stage
        self._stage_started = time.perf_counter()
        self.log.debug("Stage started", stage=stage.value, elapsed_seconds=self.elapsed())

    def complete(self, **fields: Any) -> None:
        stage_seconds = round(time.perf_counter() - self._stage_started, 3)
        self.log.info(
            "Stage completed",
            stage=self.stage.value if self.stage else None,
            stage_seconds=stage_seconds,
            elapsed_seconds=self.elapsed(),
            **fields,
        )


class PushPipeline:
    """Runs the ingestion stages for push events.

    Runs for the same project slug are serialized in arrival order, so a
    later push always persists after an earlier one. Runs for different
    slugs proceed concurrently, each in its own workspace.

    Attributes:
        store: Persistence layer receiving the project snapshots.
        dispatcher: Parser registry used by the parse stage.
        workspace_base_dir: Directory holding all run workspaces.
        workspace_manager: Workspace allocator.
        repository_manager: Repository cloner.
        sanitizer: Filesystem sanitizer used by both sanitize stages.
        run_timeout: Time budget of one run in seconds, None for unlimited.
    """

    def __init__(
        self,
        store: "ProjectStore",
        dispatcher: ParserDispatcher | None = None,
        *,
        workspace_base_dir: str | Path | None = None,
        workspace_manager: WorkspaceManager | None = None,
        repository_manager: RepositoryManager | None = None,
        sanitizer: FilesystemSanitizer | None = None,
        run_timeout: float | None = None,
    ) -> None:
        """Initialize the PushPipeline.

        Args:
            store: Persistence layer with an async ``save(project, compounds)``.
            dispatcher: Parser registry. Defaults to the bundled parsers.
            workspace_base_dir: Directory holding run workspaces. Defaults to
                ``docsmith`` under the system temp directory.
            workspace_manager: Workspace allocator.
            repository_manager: Repository cloner.
            sanitizer: Filesystem sanitizer.
            run_timeout: Time budget of one run in seconds, None for unlimited.
        """
        self.store = store
        self.dispatcher = dispatcher or ParserDispatcher.with_defaults()
        self.workspace_base_dir = Path(
            workspace_base_dir or Path(tempfile.gettempdir()) / "docsmith"
        )
        self.workspace_manager = workspace_manager or WorkspaceManager()
        self.repository_manager = repository_manager or RepositoryManager()
        self.sanitizer = sanitizer or FilesystemSanitizer()
        self.run_timeout = run_timeout
        self._locks = KeyedLocks()

    async def run(self, payload: PushEvent, run_id: str | None = None) -> RunOutcome:
        """Ingest one push event.

        No failure escapes this method. Stage errors and unexpected
        exceptions alike are logged and returned as a failed outcome tagged
        with the stage that was executing. Cancellation is propagated once
        the workspace has been released.

        Args:
            payload: The push event to ingest.
            run_id: Identifier for the run. Generated if not provided.

        Returns:
            The outcome of the run.

        Raises:
            asyncio.CancelledError: If the run is cancelled.
        """
        run_id = run_id or uuid.uuid4().hex
        log = logger.bind(run_id=run_id, slug=payload.slug)
        trace = _StageTrace(log)

        log.info(
            "Push received",
            repository=payload.repository.name,
            clone_url=payload.repository.clone_url,
        )

        context = RunContext(run_id=run_id, event=payload)

        try:
            async with self._locks.hold(payload.slug):
                context = await asyncio.wait_for(
                    self._run_stages(context, trace),
                    timeout=self.run_timeout,
                )
        except TimeoutError as e:
            error = RunTimeoutError(
                f"Run exceeded its time budget of {self.run_timeout}s",
                stage=trace.stage,
            )
            error.__cause__ = e
            return self._failed(run_id, payload, error, trace)
        except asyncio.CancelledError:
            log.warning(
                "Run cancelled",
                stage=trace.stage.value if trace.stage else None,
                elapsed_seconds=trace.elapsed(),
            )
            raise
        except Exception as e:
            return self._failed(run_id, payload, e, trace)

        log.info(
            "Run completed",
            compounds=len(context.compounds),
            elapsed_seconds=trace.elapsed(),
        )
        return RunOutcome(
            run_id=run_id,
            slug=payload.slug,
            status=RunStatus.COMPLETED,
            compounds=len(context.compounds),
            elapsed_seconds=trace.elapsed(),
        )

    async def _run_stages(self, context: RunContext, trace: _StageTrace) -> RunContext:
        """Execute every stage inside a scoped workspace."""
        event = context.event

        trace.enter(PipelineStage.WORKSPACE)
        async with self.workspace_manager.acquire(
            self.workspace_base_dir, event.repository.name, context.run_id
        ) as workspace:
            trace.complete(root_path=str(workspace.root_path))
            context = context.model_copy(update={"workspace": workspace})

            await self._retrieve(event, workspace, trace)
            await self._sanitize_system(workspace, trace)

            config = await self._load_config(workspace, trace)
            context = context.model_copy(update={"config": config})

            await self._sanitize_project(workspace, config, trace)

            compounds = await self._parse(workspace, config, trace)
            context = context.model_copy(update={"compounds": tuple(compounds)})

            await self._persist(event, config, context.compounds, trace)

        return context

    # ==========================================================================
    # Stages
    # ==========================================================================

    async def _retrieve(self, event: PushEvent, workspace: Workspace, trace: _StageTrace) -> None:
        trace.enter(PipelineStage.RETRIEVE)
        repo_path = await self.repository_manager.clone(
            event.repository.clone_url, workspace.repo_path
        )
        trace.complete(repo_path=str(repo_path))

    async def _sanitize_system(self, workspace: Workspace, trace: _StageTrace) -> None:
        trace.enter(PipelineStage.SANITIZE_SYSTEM)
        deleted = await self.sanitizer.clean_system(
            workspace.repo_path, protected=(DESCRIPTOR_FILENAME,)
        )
        trace.complete(deleted=deleted)

    async def _load_config(self, workspace: Workspace, trace: _StageTrace) -> ProjectConfig:
        trace.enter(PipelineStage.LOAD_CONFIG)
        config = await read_config(workspace.repo_path)
        trace.complete(parser=config.parser, ignore=len(config.ignore))
        return config

    async def _sanitize_project(
        self, workspace: Workspace, config: ProjectConfig, trace: _StageTrace
    ) -> None:
        trace.enter(PipelineStage.SANITIZE_PROJECT)
        deleted = await self.sanitizer.clean(
            workspace.repo_path,
            config.ignore,
            stage=PipelineStage.SANITIZE_PROJECT,
        )
        trace.complete(deleted=deleted)

    async def _parse(
        self, workspace: Workspace, config: ProjectConfig, trace: _StageTrace
    ) -> list[Compound]:
        trace.enter(PipelineStage.PARSE)
        compounds = await self.dispatcher.parse(workspace.repo_path, config.parser)
        trace.complete(parser=config.parser, compounds=len(compounds))
        return compounds

    async def _persist(
        self,
        event: PushEvent,
        config: ProjectConfig,
        compounds: tuple[Compound, ...],
        trace: _StageTrace,
    ) -> None:
        trace.enter(PipelineStage.PERSIST)
        project = Project.from_push(event, config)
        await self.store.save(project, compounds)
        trace.complete(compounds=len(compounds))

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @staticmethod
    def _failed(
        run_id: str,
        payload: PushEvent,
        error: Exception,
        trace: _StageTrace,
    ) -> RunOutcome:
        """Log a failed run and build its outcome.

        Errors outside the pipeline taxonomy are attributed to the stage that
        was executing and logged with their traceback.
        """
        known = isinstance(error, PipelineError)
        stage = (error.stage if known else None) or trace.stage
        trace.log.error(
            "Run failed",
            stage=stage.value if stage else None,
            error_type=type(error).__name__,
            error=str(error),
            elapsed_seconds=trace.elapsed(),
            exc_info=not known,
        )
        return RunOutcome(
            run_id=run_id,
            slug=payload.slug,
            status=RunStatus.FAILED,
            stage=stage,
            error_type=type(error).__name__,
            message=str(error),
            elapsed_seconds=trace.elapsed(),
        )
