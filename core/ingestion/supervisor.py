"""Background execution of pipeline runs.

The push endpoint acknowledges notifications before any work happens. The
IngestionSupervisor owns the resulting asyncio tasks: it starts them, cancels
superseded ones, and keeps a bounded history of their outcomes.
"""

import asyncio
import time
import uuid
from collections import deque
from dataclasses import dataclass

import structlog

from .models import PushEvent, RunOutcome, RunStatus
from .pipeline import PushPipeline

logger = structlog.get_logger(__name__)


@dataclass
class _InflightRun:
    """A submitted run that has not finished yet."""

    run_id: str
    slug: str
    task: "asyncio.Task[RunOutcome]"
    submitted: float


class IngestionSupervisor:
    """Runs the pipeline in the background for submitted push events.

    Attributes:
        pipeline: Pipeline executing each run.
        supersede_inflight: Cancel a slug's unfinished runs when a newer push
            for the same slug arrives.
    """

    def __init__(
        self,
        pipeline: PushPipeline,
        *,
        supersede_inflight: bool = False,
        history_size: int = 100,
    ) -> None:
        """Initialize the IngestionSupervisor.

        Args:
            pipeline: Pipeline executing each run.
            supersede_inflight: Whether a newer push cancels older runs for
                the same slug.
            history_size: Number of finished outcomes kept in memory.
        """
        self.pipeline = pipeline
        self.supersede_inflight = supersede_inflight
        self._history: deque[RunOutcome] = deque(maxlen=history_size)
        self._inflight: dict[str, _InflightRun] = {}
        self._closed = False

    def submit(self, payload: PushEvent) -> str:
        """Schedule a pipeline run and return without waiting for it.

        Must be called from within a running event loop.

        Args:
            payload: The push event to ingest.

        Returns:
            Identifier of the scheduled run.

        Raises:
            RuntimeError: If the supervisor has been shut down.
        """
        if self._closed:
            raise RuntimeError("Supervisor is shut down and accepts no new runs")

        if self.supersede_inflight:
            for run in list(self._inflight.values()):
                if run.slug == payload.slug and not run.task.done():
                    logger.info("Run superseded", run_id=run.run_id, slug=run.slug)
                    run.task.cancel()

        run_id = uuid.uuid4().hex
        task = asyncio.create_task(
            self._execute(payload, run_id),
            name=f"push-{payload.slug}-{run_id[:8]}",
        )
        run = _InflightRun(
            run_id=run_id, slug=payload.slug, task=task, submitted=time.perf_counter()
        )
        self._inflight[run_id] = run
        task.add_done_callback(lambda t: self._finished(run, t))

        logger.debug("Run submitted", run_id=run_id, slug=payload.slug)
        return run_id

    async def _execute(self, payload: PushEvent, run_id: str) -> RunOutcome:
        """Run the pipeline and record whatever happens to it."""
        started = time.perf_counter()
        try:
            outcome = await self.pipeline.run(payload, run_id=run_id)
        except Exception as e:
            logger.exception("Run crashed", run_id=run_id, slug=payload.slug, error=str(e))
            outcome = RunOutcome(
                run_id=run_id,
                slug=payload.slug,
                status=RunStatus.FAILED,
                error_type=type(e).__name__,
                message=str(e),
                elapsed_seconds=round(time.perf_counter() - started, 3),
            )

        self._history.append(outcome)
        return outcome

    def _finished(self, run: _InflightRun, task: "asyncio.Task[RunOutcome]") -> None:
        """Forget a finished run and record it if it was cancelled.

        A run cancelled before it started never reaches ``_execute``, so
        cancellation is recorded here rather than there.
        """
        self._inflight.pop(run.run_id, None)
        if task.cancelled():
            self._history.append(
                RunOutcome(
                    run_id=run.run_id,
                    slug=run.slug,
                    status=RunStatus.CANCELLED,
                    elapsed_seconds=round(time.perf_counter() - run.submitted, 3),
                )
            )
            logger.info("Run cancelled", run_id=run.run_id, slug=run.slug)

    def inflight(self) -> list[str]:
        """Get the identifiers of unfinished runs."""
        return [run_id for run_id, run in self._inflight.items() if not run.task.done()]

    def outcomes(self) -> list[RunOutcome]:
        """Get recorded outcomes, oldest first.

        Returns:
            Up to ``history_size`` most recent outcomes.
        """
        return list(self._history)

    def last_outcome(self, slug: str) -> RunOutcome | None:
        """Get the most recent recorded outcome for a project.

        Args:
            slug: Project slug.

        Returns:
            The latest outcome, or None if no run for the slug is recorded.
        """
        for outcome in reversed(self._history):
            if outcome.slug == slug:
                return outcome
        return None

    async def drain(self) -> None:
        """Wait until every submitted run has finished."""
        while True:
            pending = [run.task for run in self._inflight.values() if not run.task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel unfinished runs and wait for their cleanup.

        The supervisor accepts no new runs afterwards.
        """
        self._closed = True
        pending = [run.task for run in self._inflight.values() if not run.task.done()]
        for task in pending:
            task.cancel()
        if pending:
            logger.info("Cancelling in-flight runs", count=len(pending))
            await asyncio.gather(*pending, return_exceptions=True)
