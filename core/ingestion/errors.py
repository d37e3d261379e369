"""Error taxonomy for the push ingestion pipeline.

Every stage of a run raises a subclass of PipelineError. The error carries
the stage it originated from so that the controller can report failures
without inspecting the exception type.
"""

from .models import PipelineStage


class PipelineError(Exception):
    """Base exception for all pipeline stage failures.

    Attributes:
        message: Explanation of the error.
        stage: Pipeline stage the error originated from.
        path: Filesystem path involved in the failure, if any.
    """

    default_stage: PipelineStage | None = None

    def __init__(
        self,
        message: str,
        stage: PipelineStage | None = None,
        path: str | None = None,
    ) -> None:
        """Initialize the PipelineError.

        Args:
            message: Explanation of the error.
            stage: Originating stage. Defaults to the class default stage.
            path: Filesystem path involved in the failure.
        """
        self.message = message
        self.stage = stage or self.default_stage
        self.path = path

        full_message = f"{message} (path={path})" if path else message
        super().__init__(full_message)


class WorkspaceError(PipelineError):
    """Raised when a run workspace cannot be allocated."""

    default_stage = PipelineStage.WORKSPACE


class RetrievalError(PipelineError):
    """Raised when the repository cannot be cloned."""

    default_stage = PipelineStage.RETRIEVE


class SanitizeError(PipelineError):
    """Raised when matched entries cannot be removed from the working copy."""

    default_stage = PipelineStage.SANITIZE_SYSTEM


class ConfigError(PipelineError):
    """Raised when the project descriptor is missing or malformed."""

    default_stage = PipelineStage.LOAD_CONFIG


class UnknownParserError(PipelineError):
    """Raised when the descriptor names a parser that is not registered."""

    default_stage = PipelineStage.PARSE


class ParseError(PipelineError):
    """Raised when the selected parser fails on the source tree."""

    default_stage = PipelineStage.PARSE


class PersistenceError(PipelineError):
    """Raised when the project snapshot cannot be written to storage."""

    default_stage = PipelineStage.PERSIST


class RunTimeoutError(PipelineError):
    """Raised when a run exceeds its time budget."""
