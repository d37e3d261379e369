"""Run workspace allocation and reclamation.

Each pipeline run owns one directory tree under a shared base directory.
The tree is created empty at run start and removed when the run ends,
whatever the outcome.
"""

import asyncio
import re
import shutil
import time
import uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

import structlog

from .errors import WorkspaceError
from .models import Workspace

logger = structlog.get_logger(__name__)

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")

REPO_DIRNAME = "repo"


class WorkspaceManager:
    """Allocates and reclaims per-run workspaces.

    Workspace directories are named ``<repo>-<epoch ms>-<run id prefix>`` so
    two pushes to the same repository in the same millisecond still get
    distinct directories.
    """

    @staticmethod
    def safe_name(repo_name: str) -> str:
        """Reduce a repository name to filesystem-safe characters.

        Args:
            repo_name: Repository name from the push event.

        Returns:
            Name containing only letters, digits, dots, dashes and underscores.
        """
        cleaned = _UNSAFE_NAME_CHARS.sub("-", repo_name).strip(".-")
        return cleaned or "repo"

    async def create_workspace(
        self,
        base_dir: str | Path,
        repo_name: str,
        run_id: str | None = None,
    ) -> Workspace:
        """Create a new, empty workspace under ``base_dir``.

        Args:
            base_dir: Shared directory holding all run workspaces.
            repo_name: Repository name used as the directory prefix.
            run_id: Owning run identifier. Generated if not provided.

        Returns:
            The allocated workspace.

        Raises:
            WorkspaceError: If the directory cannot be created.
        """
        run_id = run_id or uuid.uuid4().hex
        base = Path(base_dir)
        dirname = f"{self.safe_name(repo_name)}-{int(time.time() * 1000)}-{run_id[:8]}"
        root = base / dirname

        def _do_create() -> Path:
            base.mkdir(parents=True, exist_ok=True)
            root.mkdir(exist_ok=False)
            return root.resolve()

        try:
            root_path = await asyncio.get_running_loop().run_in_executor(None, _do_create)
        except OSError as e:
            raise WorkspaceError(f"Failed to create workspace: {e}", path=str(root)) from e

        logger.info("Created workspace", root_path=str(root_path), run_id=run_id)

        return Workspace(
            run_id=run_id,
            root_path=root_path,
            repo_path=root_path / REPO_DIRNAME,
        )

    async def release_workspace(self, workspace: Workspace) -> bool:
        """Recursively remove a workspace tree.

        Removal is best-effort: failures are logged and reported through the
        return value, never raised.

        Args:
            workspace: The workspace to remove.

        Returns:
            True if the tree no longer exists, False if removal failed.
        """
        root = workspace.root_path

        def _do_remove() -> None:
            if root.exists():
                shutil.rmtree(root)

        try:
            await asyncio.get_running_loop().run_in_executor(None, _do_remove)
        except OSError as e:
            logger.warning(
                "Failed to release workspace",
                root_path=str(root),
                run_id=workspace.run_id,
                error=str(e),
            )
            return False

        logger.info("Released workspace", root_path=str(root), run_id=workspace.run_id)
        return True

    @asynccontextmanager
    async def acquire(
        self,
        base_dir: str | Path,
        repo_name: str,
        run_id: str | None = None,
    ) -> AsyncGenerator[Workspace, None]:
        """Allocate a workspace for the duration of a block.

        The workspace is released on every exit path, including errors and
        task cancellation.

        Args:
            base_dir: Shared directory holding all run workspaces.
            repo_name: Repository name used as the directory prefix.
            run_id: Owning run identifier.

        Yields:
            The allocated workspace.

        Raises:
            WorkspaceError: If the directory cannot be created.
        """
        workspace = await self.create_workspace(base_dir, repo_name, run_id)
        try:
            yield workspace
        finally:
            # Shield so a cancelled run still reclaims its directory
            await asyncio.shield(self.release_workspace(workspace))
