"""Git repository retrieval for the ingestion module.

This module materializes a working copy of a remote repository inside a run
workspace. Uses GitPython for Git operations; blocking calls run in a thread
pool so concurrent runs do not block each other.
"""

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

import structlog

from .errors import RetrievalError

if TYPE_CHECKING:
    from git import Repo

logger = structlog.get_logger(__name__)


class RepositoryManager:
    """Clones repositories into run workspaces.

    Attributes:
        clone_timeout: Timeout in seconds for clone operations.
        depth: Clone depth for shallow clones, None for full history.
    """

    def __init__(
        self,
        clone_timeout: int = 300,
        depth: int | None = 1,
    ) -> None:
        """Initialize the RepositoryManager.

        Args:
            clone_timeout: Timeout in seconds for clone operations.
            depth: Clone depth, None for a full clone. Documentation only
                needs the current tree, so a shallow clone is the default.
        """
        self.clone_timeout = clone_timeout
        self.depth = depth
        logger.debug("RepositoryManager initialized", depth=depth)

    @staticmethod
    def extract_repo_name(url: str) -> str:
        """Extract repository name from a URL.

        Args:
            url: Repository URL (HTTPS or SCP-style SSH).

        Returns:
            Repository name extracted from URL.
        """
        parsed = urlparse(url)
        path = parsed.path if parsed.scheme else url.split(":", 1)[-1]
        path = path.rstrip("/")

        if path.endswith(".git"):
            path = path[:-4]

        name = path.split("/")[-1]
        return name or "unknown"

    async def clone(self, url: str, destination: str | Path) -> Path:
        """Clone the default branch of a repository.

        Args:
            url: Remote repository URL.
            destination: Local path where the repository will be cloned. Must
                not exist yet or be empty.

        Returns:
            Resolved path of the working copy.

        Raises:
            RetrievalError: If the URL is empty, the clone fails (network,
                authentication, unknown repository) or times out.
        """
        from git import Repo

        if not url or not url.strip():
            raise RetrievalError("Repository clone URL is empty")

        dest_path = Path(destination)
        dest_str = str(dest_path.resolve())

        logger.info("Cloning repository", url=url, destination=dest_str)

        def _do_clone() -> "Repo":
            kwargs: dict[str, Any] = {"url": url, "to_path": dest_str}

            if self.depth:
                kwargs["depth"] = self.depth

            return Repo.clone_from(**kwargs)

        try:
            repo = await asyncio.wait_for(
                asyncio.get_running_loop().run_in_executor(None, _do_clone),
                timeout=self.clone_timeout,
            )
        except TimeoutError as e:
            raise RetrievalError(
                f"Clone operation timed out after {self.clone_timeout}s",
                path=dest_str,
            ) from e
        except Exception as e:
            raise RetrievalError(f"Failed to clone repository: {e}", path=dest_str) from e

        commit_sha = self._head_sha(repo)
        logger.info(
            "Cloned repository",
            url=url,
            destination=dest_str,
            commit=commit_sha[:8] if commit_sha else None,
        )

        return Path(dest_str)

    @staticmethod
    def _head_sha(repo: "Repo") -> str | None:
        """Return the HEAD commit SHA, None for an empty repository."""
        try:
            hexsha: str = repo.head.commit.hexsha
            return hexsha
        except ValueError:
            return None
