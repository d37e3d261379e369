"""Glob-based removal of files from a working copy.

The pipeline sanitizes each working copy twice: first with a fixed set of
version-control patterns, then with the ``ignore`` patterns declared by the
project descriptor.
"""

import asyncio
import shutil
from collections.abc import Iterable, Sequence
from pathlib import Path, PurePosixPath

import structlog

from .errors import SanitizeError
from .models import PipelineStage

logger = structlog.get_logger(__name__)

# Files internal to the retrieval mechanism; removed before anything else runs
SYSTEM_PATTERNS: tuple[str, ...] = (
    ".git",
    ".gitignore",
    ".gitattributes",
    ".gitmodules",
    ".hg",
    ".hgignore",
    ".svn",
    "**/.DS_Store",
)


class FilesystemSanitizer:
    """Deletes filesystem entries matching glob patterns.

    Patterns are rooted at the directory being cleaned. ``**`` matches any
    number of directories, and a trailing ``/`` restricts a pattern to
    directories. Hidden entries are matched like any other entry.

    Attributes:
        system_patterns: Patterns applied by the system pass.
    """

    def __init__(self, system_patterns: Sequence[str] = SYSTEM_PATTERNS) -> None:
        """Initialize the FilesystemSanitizer.

        Args:
            system_patterns: Patterns removed by ``clean_system``.
        """
        self.system_patterns = tuple(system_patterns)

    async def clean_system(
        self,
        root_path: str | Path,
        protected: Iterable[str] = (),
    ) -> int:
        """Run the system pass over a working copy.

        Args:
            root_path: Working copy root.
            protected: Relative paths that must survive the pass.

        Returns:
            Number of top-level matched entries removed.
        """
        return await self.clean(
            root_path,
            self.system_patterns,
            protected=protected,
            stage=PipelineStage.SANITIZE_SYSTEM,
        )

    async def clean(
        self,
        root_path: str | Path,
        patterns: Sequence[str],
        *,
        protected: Iterable[str] = (),
        stage: PipelineStage = PipelineStage.SANITIZE_PROJECT,
    ) -> int:
        """Delete every entry under ``root_path`` matching a pattern.

        Directories are removed recursively and symlinks are unlinked without
        being followed. An entry inside an already matched directory is not
        counted twice. Running the same patterns again is a no-op.

        Args:
            root_path: Directory the patterns are rooted at.
            patterns: Glob patterns to remove.
            protected: Relative paths never removed, along with their parents.
            stage: Stage reported if removal fails.

        Returns:
            Number of top-level matched entries removed.

        Raises:
            SanitizeError: If a pattern cannot be expanded or a matched entry
                cannot be removed.
        """
        root = Path(root_path).resolve()
        protected_paths = {(root / p).resolve() for p in protected}

        def _do_clean() -> int:
            matches = self._collect_matches(root, patterns, protected_paths)
            for path in matches:
                self._remove(path)
            return len(matches)

        try:
            deleted = await asyncio.get_running_loop().run_in_executor(None, _do_clean)
        except OSError as e:
            raise SanitizeError(
                f"Failed to remove matched entry: {e}",
                stage=stage,
                path=str(root),
            ) from e
        except (ValueError, IndexError) as e:
            # Raised by Path.glob for patterns it cannot interpret
            raise SanitizeError(
                f"Invalid ignore pattern: {e}",
                stage=stage,
                path=str(root),
            ) from e

        logger.debug("Sanitized directory", root=str(root), patterns=len(patterns), deleted=deleted)
        return deleted

    def _collect_matches(
        self,
        root: Path,
        patterns: Sequence[str],
        protected: set[Path],
    ) -> list[Path]:
        """Resolve patterns to the outermost matching entries.

        Args:
            root: Resolved root directory.
            patterns: Glob patterns to expand.
            protected: Resolved paths that must not be removed.

        Returns:
            Sorted list of entries to remove, none nested in another.
        """
        if not root.is_dir():
            return []

        matched: set[Path] = set()
        for pattern in patterns:
            for path in self._expand(root, pattern):
                if not self._is_within(path, root):
                    logger.warning("Skipping match outside root", pattern=pattern, path=str(path))
                    continue
                if any(p == path or self._is_within(p, path) for p in protected):
                    continue
                matched.add(path)

        outermost: list[Path] = []
        for path in sorted(matched, key=lambda p: len(p.parts)):
            if not any(self._is_within(path, kept) for kept in outermost):
                outermost.append(path)
        return sorted(outermost)

    def _expand(self, root: Path, pattern: str) -> list[Path]:
        """Expand one glob pattern relative to the root."""
        pattern = pattern.strip()
        dirs_only = pattern.endswith("/")
        pattern = pattern.rstrip("/")

        posix = PurePosixPath(pattern)
        if not posix.parts or posix.is_absolute():
            return []

        results: list[Path] = []
        for path in root.glob(pattern):
            if dirs_only and (path.is_symlink() or not path.is_dir()):
                continue
            # Normalize without following a final symlink
            results.append(path.parent.resolve() / path.name)
        return results

    @staticmethod
    def _is_within(path: Path, parent: Path) -> bool:
        return path != parent and path.is_relative_to(parent)

    @staticmethod
    def _remove(path: Path) -> None:
        if path.is_symlink() or not path.is_dir():
            path.unlink(missing_ok=True)
        else:
            shutil.rmtree(path)
