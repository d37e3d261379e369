"""Abstract parser interface for compound extraction.

This module defines the abstract base class that all compound parsers must
implement. A parser receives the root of a sanitized source tree and returns
the compounds it found there.
"""

from abc import ABC, abstractmethod
from pathlib import Path

from .models import Compound


class CompoundParser(ABC):
    """Abstract base class for source tree parsers.

    Each concrete parser handles one language and is registered with the
    parser dispatcher under its ``parser_id``.

    Attributes:
        parser_id: Stable key matching the ``parser`` descriptor field.
    """

    parser_id: str = ""

    @abstractmethod
    async def parse_tree(self, root: Path) -> list[Compound]:
        """Extract all compounds from a source tree.

        Parsers decide on their own whether an unparsable file is skipped or
        aborts the whole call; an aborting parser raises.

        Args:
            root: Root directory of the sanitized source tree.

        Returns:
            Compounds found in the tree, possibly empty.
        """
        ...


class ParserError(Exception):
    """Exception raised for parser errors.

    Attributes:
        message: Explanation of the error.
        file_path: Path to the file being parsed when error occurred.
        line: Line number where error occurred, if known.
    """

    def __init__(
        self,
        message: str,
        file_path: str | None = None,
        line: int | None = None,
    ) -> None:
        """Initialize the ParserError.

        Args:
            message: Explanation of the error.
            file_path: Path to the file being parsed.
            line: Line number where error occurred.
        """
        self.message = message
        self.file_path = file_path
        self.line = line

        details = []
        if file_path:
            details.append(f"file={file_path}")
        if line is not None:
            details.append(f"line={line}")

        full_message = f"{message} ({', '.join(details)})" if details else message

        super().__init__(full_message)
