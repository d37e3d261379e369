"""Parser registry and dispatch.

The project descriptor names its parser by a stable string key. The
dispatcher resolves that key to a registered CompoundParser and normalizes
whatever the parser does into either a list of compounds or one ParseError.
"""

from collections.abc import Sequence
from pathlib import Path

import structlog

from core.parser import Compound, CompoundParser, PythonCompoundParser

from .errors import ParseError, UnknownParserError

logger = structlog.get_logger(__name__)


class ParserDispatcher:
    """Registry of compound parsers keyed by parser identifier."""

    def __init__(self, parsers: Sequence[CompoundParser] | None = None) -> None:
        """Initialize the ParserDispatcher.

        Args:
            parsers: Parsers to register under their ``parser_id``.
        """
        self._parsers: dict[str, CompoundParser] = {}
        for parser in parsers or ():
            self.register(parser.parser_id, parser)

    @classmethod
    def with_defaults(cls) -> "ParserDispatcher":
        """Create a dispatcher with the bundled parsers registered.

        Returns:
            Dispatcher knowing the ``python`` parser.
        """
        return cls([PythonCompoundParser()])

    def register(self, parser_id: str, parser: CompoundParser) -> None:
        """Register a parser, replacing any parser with the same id.

        Args:
            parser_id: Key matching the descriptor ``parser`` field.
            parser: Parser implementation.

        Raises:
            ValueError: If the id is blank.
        """
        if not parser_id or not parser_id.strip():
            raise ValueError("Parser id must not be blank")
        self._parsers[parser_id] = parser
        logger.debug("Registered parser", parser=parser_id)

    def unregister(self, parser_id: str) -> None:
        """Remove a parser from the registry if present."""
        self._parsers.pop(parser_id, None)

    def available(self) -> list[str]:
        """Get the registered parser ids.

        Returns:
            Sorted list of parser identifiers.
        """
        return sorted(self._parsers)

    def get(self, parser_id: str) -> CompoundParser:
        """Look up a parser by id.

        Args:
            parser_id: Parser identifier.

        Returns:
            The registered parser.

        Raises:
            UnknownParserError: If no parser is registered under the id.
        """
        try:
            return self._parsers[parser_id]
        except KeyError:
            known = ", ".join(self.available()) or "none"
            raise UnknownParserError(
                f"Unknown parser {parser_id!r} (registered: {known})"
            ) from None

    async def parse(self, root_path: str | Path, parser_id: str) -> list[Compound]:
        """Run the named parser over a source tree.

        Args:
            root_path: Root of the sanitized source tree.
            parser_id: Identifier from the project descriptor.

        Returns:
            Compounds returned by the parser, possibly empty.

        Raises:
            UnknownParserError: If the parser is not registered.
            ParseError: If the parser fails or returns something other than
                a sequence of compounds with unique ids.
        """
        parser = self.get(parser_id)
        root = Path(root_path)

        try:
            result = await parser.parse_tree(root)
        except Exception as e:
            raise ParseError(
                f"Parser {parser_id!r} failed: {type(e).__name__}: {e}",
                path=str(root),
            ) from e

        if not isinstance(result, Sequence) or isinstance(result, (str, bytes)):
            raise ParseError(
                f"Parser {parser_id!r} returned {type(result).__name__}, expected a list",
                path=str(root),
            )

        compounds = list(result)
        seen: set[str] = set()
        for compound in compounds:
            if not isinstance(compound, Compound):
                raise ParseError(
                    f"Parser {parser_id!r} returned a {type(compound).__name__}, "
                    "expected Compound",
                    path=str(root),
                )
            if compound.id in seen:
                raise ParseError(
                    f"Parser {parser_id!r} returned duplicate compound id {compound.id!r}",
                    path=str(root),
                )
            seen.add(compound.id)

        logger.debug("Parsed source tree", parser=parser_id, compounds=len(compounds))
        return compounds
