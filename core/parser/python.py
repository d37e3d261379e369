"""Python compound parser using tree-sitter.

This module provides the parser registered under the ``python`` identifier.
It walks a source tree, parses every Python file with tree-sitter, and
extracts modules, classes, functions and methods as compounds.
"""

import asyncio
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

import structlog

from .base import CompoundParser, ParserError
from .models import Compound, CompoundKind

if TYPE_CHECKING:
    from tree_sitter import Node, Parser

logger = structlog.get_logger(__name__)


class PythonCompoundParser(CompoundParser):
    """Tree-sitter based parser for Python source trees.

    Extracts one module compound per file plus the classes, functions and
    methods it defines. Functions nested inside function bodies are not
    documented units and are skipped.

    Attributes:
        parser_id: The registry key ('python').
        extensions: File suffixes treated as Python source.
        max_file_size_kb: Files larger than this are skipped.
    """

    parser_id: str = "python"
    language: str = "python"
    extensions: tuple[str, ...] = (".py", ".pyi")

    def __init__(self, max_file_size_kb: int = 500) -> None:
        """Initialize the PythonCompoundParser.

        Args:
            max_file_size_kb: Maximum file size to parse in kilobytes.
        """
        self.max_file_size_kb = max_file_size_kb
        self._parser: Parser | None = None
        logger.debug("PythonCompoundParser created (lazy initialization)")

    def _get_parser(self) -> "Parser":
        """Lazily create the tree-sitter parser for Python.

        Returns:
            The tree-sitter Parser instance.
        """
        if self._parser is None:
            import tree_sitter_python
            from tree_sitter import Language, Parser

            self._parser = Parser(Language(tree_sitter_python.language()))
            logger.debug("Python tree-sitter parser initialized")
        return self._parser

    async def parse_tree(self, root: Path) -> list[Compound]:
        """Extract compounds from every Python file under ``root``.

        Parsing runs in a thread pool to avoid blocking the event loop.

        Args:
            root: Root directory of the sanitized source tree.

        Returns:
            Compounds in file order, then source order within each file.

        Raises:
            ParserError: If the root is not a directory or a file cannot be read.
        """
        root_path = Path(root)
        if not root_path.is_dir():
            raise ParserError("Source root is not a directory", file_path=str(root_path))

        return await asyncio.get_running_loop().run_in_executor(
            None, self._parse_tree_sync, root_path
        )

    def _parse_tree_sync(self, root: Path) -> list[Compound]:
        compounds: list[Compound] = []
        files = self.discover_files(root)

        for file_path in files:
            relative = file_path.relative_to(root).as_posix()
            try:
                source = file_path.read_bytes()
            except OSError as e:
                raise ParserError(f"Failed to read file: {e}", file_path=relative) from e

            try:
                source.decode("utf-8")
            except UnicodeDecodeError:
                logger.warning("Skipping file that is not valid UTF-8", file=relative)
                continue

            compounds.extend(self.parse_source(source, relative))

        logger.info(
            "Parsed Python source tree",
            root=str(root),
            files=len(files),
            compounds=len(compounds),
        )
        return compounds

    def discover_files(self, root: Path) -> list[Path]:
        """List Python files under a root in a deterministic order.

        Args:
            root: Directory to search.

        Returns:
            Sorted list of Python files within the size limit.
        """
        files: list[Path] = []
        for path in sorted(root.rglob("*")):
            if path.is_symlink() or not path.is_file():
                continue
            if path.suffix not in self.extensions:
                continue

            size_kb = path.stat().st_size / 1024
            if size_kb > self.max_file_size_kb:
                logger.debug("Skipping large file", file=str(path), size_kb=round(size_kb, 1))
                continue

            files.append(path)
        return files

    def parse_source(self, source: bytes | str, relative_path: str) -> list[Compound]:
        """Extract compounds from a single Python source file.

        Syntax errors do not abort extraction; tree-sitter recovers and the
        well-formed definitions around the error are still returned.

        Args:
            source: File content.
            relative_path: POSIX path of the file relative to the tree root.

        Returns:
            The module compound followed by its definitions in source order.
        """
        source_bytes = source.encode("utf-8") if isinstance(source, str) else source
        tree = self._get_parser().parse(source_bytes)
        root_node = tree.root_node

        if root_node.has_error:
            logger.warning("Parse tree contains syntax errors", file=relative_path)

        module_name = self.module_name(relative_path)
        line_count = max(len(source_bytes.splitlines()), 1)
        module_id = f"{relative_path}:{module_name}:1"

        compounds = [
            Compound(
                id=module_id,
                kind=CompoundKind.MODULE,
                name=module_name.rsplit(".", 1)[-1],
                qualified_name=module_name,
                file_path=relative_path,
                start_line=1,
                end_line=line_count,
                docstring=self._body_docstring(root_node, source_bytes),
                signature=None,
                language=self.language,
                parent_id=None,
            )
        ]
        self._collect_definitions(
            root_node,
            source_bytes,
            relative_path,
            scope=module_name,
            parent_id=module_id,
            in_class=False,
            compounds=compounds,
        )
        return compounds

    @staticmethod
    def module_name(relative_path: str) -> str:
        """Derive the dotted module name from a relative file path.

        Args:
            relative_path: POSIX path relative to the tree root.

        Returns:
            Dotted module name; package ``__init__`` files map to the package.
        """
        path = PurePosixPath(relative_path)
        parts = list(path.with_suffix("").parts)
        if len(parts) > 1 and parts[-1] == "__init__":
            parts.pop()
        return ".".join(parts)

    # -------------------------------------------------------------------------
    # Definition Extraction
    # -------------------------------------------------------------------------

    def _collect_definitions(
        self,
        block: "Node",
        source: bytes,
        file_path: str,
        scope: str,
        parent_id: str,
        in_class: bool,
        compounds: list[Compound],
    ) -> None:
        """Walk the statements of a module or class body.

        Args:
            block: Module root or class body node.
            source: File content as bytes.
            file_path: Relative file path.
            scope: Qualified name of the enclosing scope.
            parent_id: ID of the enclosing compound.
            in_class: Whether the block is a class body.
            compounds: List to append found compounds to.
        """
        for child in block.children:
            outer = child
            node = child
            if child.type == "decorated_definition":
                definition = child.child_by_field_name("definition")
                if definition is None:
                    continue
                node = definition

            if node.type == "class_definition":
                compound = self._class_compound(node, outer, source, file_path, scope, parent_id)
                if compound is None:
                    continue
                compounds.append(compound)
                body = node.child_by_field_name("body")
                if body is not None:
                    self._collect_definitions(
                        body,
                        source,
                        file_path,
                        scope=compound.qualified_name,
                        parent_id=compound.id,
                        in_class=True,
                        compounds=compounds,
                    )
            elif node.type in ("function_definition", "async_function_definition"):
                kind = CompoundKind.METHOD if in_class else CompoundKind.FUNCTION
                compound = self._function_compound(
                    node, outer, source, file_path, scope, parent_id, kind
                )
                if compound is not None:
                    compounds.append(compound)

    def _class_compound(
        self,
        node: "Node",
        outer: "Node",
        source: bytes,
        file_path: str,
        scope: str,
        parent_id: str,
    ) -> Compound | None:
        name_node = node.child_by_field_name("name")
        if name_node is None:
            return None

        name = self._text(name_node, source)
        superclasses = node.child_by_field_name("superclasses")
        body = node.child_by_field_name("body")
        start_line, end_line = self._line_range(outer)
        qualified_name = f"{scope}.{name}"

        return Compound(
            id=f"{file_path}:{qualified_name}:{start_line}",
            kind=CompoundKind.CLASS,
            name=name,
            qualified_name=qualified_name,
            file_path=file_path,
            start_line=start_line,
            end_line=end_line,
            docstring=self._body_docstring(body, source) if body is not None else None,
            signature=self._text(superclasses, source) if superclasses is not None else None,
            language=self.language,
            parent_id=parent_id,
        )

    def _function_compound(
        self,
        node: "Node",
        outer: "Node",
        source: bytes,
        file_path: str,
        scope: str,
        parent_id: str,
        kind: CompoundKind,
    ) -> Compound | None:
        name_node = node.child_by_field_name("name")
        if name_node is None:
            return None

        name = self._text(name_node, source)
        parameters = node.child_by_field_name("parameters")
        return_type = node.child_by_field_name("return_type")
        body = node.child_by_field_name("body")

        signature = self._text(parameters, source) if parameters is not None else "()"
        if return_type is not None:
            signature = f"{signature} -> {self._text(return_type, source)}"
        if node.type == "async_function_definition" or self._is_async(node):
            signature = f"async {signature}"

        start_line, end_line = self._line_range(outer)
        qualified_name = f"{scope}.{name}"

        return Compound(
            id=f"{file_path}:{qualified_name}:{start_line}",
            kind=kind,
            name=name,
            qualified_name=qualified_name,
            file_path=file_path,
            start_line=start_line,
            end_line=end_line,
            docstring=self._body_docstring(body, source) if body is not None else None,
            signature=signature,
            language=self.language,
            parent_id=parent_id,
        )

    # -------------------------------------------------------------------------
    # Node Helpers
    # -------------------------------------------------------------------------

    def _body_docstring(self, body: "Node", source: bytes) -> str | None:
        """Return the docstring of a module, class or function body."""
        for child in body.children:
            if child.type in ("comment", "newline"):
                continue
            if child.type == "expression_statement":
                for expr_child in child.children:
                    if expr_child.type == "string":
                        return self._string_literal(self._text(expr_child, source))
            break
        return None

    @staticmethod
    def _string_literal(text: str) -> str:
        """Strip prefixes and quotes from a string literal."""
        prefix_end = 0
        while prefix_end < len(text) and text[prefix_end].lower() in "rbuf":
            prefix_end += 1
        text = text[prefix_end:]

        for quote in ('"""', "'''", '"', "'"):
            if text.startswith(quote) and text.endswith(quote) and len(text) >= 2 * len(quote):
                return text[len(quote) : -len(quote)].strip()

        return text.strip()

    @staticmethod
    def _is_async(node: "Node") -> bool:
        return any(child.type == "async" for child in node.children)

    @staticmethod
    def _text(node: "Node", source: bytes) -> str:
        return source[node.start_byte : node.end_byte].decode("utf-8", errors="replace")

    @staticmethod
    def _line_range(node: "Node") -> tuple[int, int]:
        # tree-sitter uses 0-indexed lines
        return (node.start_point[0] + 1, node.end_point[0] + 1)
