"""Parser module for compound extraction.

This module provides the parser plugin interface and the bundled
tree-sitter based Python parser. Parsers turn a sanitized source tree into
compounds: documented code units such as modules, classes and functions.

Example:
    >>> from core.parser import PythonCompoundParser
    >>> parser = PythonCompoundParser()
    >>> compounds = await parser.parse_tree(Path("/tmp/checkout"))
    >>> print([c.qualified_name for c in compounds])
"""

from .base import CompoundParser, ParserError
from .models import Compound, CompoundKind
from .python import PythonCompoundParser

__all__ = [
    # Base classes
    "CompoundParser",
    "ParserError",
    # Parser implementations
    "PythonCompoundParser",
    # Models
    "Compound",
    "CompoundKind",
]
