"""Pydantic models for parsed compounds.

A compound is a documented code unit (module, class, function, method)
extracted by a parser. The ingestion pipeline only relies on ``id`` being
stable and unique within one parse; every other field belongs to the parser.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class CompoundKind(str, Enum):
    """Kinds of compounds produced by the bundled parsers."""

    MODULE = "module"
    CLASS = "class"
    FUNCTION = "function"
    METHOD = "method"


class Compound(BaseModel):
    """A documented code unit extracted from a source tree.

    Attributes:
        id: Unique identifier in format {file_path}:{qualified_name}:{start_line}.
        kind: The kind of code unit.
        name: Short name of the unit.
        qualified_name: Dotted name including enclosing classes.
        file_path: Path relative to the parsed tree root.
        start_line: Line number where the unit begins (1-indexed).
        end_line: Line number where the unit ends (1-indexed).
        docstring: The docstring if present, None otherwise.
        signature: Parameter list and return annotation for callables.
        language: Programming language identifier.
        parent_id: ID of the enclosing compound, None for modules.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Unique compound identifier")
    kind: CompoundKind = Field(..., description="Kind of code unit")
    name: str = Field(..., description="Short name")
    qualified_name: str = Field(..., description="Dotted name including enclosing scopes")
    file_path: str = Field(..., description="Path relative to the tree root")
    start_line: int = Field(..., ge=1, description="Starting line number (1-indexed)")
    end_line: int = Field(..., ge=1, description="Ending line number (1-indexed)")
    docstring: str | None = Field(None, description="Docstring if present")
    signature: str | None = Field(None, description="Callable signature")
    language: str = Field(..., description="Programming language identifier")
    parent_id: str | None = Field(None, description="ID of the enclosing compound")
