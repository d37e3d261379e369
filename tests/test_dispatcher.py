"""Tests for the parser registry and dispatch."""

from pathlib import Path

import pytest

from core.ingestion.dispatcher import ParserDispatcher
from core.ingestion.errors import ParseError, UnknownParserError
from core.ingestion.models import PipelineStage
from core.parser import Compound, CompoundKind, CompoundParser, PythonCompoundParser


def _compound(compound_id: str) -> Compound:
    return Compound(
        id=compound_id,
        kind=CompoundKind.FUNCTION,
        name=compound_id,
        qualified_name=compound_id,
        file_path="mod.py",
        start_line=1,
        end_line=1,
        language="python",
    )


class StaticParser(CompoundParser):
    """Parser returning a fixed result."""

    parser_id = "static"

    def __init__(self, result: object) -> None:
        self.result = result
        self.roots: list[Path] = []

    async def parse_tree(self, root: Path) -> list[Compound]:
        self.roots.append(root)
        return self.result  # type: ignore[return-value]


class TestRegistry:
    """Tests for parser registration and lookup."""

    def test_defaults_include_python(self):
        dispatcher = ParserDispatcher.with_defaults()

        assert dispatcher.available() == ["python"]
        assert isinstance(dispatcher.get("python"), PythonCompoundParser)

    def test_register_under_parser_id(self):
        parser = StaticParser([])
        dispatcher = ParserDispatcher([parser])

        assert dispatcher.get("static") is parser

    def test_register_replaces(self):
        first, second = StaticParser([]), StaticParser([])
        dispatcher = ParserDispatcher([first])

        dispatcher.register("static", second)

        assert dispatcher.get("static") is second

    def test_unregister(self):
        dispatcher = ParserDispatcher([StaticParser([])])

        dispatcher.unregister("static")
        dispatcher.unregister("static")

        assert dispatcher.available() == []

    def test_blank_id_rejected(self):
        with pytest.raises(ValueError):
            ParserDispatcher().register(" ", StaticParser([]))

    def test_lookup_is_case_sensitive(self):
        dispatcher = ParserDispatcher.with_defaults()

        with pytest.raises(UnknownParserError):
            dispatcher.get("Python")

    def test_unknown_parser_lists_registered(self):
        dispatcher = ParserDispatcher.with_defaults()

        with pytest.raises(UnknownParserError, match="python") as exc_info:
            dispatcher.get("cobol")

        assert "cobol" in str(exc_info.value)
        assert exc_info.value.stage == PipelineStage.PARSE


class TestParse:
    """Tests for ParserDispatcher.parse."""

    @pytest.mark.asyncio
    async def test_returns_parser_output(self, tmp_path):
        compounds = [_compound("a"), _compound("b")]
        parser = StaticParser(compounds)
        dispatcher = ParserDispatcher([parser])

        result = await dispatcher.parse(tmp_path, "static")

        assert result == compounds
        assert parser.roots == [tmp_path]

    @pytest.mark.asyncio
    async def test_empty_result_is_valid(self, tmp_path):
        dispatcher = ParserDispatcher([StaticParser([])])

        assert await dispatcher.parse(tmp_path, "static") == []

    @pytest.mark.asyncio
    async def test_unknown_parser(self, tmp_path):
        with pytest.raises(UnknownParserError):
            await ParserDispatcher().parse(tmp_path, "python")

    @pytest.mark.asyncio
    async def test_parser_exception_is_wrapped(self, tmp_path, make_failing_parser):
        cause = RuntimeError("parser exploded")
        dispatcher = ParserDispatcher([make_failing_parser(cause)])

        with pytest.raises(ParseError, match="parser exploded") as exc_info:
            await dispatcher.parse(tmp_path, "failing")

        assert exc_info.value.__cause__ is cause
        assert exc_info.value.stage == PipelineStage.PARSE

    @pytest.mark.asyncio
    @pytest.mark.parametrize("result", [None, "compounds", {"a": 1}])
    async def test_non_list_result(self, tmp_path, result):
        dispatcher = ParserDispatcher([StaticParser(result)])

        with pytest.raises(ParseError, match="expected a list"):
            await dispatcher.parse(tmp_path, "static")

    @pytest.mark.asyncio
    async def test_non_compound_items(self, tmp_path):
        dispatcher = ParserDispatcher([StaticParser([_compound("a"), {"id": "b"}])])

        with pytest.raises(ParseError, match="expected Compound"):
            await dispatcher.parse(tmp_path, "static")

    @pytest.mark.asyncio
    async def test_duplicate_ids(self, tmp_path):
        dispatcher = ParserDispatcher([StaticParser([_compound("a"), _compound("a")])])

        with pytest.raises(ParseError, match="duplicate"):
            await dispatcher.parse(tmp_path, "static")

    @pytest.mark.asyncio
    async def test_python_parser_end_to_end(self, tmp_path, simple_function_code):
        (tmp_path / "greetings.py").write_text(simple_function_code)

        result = await ParserDispatcher.with_defaults().parse(tmp_path, "python")

        assert [c.qualified_name for c in result] == ["greetings", "greetings.greet"]
