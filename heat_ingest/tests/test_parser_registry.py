"""Tests for ParserRegistry."""

from ..parsers.header_parser import HeaderMatchedCsvParser
from ..parsers.parser_registry import ParserRegistry
from ..parsers.positional_parser import PositionalCsvParser
from ..parsers.visualization_parser import VisualizationCsvParser


def test_registry_finds_parser_per_mode():
    registry = ParserRegistry()

    assert isinstance(registry.get_parser("positional"), PositionalCsvParser)
    assert isinstance(registry.get_parser("visualization"), VisualizationCsvParser)
    parser = registry.get_parser("header")
    assert isinstance(parser, HeaderMatchedCsvParser)
    assert not isinstance(parser, VisualizationCsvParser)


def test_registry_returns_none_for_unknown_mode():
    registry = ParserRegistry()
    assert registry.get_parser("netcdf") is None
    assert registry.get_parser(None) is None


def test_registry_modes_and_extensions():
    registry = ParserRegistry()
    assert registry.get_modes() == ["positional", "header", "visualization"]
    assert registry.get_supported_extensions() == [".csv"]
