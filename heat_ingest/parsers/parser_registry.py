"""Simple registry mapping decoding modes to parser implementations."""

from typing import Optional, List

from .base_parser import BaseParser
from .positional_parser import PositionalCsvParser
from .header_parser import HeaderMatchedCsvParser
from .visualization_parser import VisualizationCsvParser


class ParserRegistry:
    def __init__(self):
        # Order matters only for get_modes(); modes are unique
        self.parsers: List[BaseParser] = [
            PositionalCsvParser(),
            HeaderMatchedCsvParser(),
            VisualizationCsvParser(),
        ]

    def get_parser(self, mode: str) -> Optional[BaseParser]:
        for p in self.parsers:
            if p.can_parse(mode):
                return p
        return None

    def get_modes(self) -> List[str]:
        return [p.get_mode() for p in self.parsers]

    def get_supported_extensions(self) -> List[str]:
        return [".csv"]
