"""Header-matched parser for sensor exports with heterogeneous column names.

Columns are located from the header row by case-insensitive substring
matching against a prioritized list of candidate names per field. A field
without a matching column is absent for every row.
"""

from typing import Dict, List, Sequence
import logging

import pandas as pd

from ..models import (
    NUMERIC_COLUMNS,
    RECORD_COLUMNS,
    ColumnMap,
    CsvRecord,
    empty_record_frame,
    records_from_frame,
)
from .base_parser import BaseParser
from .csv_text import split_fields, split_lines, strip_subseconds

logger = logging.getLogger(__name__)

# First candidate that matches any header wins; within a candidate the
# leftmost matching header wins.
COLUMN_CANDIDATES: Dict[str, List[str]] = {
    "date": ["date"],
    "time": ["time"],
    "seconds": ["seconds", "elapsed", "sec"],
    "latitude": ["lat", "latitude"],
    "longitude": ["lng", "longitude", "lon"],
    "internal_temperature": ["internal temperature", "internal temp"],
    "probe_temperature": [
        "thermistor temperature",
        "probe temperature",
        "temperature probe",
        "probe temp",
    ],
}


def find_column_index(headers: Sequence[str], candidates: Sequence[str]):
    lowered = [h.lower() for h in headers]
    for candidate in candidates:
        needle = candidate.lower()
        for idx, header in enumerate(lowered):
            if needle in header:
                return idx
    return None


def build_column_map(headers: Sequence[str]) -> ColumnMap:
    """Build a ColumnMap from the header row."""
    headers = [h.strip().replace('"', "") for h in headers]
    indices = {
        field: find_column_index(headers, candidates)
        for field, candidates in COLUMN_CANDIDATES.items()
    }
    column_map = ColumnMap(headers=tuple(headers), **indices)
    missing = column_map.missing_fields()
    if missing:
        logger.debug("No matching header for fields: %s", missing)
    return column_map


def _value_at(values: Sequence[str], idx) -> str:
    if idx is None or idx >= len(values):
        return ""
    return values[idx]


def _split_date_time(values: Sequence[str], column_map: ColumnMap):
    date_value = _value_at(values, column_map.date)
    if " " in date_value:
        # Combined "11/08/2021 19:32:51.484" style column.
        parts = date_value.split(" ")
        date = parts[0]
        clock = parts[1] if len(parts) > 1 else ""
    else:
        date = date_value
        clock = _value_at(values, column_map.time)
    return date, strip_subseconds(clock)


class HeaderMatchedCsvParser(BaseParser):
    MODE = "header"

    def can_parse(self, mode: str) -> bool:
        return (mode or "").lower() == self.MODE

    def parse(self, text: str) -> pd.DataFrame:
        lines = split_lines(text, skip_blank=True)
        if len(lines) < 2:
            logger.debug("Header parse: fewer than 2 lines, no data rows")
            return empty_record_frame()

        column_map = build_column_map(split_fields(lines[0]))
        return self.decode(lines[1:], column_map)

    def decode(self, data_lines: Sequence[str], column_map: ColumnMap) -> pd.DataFrame:
        """Decode data lines with an existing ColumnMap.

        Rows where no numeric field could be decoded are logged and dropped.
        """
        rows = []
        for values in (split_fields(line) for line in data_lines):
            date, clock = _split_date_time(values, column_map)
            rows.append(
                [
                    date,
                    clock,
                    _value_at(values, column_map.seconds),
                    _value_at(values, column_map.latitude),
                    _value_at(values, column_map.longitude),
                    _value_at(values, column_map.internal_temperature),
                    _value_at(values, column_map.probe_temperature),
                ]
            )
        if not rows:
            return empty_record_frame()

        df = pd.DataFrame(rows, columns=RECORD_COLUMNS, dtype=object)
        df = self._coerce_frame(
            df,
            probe_header=column_map.header_of("probe_temperature"),
            internal_header=column_map.header_of("internal_temperature"),
        )

        unusable = df[NUMERIC_COLUMNS].isna().all(axis=1)
        if unusable.any():
            for idx in df.index[unusable]:
                logger.debug("Skipping CSV row %d: no usable field", int(idx) + 1)
            df = df.loc[~unusable].reset_index(drop=True)
        return df

    def get_mode(self) -> str:
        return self.MODE


def parse_header_matched_csv(text: str) -> List[CsvRecord]:
    """Decode CSV text by header matching, excluding rows with no usable field."""
    return records_from_frame(HeaderMatchedCsvParser().parse(text))
