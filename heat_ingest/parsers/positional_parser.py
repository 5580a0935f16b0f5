"""Fixed-layout parser used for upload validation.

The feed is assumed to be exactly seven columns in order:
date, time, seconds, lat, lng, internal temperature, probe temperature.
Every data line becomes a record, including lines whose values are all
unusable, so the report row count matches the file. The header line is
skipped without being inspected and values are taken as-is, with no unit
conversion.
"""

from typing import List
import logging

import pandas as pd

from ..models import RECORD_COLUMNS, CsvRecord, empty_record_frame, records_from_frame
from .base_parser import BaseParser
from .csv_text import pad_fields, split_fields, split_lines, strip_subseconds

logger = logging.getLogger(__name__)


class PositionalCsvParser(BaseParser):
    MODE = "positional"
    WIDTH = len(RECORD_COLUMNS)

    def can_parse(self, mode: str) -> bool:
        return (mode or "").lower() == self.MODE

    def parse(self, text: str) -> pd.DataFrame:
        lines = split_lines(text)
        if len(lines) < 2:
            logger.debug("Positional parse: fewer than 2 lines, no data rows")
            return empty_record_frame()

        rows = [pad_fields(split_fields(line), self.WIDTH) for line in lines[1:]]

        df = pd.DataFrame(rows, columns=RECORD_COLUMNS, dtype=object)
        df["time"] = df["time"].map(strip_subseconds)
        df = self._coerce_frame(df)

        unusable = df[RECORD_COLUMNS[2:]].isna().all(axis=1) & (df["date"] == "") & (
            df["time"] == ""
        )
        if unusable.any():
            # Still counted as records.
            logger.debug(
                "Positional parse: %d row(s) without any usable field, lines %s",
                int(unusable.sum()),
                [int(i) + 2 for i in df.index[unusable][:10]],
            )
        return df

    def get_mode(self) -> str:
        return self.MODE


def parse_positional_csv(text: str) -> List[CsvRecord]:
    """Decode fixed seven-column CSV text into records (one per data line)."""
    return records_from_frame(PositionalCsvParser().parse(text))
