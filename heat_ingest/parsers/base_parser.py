"""Abstract base class for sensor CSV parsers."""

from abc import ABC, abstractmethod
from typing import Optional, Tuple
import logging

import pandas as pd

from .csv_text import (
    celsius_to_fahrenheit,
    coerce_numeric,
    is_celsius_header,
    mask_out_of_range,
)

logger = logging.getLogger(__name__)


class BaseParser(ABC):
    @abstractmethod
    def can_parse(self, mode: str) -> bool:
        """Return True if this parser implements the given decoding mode."""

    @abstractmethod
    def parse(self, text: str) -> pd.DataFrame:
        """Decode raw CSV text into a record frame. Never raises for bad rows."""

    @abstractmethod
    def get_mode(self) -> str:
        """Return the decoding mode name, e.g. 'positional' or 'header'."""

    def validate_dataframe(self, df: pd.DataFrame) -> Tuple[bool, Optional[str]]:
        """Optional common validation hook for record frames."""
        if df is None:
            return False, "No dataframe"
        if df.empty:
            return False, "No valid data rows found"
        return True, None

    def _coerce_frame(
        self, df: pd.DataFrame, probe_header: str = "", internal_header: str = ""
    ) -> pd.DataFrame:
        """Numeric coercion, range checks and unit normalization.

        Expects string columns named as in RECORD_COLUMNS.
        """
        for col in (
            "elapsed_seconds",
            "latitude",
            "longitude",
            "internal_temperature",
            "probe_temperature",
        ):
            df[col] = coerce_numeric(df[col])

        df["latitude"] = mask_out_of_range(df["latitude"], -90, 90)
        df["longitude"] = mask_out_of_range(df["longitude"], -180, 180)

        if is_celsius_header(probe_header):
            logger.debug("Probe column %r is Celsius, converting", probe_header)
            df["probe_temperature"] = celsius_to_fahrenheit(df["probe_temperature"])
        if is_celsius_header(internal_header):
            logger.debug("Internal column %r is Celsius, converting", internal_header)
            df["internal_temperature"] = celsius_to_fahrenheit(
                df["internal_temperature"]
            )
        return df
