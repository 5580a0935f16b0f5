"""Low level helpers for splitting raw sensor CSV text.

Uploaded files are tokenized naively: one record per line, comma separated,
double quotes stripped. Quoted fields containing commas are not supported.
"""

from typing import List

import pandas as pd

# Probe values at or above this are assumed to be Fahrenheit already,
# even when the header claims Celsius.
CELSIUS_GUARD_THRESHOLD = 50.0


def split_lines(text: str, skip_blank: bool = False) -> List[str]:
    """Split raw text into lines after trimming the whole payload."""
    if not text:
        return []
    lines = [line.rstrip("\r") for line in text.strip().split("\n")]
    if skip_blank:
        lines = [line for line in lines if line.strip()]
    return lines


def split_fields(line: str) -> List[str]:
    return [field.strip().replace('"', "") for field in line.split(",")]


def pad_fields(fields: List[str], width: int) -> List[str]:
    """Pad (or cut) a field list to exactly `width` entries."""
    if len(fields) >= width:
        return fields[:width]
    return fields + [""] * (width - len(fields))


def strip_subseconds(clock: str) -> str:
    """'19:32:51.484' -> '19:32:51'."""
    if not clock:
        return ""
    return clock.split(".")[0]


def is_celsius_header(header: str) -> bool:
    lowered = (header or "").lower()
    return "°c" in lowered or "celsius" in lowered


def celsius_to_fahrenheit(values: pd.Series) -> pd.Series:
    """Convert Celsius readings below the guard threshold to Fahrenheit.

    NaN and values at or above CELSIUS_GUARD_THRESHOLD are left untouched.
    """
    mask = values.notna() & (values < CELSIUS_GUARD_THRESHOLD)
    converted = values.copy()
    converted[mask] = values[mask] * 9 / 5 + 32
    return converted


def coerce_numeric(values: pd.Series) -> pd.Series:
    """Blank, non-numeric or non-finite strings become NaN."""
    numeric = pd.to_numeric(values, errors="coerce").astype(float)
    return numeric.mask(numeric.abs() == float("inf"))


def mask_out_of_range(values: pd.Series, low: float, high: float) -> pd.Series:
    """Replace values outside [low, high] with NaN."""
    return values.where(values.between(low, high))
