"""Value objects shared by the parsers, the analyzer and the services.

Parsers work on a pandas "record frame" (one row per decoded CSV line,
columns in RECORD_COLUMNS order, NaN for absent values). The dataclasses
below are the typed view of the same data handed to callers.
"""

from dataclasses import dataclass, asdict
from typing import Dict, List, Optional, Sequence

import pandas as pd

# Semantic fields detected in uploaded sensor files.
SEMANTIC_FIELDS = [
    "date",
    "time",
    "seconds",
    "latitude",
    "longitude",
    "internal_temperature",
    "probe_temperature",
]

# Canonical record frame layout shared by every parser.
RECORD_COLUMNS = [
    "date",
    "time",
    "elapsed_seconds",
    "latitude",
    "longitude",
    "internal_temperature",
    "probe_temperature",
]

NUMERIC_COLUMNS = RECORD_COLUMNS[2:]


@dataclass(frozen=True)
class ColumnMap:
    """Index of the best matching header per semantic field (None = absent)."""

    date: Optional[int] = None
    time: Optional[int] = None
    seconds: Optional[int] = None
    latitude: Optional[int] = None
    longitude: Optional[int] = None
    internal_temperature: Optional[int] = None
    probe_temperature: Optional[int] = None
    headers: Sequence[str] = ()

    def index_of(self, field: str) -> Optional[int]:
        if field not in SEMANTIC_FIELDS:
            raise KeyError(f"Unknown semantic field: {field}")
        return getattr(self, field)

    def header_of(self, field: str) -> str:
        """Return the matched header text for a field, or '' when absent."""
        idx = self.index_of(field)
        if idx is None or idx >= len(self.headers):
            return ""
        return self.headers[idx]

    def missing_fields(self) -> List[str]:
        return [f for f in SEMANTIC_FIELDS if getattr(self, f) is None]


@dataclass(frozen=True)
class CsvRecord:
    """One decoded data row. Absent values are None."""

    date: str = ""
    time: str = ""
    elapsed_seconds: Optional[float] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    internal_temperature: Optional[float] = None
    probe_temperature: Optional[float] = None

    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


@dataclass(frozen=True)
class VisualizationPoint:
    """A drawable point of a route; every field is concrete."""

    date: str
    time: str
    lat: float
    lng: float
    probe_temp: float
    internal_temp: float

    def to_dict(self) -> Dict[str, object]:
        return {
            "date": self.date,
            "time": self.time,
            "lat": self.lat,
            "lng": self.lng,
            "probeTemp": self.probe_temp,
            "internalTemp": self.internal_temp,
        }


@dataclass(frozen=True)
class CsvAnalysisReport:
    """Completeness summary of one uploaded file."""

    num_records: int
    missing_lat_lng: bool
    missing_internal_temp: bool
    missing_probe_temp: bool
    total_minutes: float

    def to_dict(self) -> Dict[str, object]:
        return {
            "numRecords": self.num_records,
            "missingLatLng": self.missing_lat_lng,
            "missingInternalTemp": self.missing_internal_temp,
            "missingProbeTemp": self.missing_probe_temp,
            "totalMinutes": self.total_minutes,
        }


def empty_record_frame() -> pd.DataFrame:
    df = pd.DataFrame({col: pd.Series(dtype=object) for col in RECORD_COLUMNS[:2]})
    for col in NUMERIC_COLUMNS:
        df[col] = pd.Series(dtype=float)
    return df


def _optional_float(value) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    return float(value)


def records_from_frame(df: pd.DataFrame) -> List[CsvRecord]:
    """Convert a record frame into CsvRecord objects (NaN -> None)."""
    if df is None or df.empty:
        return []

    records = []
    for row in df.loc[:, RECORD_COLUMNS].itertuples(index=False):
        records.append(
            CsvRecord(
                date=row.date if isinstance(row.date, str) else "",
                time=row.time if isinstance(row.time, str) else "",
                elapsed_seconds=_optional_float(row.elapsed_seconds),
                latitude=_optional_float(row.latitude),
                longitude=_optional_float(row.longitude),
                internal_temperature=_optional_float(row.internal_temperature),
                probe_temperature=_optional_float(row.probe_temperature),
            )
        )
    return records


def frame_from_records(records: Sequence[CsvRecord]) -> pd.DataFrame:
    """Build a record frame from CsvRecord objects (None -> NaN)."""
    if not records:
        return empty_record_frame()

    df = pd.DataFrame([r.to_dict() for r in records], columns=RECORD_COLUMNS)
    for col in NUMERIC_COLUMNS:
        df[col] = pd.to_numeric(df[col], errors="coerce")
    return df
