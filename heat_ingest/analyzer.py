"""Completeness analysis of decoded sensor records.

The missing-* flags use any-match semantics: a single row without a value
taints the whole report.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Union
import logging

import pandas as pd

from .models import CsvAnalysisReport, CsvRecord, frame_from_records

logger = logging.getLogger(__name__)

RecordsLike = Union[pd.DataFrame, Sequence[CsvRecord]]


def _as_frame(records: RecordsLike) -> pd.DataFrame:
    if isinstance(records, pd.DataFrame):
        return records
    return frame_from_records(list(records))


def elapsed_minutes(seconds: pd.Series) -> float:
    """(max - min) / 60 over present values, rounded to 2 decimals.

    Returns 0.0 when no finite value is present.
    """
    present = seconds.dropna()
    present = present[present.abs() != float("inf")]
    if present.empty:
        return 0.0
    return round(float(present.max() - present.min()) / 60, 2)


def analyze_csv_records(records: RecordsLike) -> CsvAnalysisReport:
    """Build a CsvAnalysisReport from a record sequence or record frame."""
    df = _as_frame(records)
    if df.empty:
        return CsvAnalysisReport(
            num_records=0,
            missing_lat_lng=False,
            missing_internal_temp=False,
            missing_probe_temp=False,
            total_minutes=0.0,
        )

    return CsvAnalysisReport(
        num_records=len(df),
        missing_lat_lng=bool(
            (df["latitude"].isna() | df["longitude"].isna()).any()
        ),
        missing_internal_temp=bool(df["internal_temperature"].isna().any()),
        missing_probe_temp=bool(df["probe_temperature"].isna().any()),
        total_minutes=elapsed_minutes(df["elapsed_seconds"]),
    )


def _flag(value: bool) -> str:
    return "TRUE" if value else "FALSE"


def is_complete(report: CsvAnalysisReport) -> bool:
    return report.num_records > 0 and not (
        report.missing_lat_lng
        or report.missing_internal_temp
        or report.missing_probe_temp
    )


def _timestamp(record: CsvRecord) -> Optional[str]:
    text = f"{record.date} {record.time}".strip()
    return text or None


def report_to_row(
    report: CsvAnalysisReport, records: Sequence[CsvRecord] = ()
) -> Dict[str, object]:
    """Fields persisted to the csv_submissions row for a validated upload."""
    stamps = [s for s in (_timestamp(r) for r in records) if s]
    return {
        "num_records": report.num_records,
        "has_lat_lng": _flag(not report.missing_lat_lng),
        "has_internal_temp": _flag(not report.missing_internal_temp),
        "has_probe_temp": _flag(not report.missing_probe_temp),
        "time_taken": report.total_minutes,
        "complete": _flag(is_complete(report)),
        "start_time": stamps[0] if stamps else None,
        "stop_time": stamps[-1] if stamps else None,
    }


@dataclass(frozen=True)
class ValidationIssue:
    code: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"code": self.code, "message": self.message}


def validation_issues(report: CsvAnalysisReport) -> List[ValidationIssue]:
    """Itemized problems shown to the contributor before submission."""
    if report.num_records == 0:
        return [ValidationIssue("no_records", "No valid data rows found")]

    issues = []
    if report.missing_lat_lng:
        issues.append(
            ValidationIssue(
                "missing_lat_lng",
                "Some rows are missing latitude/longitude coordinates",
            )
        )
    if report.missing_internal_temp:
        issues.append(
            ValidationIssue(
                "missing_internal_temp",
                "Some rows are missing the internal temperature",
            )
        )
    if report.missing_probe_temp:
        issues.append(
            ValidationIssue(
                "missing_probe_temp",
                "Some rows are missing the probe temperature",
            )
        )
    return issues


def preview_rows(records: Sequence[CsvRecord], limit: int = 5) -> List[Dict[str, object]]:
    return [r.to_dict() for r in list(records)[:limit]]


@dataclass(frozen=True)
class ValidationSummary:
    """Report, itemized issues and a short preview of one upload."""

    report: CsvAnalysisReport
    issues: List[ValidationIssue] = field(default_factory=list)
    preview: List[Dict[str, object]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.issues

    def to_dict(self) -> Dict[str, object]:
        return {
            "report": self.report.to_dict(),
            "issues": [i.to_dict() for i in self.issues],
            "preview": self.preview,
        }


def summarize(records: Sequence[CsvRecord], preview_limit: int = 5) -> ValidationSummary:
    report = analyze_csv_records(records)
    issues = validation_issues(report)
    if issues:
        logger.info(
            "CSV validation found %d issue(s): %s",
            len(issues),
            [i.code for i in issues],
        )
    return ValidationSummary(
        report=report,
        issues=issues,
        preview=preview_rows(records, preview_limit),
    )
