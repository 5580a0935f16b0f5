"""
Submission workflows shared by the drop-folder service and the web API.
Kept free of Flask and watchdog so it can be unit tested with fakes.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional
import logging
import uuid

from .analyzer import ValidationSummary, report_to_row, summarize
from .colors import ComfortLevel
from .parsers.positional_parser import parse_positional_csv
from .session import SubmissionSession

CSV_TABLE = "csv_submissions"
IMAGE_TABLE = "image_submissions"


@dataclass(frozen=True)
class SubmissionResult:
    summary: ValidationSummary
    accepted: bool
    submission_id: Optional[int] = None
    csv_path: Optional[str] = None

    def to_dict(self) -> Dict[str, object]:
        payload = self.summary.to_dict()
        payload.update(
            {
                "accepted": self.accepted,
                "submissionId": self.submission_id,
                "csvPath": self.csv_path,
            }
        )
        return payload


def _unique_blob_name(prefix: str, file_name: Optional[str], extension: str) -> str:
    stem = Path(file_name).stem if file_name else "upload"
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    unique_id = str(uuid.uuid4())[:8]
    return f"{prefix}/{stem}_{timestamp}_{unique_id}.{extension}"


def submit_csv(
    session: SubmissionSession,
    csv_text: str,
    storage,
    db_writer,
    submit_anyway: bool = False,
    preview_limit: int = 5,
    logger=None,
) -> SubmissionResult:
    """
    Validate an uploaded sensor CSV and persist it with its report.
    Args:
        session: SubmissionSession carrying contributor fields; updated in place
            with the text, report, blob path and submission id.
        csv_text: Raw file content.
        storage: StorageBackend for the raw file.
        db_writer: Row store (insert_row).
        submit_anyway: Persist even when the report lists issues. Files without
            any data row are never persisted.
    Returns:
        SubmissionResult; `accepted` is False when nothing was written.
    Raises:
        Exception: storage or row store failures propagate unchanged.
    """
    if logger is None:
        logger = logging.getLogger("heat_ingest.logic")

    records = parse_positional_csv(csv_text)
    summary = summarize(records, preview_limit)
    session.csv_text = csv_text
    session.report = summary.report

    if summary.report.num_records == 0:
        logger.info(f"Rejected {session.file_name or 'upload'}: no data rows")
        return SubmissionResult(summary=summary, accepted=False)
    if summary.issues and not submit_anyway:
        return SubmissionResult(summary=summary, accepted=False)

    csv_path = storage.store_blob(
        _unique_blob_name("csv", session.file_name, "csv"), csv_text.encode("utf-8")
    )
    row = dict(session.contributor_fields())
    row["csv_url"] = csv_path
    row.update(report_to_row(summary.report, records))

    try:
        submission_id = db_writer.insert_row(CSV_TABLE, row)
    except Exception:
        logger.error(f"Row insert failed, removing stored blob {csv_path}")
        try:
            storage.delete_file(csv_path)
        except Exception:
            logger.exception("Failed to remove orphaned blob")
        raise

    session.csv_path = csv_path
    session.submission_id = submission_id
    logger.info(
        f"Stored CSV submission {submission_id} "
        f"({summary.report.num_records} records, {len(summary.issues)} issue(s))"
    )
    return SubmissionResult(
        summary=summary,
        accepted=True,
        submission_id=submission_id,
        csv_path=csv_path,
    )


def time_of_day(dt: datetime) -> str:
    hour = dt.hour
    if 5 <= hour < 7:
        return "dawn"
    if 7 <= hour < 12:
        return "morning"
    if 12 <= hour < 14:
        return "noon"
    if 14 <= hour < 17:
        return "afternoon"
    if 17 <= hour < 19:
        return "evening"
    if 19 <= hour < 22:
        return "dusk"
    return "night"


def submit_image(
    image: bytes,
    comfort_level: str,
    lat: float,
    lng: float,
    storage,
    db_writer,
    created_at: Optional[datetime] = None,
    comment: Optional[str] = None,
    tags: Iterable[str] = (),
    extension: str = "jpg",
) -> int:
    """Store a geotagged photo observation and return its row id.

    Tags are the user tags plus the lowercase comfort level and the
    time-of-day bucket of `created_at`.
    """
    if not image:
        raise ValueError("Missing image")
    level = ComfortLevel.from_label(comfort_level)
    if not (-90 <= float(lat) <= 90 and -180 <= float(lng) <= 180):
        raise ValueError(f"Invalid coordinates: ({lat}, {lng})")

    created_at = created_at or datetime.now(timezone.utc)
    stamp = created_at.strftime("%Y-%m-%d-%H-%M-%S")
    path = storage.store_blob(f"images/submission-{stamp}-{uuid.uuid4().hex[:6]}.{extension}", image)

    all_tags = [t for t in tags if t] + [level.value.lower(), time_of_day(created_at)]
    return db_writer.insert_row(
        IMAGE_TABLE,
        {
            "image_url": path,
            "comfort_level": level.value,
            "comment": comment,
            "lat": float(lat),
            "long": float(lng),
            "created_at": created_at.isoformat(),
            "tags": all_tags,
        },
    )


@dataclass(frozen=True)
class TagStory:
    tag: str
    image_url: str
    submission_id: int
    comfort_level: str
    image_count: int

    def to_dict(self) -> Dict[str, object]:
        return {
            "tag": self.tag,
            "imageUrl": self.image_url,
            "submissionId": self.submission_id,
            "comfortLevel": self.comfort_level,
            "imageCount": self.image_count,
        }


def tag_stories(db_writer, storage, expires_in: int = 3600, logger=None) -> List[TagStory]:
    """One story per tag: the first photo carrying it plus how many do.

    Tags whose representative photo cannot be signed are skipped.
    """
    if logger is None:
        logger = logging.getLogger("heat_ingest.logic")

    rows = db_writer.fetch_rows(IMAGE_TABLE, not_null=["tags"], order_by="created_at")
    first_by_tag: Dict[str, dict] = {}
    counts: Dict[str, int] = {}
    for row in rows:
        tags = row.get("tags")
        if not isinstance(tags, list):
            continue
        for tag in tags:
            counts[tag] = counts.get(tag, 0) + 1
            first_by_tag.setdefault(tag, row)

    stories = []
    for tag, row in first_by_tag.items():
        try:
            url = storage.signed_url(row["image_url"], expires_in)
        except Exception as e:
            logger.warning(f"Error creating signed URL for {tag}: {e}")
            continue
        stories.append(
            TagStory(
                tag=tag,
                image_url=url,
                submission_id=row.get("id"),
                comfort_level=row.get("comfort_level"),
                image_count=counts[tag],
            )
        )
    stories.sort(key=lambda s: (-s.image_count, s.tag))
    return stories


def _read_text(filepath: Path) -> str:
    raw = Path(filepath).read_bytes().replace(b"\x00", b"")
    return raw.decode("utf-8-sig", errors="replace")


def process_csv_file(filepath: Path, storage, db_writer, file_manager, logger=None) -> str:
    """
    Ingest one CSV dropped into the incoming directory.
    Args:
        filepath (Path): File to process.
        storage: StorageBackend for the raw file.
        db_writer: DBWriter instance (connect, insert_row).
        file_manager: FileManager instance (archive_file, quarantine_file).
        logger: Optional logger (default: None).
    Returns:
        str: 'accepted' (archived) or 'rejected' (quarantined, no data rows).
    Raises:
        Exception: any processing error; the file is quarantined first.
    """
    if logger is None:
        logger = logging.getLogger("heat_ingest.logic")
    filepath = Path(filepath)
    logger.info(f"Processing file: {filepath}")

    try:
        db_writer.connect()
    except Exception as e:
        logger.exception("Failed to connect to DB")
        file_manager.quarantine_file(filepath, f"DB connection failed: {e}")
        raise

    try:
        session = SubmissionSession(file_name=filepath.name)
        # No one to acknowledge issues here; they are recorded in the row flags
        result = submit_csv(
            session, _read_text(filepath), storage, db_writer, submit_anyway=True, logger=logger
        )
        if not result.accepted:
            file_manager.quarantine_file(
                filepath,
                "; ".join(i.message for i in result.summary.issues),
                issues=[i.to_dict() for i in result.summary.issues],
            )
            return "rejected"

        if result.summary.issues:
            logger.warning(
                "Accepted %s with issues: %s",
                filepath.name,
                [i.code for i in result.summary.issues],
            )
        file_manager.archive_file(filepath)
        return "accepted"
    except Exception as e:
        logger.exception("Error handling file")
        file_manager.quarantine_file(filepath, str(e))
        raise
