"""Three-step annotation flow layered over a submitted route.

The contributor marks the hottest spot, then the coolest spot, then may
write a narrative and attach any number of extra notes. Each map click
opens a note prompt; a marker is only committed once a non-empty note is
confirmed.

    AWAITING_HOT_SPOT -> AWAITING_COOL_SPOT -> AWAITING_NARRATIVE -> DONE

DONE is reached only after the row store accepted the update.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional
import logging

from .colors import MarkerKind
from .session import SubmissionSession

logger = logging.getLogger(__name__)

SUBMISSIONS_TABLE = "csv_submissions"


class AnnotationError(ValueError):
    """Local validation failure; nothing was written."""


class SubmissionError(RuntimeError):
    """The row store rejected or failed the update."""


class SubmissionNotFoundError(SubmissionError, LookupError):
    """The submission row to annotate does not exist."""


class WizardState(Enum):
    AWAITING_HOT_SPOT = 1
    AWAITING_COOL_SPOT = 2
    AWAITING_NARRATIVE = 3
    DONE = 4


@dataclass(frozen=True)
class AnnotationMarker:
    lat: float
    lng: float
    note: str
    kind: MarkerKind

    def to_dict(self) -> Dict[str, object]:
        return {
            "lat": self.lat,
            "lng": self.lng,
            "note": self.note,
            "type": self.kind.value,
        }


@dataclass(frozen=True)
class PendingMarker:
    lat: float
    lng: float
    kind: MarkerKind


class AnnotationWizard:
    """State machine for the hot/cool/narrative annotation steps."""

    def __init__(self, session: SubmissionSession):
        self.session = session
        self.state = WizardState.AWAITING_HOT_SPOT
        self.hot_marker: Optional[AnnotationMarker] = None
        self.cool_marker: Optional[AnnotationMarker] = None
        self.extra_markers: List[AnnotationMarker] = []
        self.narrative = ""
        self.pending: Optional[PendingMarker] = None
        self.adding_extra = False

    def instruction(self) -> str:
        if self.state is WizardState.AWAITING_HOT_SPOT:
            return "Tap on the map where you felt the HOTTEST"
        if self.state is WizardState.AWAITING_COOL_SPOT:
            return "Tap on the map where you felt the COOLEST"
        if self.adding_extra:
            return "Tap on the map to add a note"
        return ""

    def click(self, lat: float, lng: float) -> Optional[PendingMarker]:
        """Handle a map click; returns the opened prompt, if any."""
        if self.state is WizardState.AWAITING_HOT_SPOT:
            kind = MarkerKind.HOT
        elif self.state is WizardState.AWAITING_COOL_SPOT:
            kind = MarkerKind.COOL
        elif self.state is WizardState.AWAITING_NARRATIVE and self.adding_extra:
            kind = MarkerKind.EXTRA
        else:
            return None

        self.pending = PendingMarker(lat=float(lat), lng=float(lng), kind=kind)
        return self.pending

    def confirm_note(self, note: str) -> Optional[AnnotationMarker]:
        """Commit the pending marker. Blank notes leave the prompt open."""
        if self.pending is None or not (note or "").strip():
            return None

        pending = self.pending
        marker = AnnotationMarker(
            lat=pending.lat, lng=pending.lng, note=note, kind=pending.kind
        )
        if pending.kind is MarkerKind.HOT:
            self.hot_marker = marker
            self.state = WizardState.AWAITING_COOL_SPOT
        elif pending.kind is MarkerKind.COOL:
            self.cool_marker = marker
            self.state = WizardState.AWAITING_NARRATIVE
        else:
            self.extra_markers.append(marker)
            self.adding_extra = False

        self.pending = None
        logger.debug("Committed %s marker at (%s, %s)", marker.kind.value, marker.lat, marker.lng)
        return marker

    def cancel(self) -> None:
        self.pending = None
        self.adding_extra = False

    def begin_extra(self) -> bool:
        """Enter the extra-note sub-mode; only possible while awaiting the narrative."""
        if self.state is not WizardState.AWAITING_NARRATIVE:
            return False
        self.adding_extra = True
        return True

    def set_narrative(self, text: str) -> None:
        self.narrative = text or ""

    def markers(self) -> List[AnnotationMarker]:
        found = [m for m in (self.hot_marker, self.cool_marker) if m is not None]
        return found + list(self.extra_markers)

    def build_payload(self) -> Dict[str, object]:
        if self.hot_marker is None or self.cool_marker is None:
            raise AnnotationError(
                "Please place both hot and cool markers before submitting."
            )
        return {
            "significance": self.narrative,
            "notes": [m.to_dict() for m in self.markers()],
        }

    def submit(self, row_store) -> Dict[str, object]:
        """Write the markers and narrative to the submission row.

        Raises AnnotationError before any write when markers or the
        submission id are missing, SubmissionNotFoundError when no row has
        that id, SubmissionError when the update otherwise fails.
        """
        if self.state is WizardState.DONE:
            raise AnnotationError("Annotations were already submitted.")
        payload = self.build_payload()
        if self.session.submission_id is None:
            raise AnnotationError(
                "No submission ID found. Please go back and resubmit your data."
            )

        try:
            row_store.update_row(SUBMISSIONS_TABLE, self.session.submission_id, payload)
        except LookupError as e:
            logger.warning("Submission %s not found: %s", self.session.submission_id, e)
            raise SubmissionNotFoundError(
                f"Submission {self.session.submission_id} not found"
            ) from e
        except Exception as e:
            logger.exception(
                "Failed to update submission %s with annotations",
                self.session.submission_id,
            )
            raise SubmissionError(f"Update failed: {e}") from e

        self.state = WizardState.DONE
        self.pending = None
        self.adding_extra = False
        logger.info(
            "Submission %s annotated with %d marker(s)",
            self.session.submission_id,
            len(payload["notes"]),
        )
        return payload


def _marker_args(marker: Dict[str, object]):
    try:
        return float(marker["lat"]), float(marker["lng"]), str(marker.get("note") or "")
    except (KeyError, TypeError, ValueError) as e:
        raise AnnotationError(f"Invalid marker: {marker!r}") from e


def replay_markers(
    session: SubmissionSession,
    markers: Iterable[Dict[str, object]],
    significance: str = "",
) -> AnnotationWizard:
    """Rebuild a wizard from a client-side marker list.

    Markers are applied hot first, then cool, then extras, exactly as the
    interactive flow would commit them.
    """
    markers = list(markers)
    by_kind: Dict[str, List[Dict[str, object]]] = {k.value: [] for k in MarkerKind}
    for marker in markers:
        if not isinstance(marker, Mapping):
            raise AnnotationError(f"Invalid marker: {marker!r}")
        kind = str(marker.get("type", "")).lower()
        if kind not in by_kind:
            raise AnnotationError(f"Unknown marker type: {marker.get('type')!r}")
        by_kind[kind].append(marker)

    for kind in (MarkerKind.HOT, MarkerKind.COOL):
        if len(by_kind[kind.value]) > 1:
            raise AnnotationError(f"Only one {kind.value} marker is allowed.")

    wizard = AnnotationWizard(session)
    for kind in (MarkerKind.HOT, MarkerKind.COOL):
        if not by_kind[kind.value]:
            break
        lat, lng, note = _marker_args(by_kind[kind.value][0])
        wizard.click(lat, lng)
        if wizard.confirm_note(note) is None:
            raise AnnotationError(f"The {kind.value} marker needs a note.")

    if wizard.state is WizardState.AWAITING_NARRATIVE:
        for marker in by_kind[MarkerKind.EXTRA.value]:
            lat, lng, note = _marker_args(marker)
            wizard.begin_extra()
            wizard.click(lat, lng)
            if wizard.confirm_note(note) is None:
                raise AnnotationError("Extra notes cannot be empty.")

    wizard.set_narrative(significance)
    return wizard
