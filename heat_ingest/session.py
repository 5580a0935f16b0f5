"""Explicit state carried between the steps of one CSV submission.

The upload step fills in contributor fields, the stored CSV text and the
submission id; the annotation step reads them back. One session object is
created per submission and passed along; nothing is kept at module level.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from .models import CsvAnalysisReport, VisualizationPoint
from .parsers.visualization_parser import parse_for_visualization


@dataclass
class SubmissionSession:
    name: Optional[str] = None
    email: Optional[str] = None
    area_of_interest: Optional[str] = None
    mode_of_transport: Optional[str] = None
    file_name: Optional[str] = None
    csv_text: Optional[str] = None
    csv_path: Optional[str] = None
    submission_id: Optional[int] = None
    report: Optional[CsvAnalysisReport] = None

    def contributor_fields(self) -> Dict[str, Optional[str]]:
        return {
            "name": self.name,
            "email": self.email,
            "area_of_interest": self.area_of_interest,
            "mode_of_transport": self.mode_of_transport,
        }

    def visualization_points(self) -> List[VisualizationPoint]:
        if not self.csv_text:
            return []
        return parse_for_visualization(self.csv_text)
