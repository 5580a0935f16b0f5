"""Strict, lossy decoding of stored CSV text for map rendering."""

from typing import List
import logging

import pandas as pd

from ..models import VisualizationPoint
from .header_parser import HeaderMatchedCsvParser

logger = logging.getLogger(__name__)


class VisualizationCsvParser(HeaderMatchedCsvParser):
    """Header-matched decoding that keeps only drawable points.

    A row is kept when it has valid coordinates and at least one
    temperature. A missing probe temperature falls back to the internal
    one and vice versa, so every kept row has both.
    """

    MODE = "visualization"

    def parse(self, text: str) -> pd.DataFrame:
        df = super().parse(text)
        if df.empty:
            return df

        drawable = (
            df["latitude"].notna()
            & df["longitude"].notna()
            & (df["probe_temperature"].notna() | df["internal_temperature"].notna())
        )
        dropped = int((~drawable).sum())
        if dropped:
            logger.debug("Visualization parse dropped %d undrawable row(s)", dropped)

        df = df.loc[drawable].reset_index(drop=True)
        probe = df["probe_temperature"].fillna(df["internal_temperature"])
        internal = df["internal_temperature"].fillna(df["probe_temperature"])
        df["probe_temperature"] = probe
        df["internal_temperature"] = internal
        return df


def points_from_frame(df: pd.DataFrame) -> List[VisualizationPoint]:
    if df is None or df.empty:
        return []
    return [
        VisualizationPoint(
            date=row.date,
            time=row.time,
            lat=float(row.latitude),
            lng=float(row.longitude),
            probe_temp=float(row.probe_temperature),
            internal_temp=float(row.internal_temperature),
        )
        for row in df.itertuples(index=False)
    ]


def parse_for_visualization(text: str) -> List[VisualizationPoint]:
    """Return the drawable points of a stored CSV upload."""
    return points_from_frame(VisualizationCsvParser().parse(text))
