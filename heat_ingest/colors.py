"""Temperature color scales, temperature statistics and marker styling."""

from bisect import bisect_right
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Sequence, Tuple

from .models import VisualizationPoint


@dataclass(frozen=True)
class TemperatureScale:
    """Piecewise-constant mapping from a temperature to a color token.

    ``colors[i]`` covers values below ``breakpoints[i]`` (and at or above the
    previous breakpoint); values at or above the last breakpoint get the
    last color.
    """

    name: str
    breakpoints: Tuple[float, ...]
    colors: Tuple[str, ...]

    def __post_init__(self):
        if len(self.colors) != len(self.breakpoints) + 1:
            raise ValueError(
                f"Scale {self.name!r} needs {len(self.breakpoints) + 1} colors, "
                f"got {len(self.colors)}"
            )
        if list(self.breakpoints) != sorted(self.breakpoints):
            raise ValueError(f"Scale {self.name!r} breakpoints must be ascending")

    def color_for(self, temp: float) -> str:
        return self.colors[bisect_right(self.breakpoints, temp)]


# Legacy low-resolution scale; breakpoints read as Celsius.
COARSE_SCALE = TemperatureScale(
    name="coarse",
    breakpoints=(28, 30, 32),
    colors=("blue", "lime", "orange", "red"),
)

# Fahrenheit scale used for route rendering.
FINE_SCALE = TemperatureScale(
    name="fine",
    breakpoints=(40, 50, 60, 65, 70, 75, 80, 85, 90, 95, 100),
    colors=(
        "#0066cc",  # very cold
        "#0099ff",
        "#00ccff",
        "#33ffcc",
        "#66ff99",  # comfortable
        "#99ff66",
        "#ccff33",
        "#ffff00",  # hot
        "#ffcc00",
        "#ff9900",
        "#ff6600",
        "#ff0000",  # extreme heat
    ),
)

SCALES: Dict[str, TemperatureScale] = {
    COARSE_SCALE.name: COARSE_SCALE,
    FINE_SCALE.name: FINE_SCALE,
}


def get_scale(name: str) -> TemperatureScale:
    try:
        return SCALES[(name or "").lower()]
    except KeyError:
        raise ValueError(
            f"Unknown temperature scale: {name!r}. Available: {sorted(SCALES)}"
        ) from None


def color_for(temp: float, scale: TemperatureScale = FINE_SCALE) -> str:
    return scale.color_for(temp)


def temperature_to_rgb(temp: float, scale: TemperatureScale = FINE_SCALE) -> Dict[str, int]:
    """RGB components of a hex-colored scale bucket."""
    color = scale.color_for(temp)
    if not color.startswith("#") or len(color) != 7:
        raise ValueError(f"Scale {scale.name!r} does not use hex colors")
    return {
        "r": int(color[1:3], 16),
        "g": int(color[3:5], 16),
        "b": int(color[5:7], 16),
    }


@dataclass(frozen=True)
class TemperatureStats:
    min: float
    max: float
    avg: float
    count: int

    def to_dict(self) -> Dict[str, float]:
        return {"min": self.min, "max": self.max, "avg": self.avg, "count": self.count}


def temperature_stats(points: Sequence[VisualizationPoint]) -> TemperatureStats:
    """Min/max/avg of the positive probe temperatures, rounded to 1 decimal."""
    temps = [p.probe_temp for p in points if p.probe_temp > 0]
    if not temps:
        return TemperatureStats(min=0, max=0, avg=0, count=0)
    return TemperatureStats(
        min=round(min(temps), 1),
        max=round(max(temps), 1),
        avg=round(sum(temps) / len(temps), 1),
        count=len(temps),
    )


def format_temperature(temp: float) -> str:
    return f"{round(temp, 1)}°F"


# ---------------------------------------------------------------------------
# Comfort levels and marker kinds


class ComfortLevel(Enum):
    FREEZING = "Freezing"
    CHILLY = "Chilly"
    COMFORTABLE = "Comfortable"
    WARM = "Warm"
    HOT = "Hot"
    SWELTERING = "Sweltering"

    @classmethod
    def from_label(cls, label: str) -> "ComfortLevel":
        """Case-insensitive lookup; raises ValueError for unknown labels."""
        for level in cls:
            if level.value.lower() == (label or "").strip().lower():
                return level
        raise ValueError(
            f"Unknown comfort level: {label!r}. Expected one of "
            f"{[lvl.value for lvl in cls]}"
        )


@dataclass(frozen=True)
class ComfortStyle:
    gradient_start: str
    gradient_end: str
    emoji: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "gradientStart": self.gradient_start,
            "gradientEnd": self.gradient_end,
            "emoji": self.emoji,
        }


COMFORT_STYLES: Dict[ComfortLevel, ComfortStyle] = {
    ComfortLevel.FREEZING: ComfortStyle("#8CB9F1", "#CFE8FF", "🥶"),
    ComfortLevel.CHILLY: ComfortStyle("#0074B7", "#88D6F0", "😬"),
    ComfortLevel.COMFORTABLE: ComfortStyle("#21A348", "#9FEFAF", "😊"),
    ComfortLevel.WARM: ComfortStyle("#FFD500", "#FFF3B0", "😅"),
    ComfortLevel.HOT: ComfortStyle("#E27100", "#FFB74D", "🥵"),
    ComfortLevel.SWELTERING: ComfortStyle("#6C1D45", "#FF4B4B", "🔥"),
}


def comfort_style(level) -> ComfortStyle:
    """Style for a ComfortLevel or its label. Unknown labels raise ValueError."""
    if not isinstance(level, ComfortLevel):
        level = ComfortLevel.from_label(level)
    return COMFORT_STYLES[level]


class MarkerKind(Enum):
    HOT = "hot"
    COOL = "cool"
    EXTRA = "extra"

    @property
    def icon_color(self) -> str:
        return MARKER_ICON_COLORS[self]


MARKER_ICON_COLORS: Dict[MarkerKind, str] = {
    MarkerKind.HOT: "red",
    MarkerKind.COOL: "blue",
    MarkerKind.EXTRA: "black",
}
