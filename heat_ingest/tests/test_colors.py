import pytest

from ..colors import (
    COARSE_SCALE,
    FINE_SCALE,
    ComfortLevel,
    MarkerKind,
    TemperatureScale,
    color_for,
    comfort_style,
    format_temperature,
    get_scale,
    temperature_stats,
    temperature_to_rgb,
)
from ..models import VisualizationPoint


def _point(probe):
    return VisualizationPoint("1/1/24", "10:00:00", 33.7, -84.3, probe, probe)


def test_fine_scale_buckets():
    assert color_for(39) == "#0066cc"
    assert color_for(40) == "#0099ff"
    assert color_for(64.9) == "#33ffcc"
    assert color_for(65) == "#66ff99"
    assert color_for(70) == "#99ff66"
    assert color_for(99.9) == "#ff6600"
    assert color_for(100) == "#ff0000"
    assert color_for(140) == "#ff0000"
    assert color_for(-20) == "#0066cc"


def test_coarse_scale_buckets():
    assert COARSE_SCALE.color_for(27.9) == "blue"
    assert COARSE_SCALE.color_for(28) == "lime"
    assert COARSE_SCALE.color_for(30) == "orange"
    assert COARSE_SCALE.color_for(32) == "red"
    assert color_for(50, COARSE_SCALE) == "red"


def test_get_scale():
    assert get_scale("fine") is FINE_SCALE
    assert get_scale("COARSE") is COARSE_SCALE
    with pytest.raises(ValueError, match="Unknown temperature scale"):
        get_scale("rainbow")


def test_scale_definition_is_checked():
    with pytest.raises(ValueError):
        TemperatureScale("bad", (1, 2), ("a", "b"))
    with pytest.raises(ValueError):
        TemperatureScale("bad", (2, 1), ("a", "b", "c"))


def test_temperature_to_rgb():
    assert temperature_to_rgb(100) == {"r": 255, "g": 0, "b": 0}
    assert temperature_to_rgb(39) == {"r": 0, "g": 102, "b": 204}
    with pytest.raises(ValueError):
        temperature_to_rgb(30, COARSE_SCALE)


def test_temperature_stats_ignores_non_positive():
    stats = temperature_stats([_point(80.04), _point(90.0), _point(0.0), _point(-5.0)])
    assert stats.count == 2
    assert stats.min == 80.0
    assert stats.max == 90.0
    assert stats.avg == 85.0


def test_temperature_stats_empty():
    stats = temperature_stats([])
    assert stats.to_dict() == {"min": 0, "max": 0, "avg": 0, "count": 0}


def test_format_temperature():
    assert format_temperature(88.26) == "88.3°F"


def test_comfort_levels():
    assert ComfortLevel.from_label("hot") is ComfortLevel.HOT
    assert ComfortLevel.from_label(" Sweltering ") is ComfortLevel.SWELTERING
    assert comfort_style("Comfortable").emoji == "😊"
    assert comfort_style(ComfortLevel.FREEZING).to_dict()["gradientStart"] == "#8CB9F1"
    with pytest.raises(ValueError, match="Unknown comfort level"):
        comfort_style("Balmy")


def test_marker_icon_colors():
    assert MarkerKind.HOT.icon_color == "red"
    assert MarkerKind.COOL.icon_color == "blue"
    assert MarkerKind.EXTRA.icon_color == "black"
