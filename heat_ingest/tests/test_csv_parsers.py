import pytest

from ..models import ColumnMap
from ..parsers.header_parser import (
    HeaderMatchedCsvParser,
    build_column_map,
    find_column_index,
    parse_header_matched_csv,
)
from ..parsers.positional_parser import PositionalCsvParser, parse_positional_csv
from ..parsers.visualization_parser import parse_for_visualization

ROUTE_CSV = """date,time,seconds,lat,lng,internal,probe
1/1/24,10:00:00,0,33.77,-84.39,75,74
1/1/24,10:00:30,30,,,76,75
1/1/24,10:01:00,60,33.78,-84.40,77,76
"""


# ==================== positional ====================


def test_positional_parse_route():
    records = parse_positional_csv(ROUTE_CSV)

    assert len(records) == 3
    first = records[0]
    assert first.date == "1/1/24"
    assert first.time == "10:00:00"
    assert first.elapsed_seconds == 0.0
    assert first.latitude == pytest.approx(33.77)
    assert first.longitude == pytest.approx(-84.39)
    assert first.internal_temperature == 75.0
    assert first.probe_temperature == 74.0
    assert records[1].latitude is None
    assert records[1].longitude is None
    assert not records[1].has_coordinates()


def test_positional_counts_every_data_line_even_when_invalid():
    text = """date,time,seconds,lat,lng,internal,probe
x,y,abc,north,east,hot,cold
1/1/24,10:00:00,0,33.77,-84.39,75,74

1/1/24,10:00:30,30,33.77,-84.39,75
"""
    records = parse_positional_csv(text)

    assert len(records) == 4
    assert records[0].elapsed_seconds is None
    assert records[0].latitude is None
    assert records[2].date == ""
    assert records[2].probe_temperature is None
    # short row is padded, missing probe
    assert records[3].internal_temperature == 75.0
    assert records[3].probe_temperature is None


def test_positional_header_only_or_empty_has_no_records():
    assert parse_positional_csv("") == []
    assert parse_positional_csv("date,time,seconds,lat,lng,internal,probe\n") == []


def test_positional_out_of_range_coordinates_are_absent():
    text = """date,time,seconds,lat,lng,internal,probe
1/1/24,10:00:00,0,95.0,-84.39,75,74
1/1/24,10:00:01,1,33.7,-190.0,75,74
"""
    records = parse_positional_csv(text)
    assert records[0].latitude is None
    assert records[0].longitude == pytest.approx(-84.39)
    assert records[1].latitude == pytest.approx(33.7)
    assert records[1].longitude is None


def test_positional_strips_quotes_and_subseconds():
    text = 'date,time,seconds,lat,lng,internal,probe\n"1/1/24","10:00:00.484","0","33.7","-84.3","75","74"\r\n'
    records = parse_positional_csv(text)
    assert records[0].date == "1/1/24"
    assert records[0].time == "10:00:00"
    assert records[0].probe_temperature == 74.0


def test_positional_values_pass_through_without_unit_conversion():
    text = """date,time,seconds,lat,lng,Internal Celsius,probe temperature (°C)
1/1/24,10:00:00,0,33.77,-84.39,25,20
"""
    records = parse_positional_csv(text)
    assert records[0].internal_temperature == 25.0
    assert records[0].probe_temperature == 20.0


@pytest.mark.parametrize("token", ["inf", "-Infinity", "nan"])
def test_positional_non_finite_tokens_are_absent(token):
    text = f"""date,time,seconds,lat,lng,internal,probe
1/1/24,10:00:00,{token},{token},-84.39,{token},74
"""
    records = parse_positional_csv(text)
    assert records[0].elapsed_seconds is None
    assert records[0].latitude is None
    assert records[0].internal_temperature is None
    assert records[0].probe_temperature == 74.0


def test_positional_parser_mode_and_validation():
    parser = PositionalCsvParser()
    assert parser.can_parse("positional")
    assert parser.can_parse("POSITIONAL")
    assert not parser.can_parse("header")

    ok, err = parser.validate_dataframe(parser.parse("only a header"))
    assert not ok
    assert err == "No valid data rows found"

    ok, err = parser.validate_dataframe(parser.parse(ROUTE_CSV))
    assert ok
    assert err is None


# ==================== header matched ====================


def test_find_column_index_candidate_priority_then_leftmost():
    headers = ["Latitude", "lat_fix", "Longitude"]
    # "lat" matches both; leftmost wins
    assert find_column_index(headers, ["lat", "latitude"]) == 0

    headers = ["Probe Temp", "Thermistor Temperature"]
    # earlier candidate wins even though its header is further right
    assert find_column_index(
        headers, ["thermistor temperature", "probe temp"]
    ) == 1

    assert find_column_index(headers, ["humidity"]) is None


def test_build_column_map_for_sensor_export():
    headers = [
        "Date Time",
        "Elapsed (s)",
        "GPS Latitude",
        "GPS Longitude",
        "Internal Temperature (°F)",
        "Thermistor Temperature (°C)",
    ]
    column_map = build_column_map(headers)

    assert isinstance(column_map, ColumnMap)
    assert column_map.date == 0
    assert column_map.time == 0
    assert column_map.seconds == 1
    assert column_map.latitude == 2
    assert column_map.longitude == 3
    assert column_map.internal_temperature == 4
    assert column_map.probe_temperature == 5
    assert column_map.header_of("probe_temperature") == "Thermistor Temperature (°C)"
    assert column_map.missing_fields() == []


def test_column_map_missing_fields():
    column_map = build_column_map(["lat", "lng"])
    assert column_map.index_of("latitude") == 0
    assert column_map.header_of("date") == ""
    assert "probe_temperature" in column_map.missing_fields()
    with pytest.raises(KeyError):
        column_map.index_of("humidity")


def test_header_parse_combined_date_time_and_celsius():
    text = """Date Time,Elapsed,Lat,Lng,Internal Temp,Probe Temperature (°C)
11/08/2021 19:32:51.484,0,33.7,-84.3,80,20

11/08/2021 19:33:51.100,60,33.8,-84.4,81,90
"""
    records = parse_header_matched_csv(text)

    assert len(records) == 2
    assert records[0].date == "11/08/2021"
    assert records[0].time == "19:32:51"
    assert records[0].probe_temperature == pytest.approx(68.0)
    assert records[1].probe_temperature == pytest.approx(90.0)
    assert records[1].elapsed_seconds == 60.0


def test_header_parse_drops_rows_without_usable_field():
    text = """date,time,lat,lng,probe temp
1/1/24,10:00:00,33.7,-84.3,88
1/1/24,10:00:01,n/a,n/a,n/a
1/1/24,10:00:02,,,91
"""
    records = parse_header_matched_csv(text)

    assert len(records) == 2
    assert records[1].probe_temperature == 91.0
    assert records[1].latitude is None
    # no elapsed/internal columns
    assert records[0].elapsed_seconds is None
    assert records[0].internal_temperature is None


def test_header_parse_time_without_date_column():
    text = """time,lat,lng,probe temp
10:00:00.5,33.7,-84.3,88
"""
    records = parse_header_matched_csv(text)
    assert records[0].date == ""
    assert records[0].time == "10:00:00"


def test_header_decode_with_existing_map():
    column_map = build_column_map(["lat", "lng", "probe temp"])
    df = HeaderMatchedCsvParser().decode(["33.7,-84.3,88", "x,y,z"], column_map)
    assert len(df) == 1
    assert df.iloc[0]["probe_temperature"] == 88.0


def test_header_parse_empty_input():
    assert parse_header_matched_csv("") == []
    assert parse_header_matched_csv("lat,lng\n\n\n") == []


# ==================== visualization ====================


def test_visualization_keeps_only_drawable_rows_and_fills_temps():
    text = """date,time,lat,lng,internal temp,probe temp
1/1/24,10:00:00,33.7,-84.3,80,88
1/1/24,10:00:01,,,80,88
1/1/24,10:00:02,33.8,-84.4,,91
1/1/24,10:00:03,33.9,-84.5,79,
1/1/24,10:00:04,33.9,-84.5,,
"""
    points = parse_for_visualization(text)

    assert len(points) == 3
    assert points[0].probe_temp == 88.0
    assert points[0].internal_temp == 80.0
    # internal falls back to probe
    assert points[1].internal_temp == 91.0
    # probe falls back to internal
    assert points[2].probe_temp == 79.0
    assert points[2].to_dict()["probeTemp"] == 79.0


def test_visualization_needs_a_matched_temperature_column():
    # bare "internal"/"probe" headers match no temperature candidate
    assert parse_for_visualization(ROUTE_CSV) == []

    text = ROUTE_CSV.replace("internal,probe", "internal temp,probe temp")
    points = parse_for_visualization(text)
    assert [p.time for p in points] == ["10:00:00", "10:01:00"]


def test_visualization_empty():
    assert parse_for_visualization("") == []
