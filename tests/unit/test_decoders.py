"""
Unit tests for row decoders: sentinel normalization, numeric parsing and
the per-report decoders.
"""

import pytest

from ga_dashboard.engine import decoders
from ga_dashboard.models.enums import FieldKind
from tests.conftest import make_row


# =============================================================================
# Sentinels and parsing
# =============================================================================


@pytest.mark.parametrize("value", ["(not set)", "N/A", "", "   ", None])
def test_normalize_dimension_sentinels_become_none(value):
    assert decoders.normalize_dimension(value) is None


def test_normalize_dimension_keeps_real_values():
    assert decoders.normalize_dimension("United States") == "United States"


def test_display_substitutes_fallback():
    assert decoders.display("(not set)") == "N/A"
    assert decoders.display(None, "(not provided)") == "(not provided)"
    assert decoders.display("/home") == "/home"


@pytest.mark.parametrize(
    "raw,expected",
    [("12.5", 12.5), ("abc", 0.0), (None, 0.0), ("nan", 0.0), ("inf", 0.0), ("-3", -3.0)],
)
def test_parse_float(raw, expected):
    assert decoders.parse_float(raw) == expected


def test_parse_int_accepts_float_strings():
    assert decoders.parse_int("42") == 42
    assert decoders.parse_int("42.9") == 42
    assert decoders.parse_int("garbage") == 0


def test_decode_pads_missing_positions():
    row = make_row(["(not set)"], ["5"])
    decoded = decoders.decode(
        row,
        [
            ("country", FieldKind.DIM),
            ("users", FieldKind.INT),
            ("duration", FieldKind.FLOAT),
            ("bounce", FieldKind.RATIO_PCT),
        ],
    )
    assert decoded == {"country": None, "users": 5, "duration": 0.0, "bounce": 0.0}


def test_decode_ratio_is_scaled_to_percent():
    decoded = decoders.decode_totals(make_row([], ["0.4567"]), [("bounce", FieldKind.RATIO_PCT)])
    assert decoded["bounce"] == pytest.approx(45.67)


def test_decode_totals_of_empty_report_is_zero():
    decoded = decoders.decode_totals(None, [("users", FieldKind.INT), ("rate", FieldKind.FLOAT)])
    assert decoded == {"users": 0, "rate": 0.0}


# =============================================================================
# Per-report decoders
# =============================================================================


def test_decode_geo_unknown_region_is_display_fallback():
    geo = decoders.decode_geo(make_row(["Canada", "(not set)"], ["10", "12", "30"]))
    assert geo.country == "Canada"
    assert geo.region == "N/A"
    assert (geo.users, geo.sessions, geo.page_views) == (10, 12, 30)


def test_decode_device_detailed_keeps_unknown_model_as_none():
    device = decoders.decode_device_detailed(
        make_row(["mobile", "(not set)", "iPhone", "390x844"], ["7", "8", "20"])
    )
    assert device.device == "mobile"
    assert device.model is None
    assert device.marketing_name == "iPhone"
    assert device.users == 7


def test_decode_daily_trend_returning_users_unclamped():
    point = decoders.decode_daily_trend(make_row(["20240101"], ["10", "12", "15", "40"]))
    assert point.returning_users == -2
    assert point.date == "20240101"


def test_decode_bucket_drops_sentinels_to_none():
    assert decoders.decode_bucket(make_row(["(not set)", "female"], ["9"])) == (None, "female", 9)


def test_decode_page_count_ignores_extra_dimensions():
    assert decoders.decode_page_count(make_row(["/blog", "scroll", "90"], ["14"])) == ("/blog", 14)


def test_decode_flow_unknown_referrer_is_none():
    assert decoders.decode_flow(make_row(["/a", "(not set)"], ["3"])) == ("/a", None, 3)


def test_decode_event_count_without_revenue_column():
    event = decoders.decode_event_count(make_row(["purchase"], ["4"]))
    assert (event.event_name, event.count, event.revenue) == ("purchase", 4, 0.0)


def test_decode_keyword_fallback():
    keyword = decoders.decode_keyword(make_row(["(not set)"], ["3", "5"]))
    assert keyword.keyword == "(not provided)"


def test_decode_session_source_is_last_touch():
    source = decoders.decode_session_source(make_row(["google", "organic", "Organic Search"], ["50", "40"]))
    assert source.attribution == "last-touch"
    assert source.channel_group == "Organic Search"
    assert source.new_users is None


def test_decode_first_touch_source():
    source = decoders.decode_first_touch_source(make_row(["(not set)", "(none)"], ["5", "4", "3"]))
    assert source.attribution == "first-touch"
    assert source.source == "N/A"
    assert source.new_users == 3


def test_decode_landing_page_bounce_rate_percent():
    page = decoders.decode_landing_page(make_row(["/"], ["100", "80", "60", "0.25"]))
    assert page.bounce_rate == pytest.approx(25.0)


def test_decode_device_performance():
    perf = decoders.decode_device_performance(make_row(["desktop"], ["2.5", "100", "0.5"]))
    assert perf.device == "desktop"
    assert perf.avg_load_time == 2.5
    assert perf.bounce_rate == pytest.approx(50.0)
