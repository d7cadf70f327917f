"""
Row decoders: raw report rows to typed records.

All sentinel handling lives in normalize_dimension: the reporting API's
"(not set)" marker (and empty values) become None, the single "unknown"
tag used downstream. Fields rendered as text substitute a display fallback
via display(). Numeric parsing never fails: absent or unparsable values
decode as 0.
"""

import math
from typing import Any, Optional, Sequence

from ga_dashboard.models.enums import FieldKind
from ga_dashboard.models.records import (
    ContentGroupRecord,
    DailyTrendPoint,
    DevicePerformance,
    DeviceRecord,
    EngagedPage,
    ErrorPage,
    EventCount,
    ExitPage,
    GeoRecord,
    Keyword,
    LandingPage,
    OrganicSource,
    PageEngagement,
    PageLoadTime,
    SegmentRecord,
    SourceConversion,
    SourceRecord,
    TopPage,
)
from ga_dashboard.models.reports import ReportRow

NOT_SET = "(not set)"
SENTINELS = frozenset({NOT_SET, "N/A", ""})
DISPLAY_UNKNOWN = "N/A"

FieldOrder = Sequence[tuple[str, FieldKind]]


def normalize_dimension(value: Optional[str]) -> Optional[str]:
    """Return None for sentinel or missing dimension values, the value otherwise."""
    if value is None:
        return None
    if value.strip() in SENTINELS:
        return None
    return value


def display(value: Optional[str], fallback: str = DISPLAY_UNKNOWN) -> str:
    """Render a normalized dimension value, substituting ``fallback`` for unknown."""
    normalized = normalize_dimension(value)
    return fallback if normalized is None else normalized


def parse_float(value: Optional[str]) -> float:
    if value is None:
        return 0.0
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(parsed) or math.isinf(parsed):
        return 0.0
    return parsed


def parse_int(value: Optional[str]) -> int:
    if value is None:
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        return int(parse_float(value))


def decode(row: ReportRow, field_order: FieldOrder) -> dict[str, Any]:
    """
    Decode a row against a field order.

    ``field_order`` lists (name, kind) for the row's dimensions first, then
    its metrics, in request order. DIM fields are normalized (None for
    unknown); RATIO_PCT fields are API ratios in [0, 1] scaled to percent.
    Positions missing from the row decode as unknown / 0.
    """
    values = list(row.dimension_values) + list(row.metric_values)
    decoded: dict[str, Any] = {}
    for position, (name, kind) in enumerate(field_order):
        raw = values[position] if position < len(values) else None
        if kind == FieldKind.DIM:
            decoded[name] = normalize_dimension(raw)
        elif kind == FieldKind.INT:
            decoded[name] = parse_int(raw)
        elif kind == FieldKind.FLOAT:
            decoded[name] = parse_float(raw)
        else:
            decoded[name] = parse_float(raw) * 100
    return decoded


D, I, F, P = FieldKind.DIM, FieldKind.INT, FieldKind.FLOAT, FieldKind.RATIO_PCT


def decode_totals(row: Optional[ReportRow], metrics: Sequence[tuple[str, FieldKind]]) -> dict[str, Any]:
    """Decode a dimensionless totals row; an empty report decodes as all zeros."""
    return decode(row or ReportRow(), metrics)


# ---------------------------------------------------------------------------
# Audience
# ---------------------------------------------------------------------------


def decode_geo(row: ReportRow) -> GeoRecord:
    v = decode(row, [("country", D), ("region", D), ("users", I), ("sessions", I), ("page_views", I)])
    return GeoRecord(
        country=v["country"] or DISPLAY_UNKNOWN,
        region=v["region"] or DISPLAY_UNKNOWN,
        users=v["users"],
        sessions=v["sessions"],
        page_views=v["page_views"],
    )


def decode_device_detailed(row: ReportRow) -> DeviceRecord:
    """Device row from the category + model + marketing name + resolution report."""
    v = decode(
        row,
        [
            ("device", D),
            ("model", D),
            ("marketing_name", D),
            ("screen_resolution", D),
            ("users", I),
            ("sessions", I),
            ("page_views", I),
        ],
    )
    v["device"] = v["device"] or DISPLAY_UNKNOWN
    return DeviceRecord(**v)


def decode_device_category(row: ReportRow) -> DeviceRecord:
    v = decode(row, [("device", D), ("users", I), ("sessions", I), ("page_views", I)])
    v["device"] = v["device"] or DISPLAY_UNKNOWN
    return DeviceRecord(**v)


def decode_segment(row: ReportRow) -> SegmentRecord:
    """Single-dimension row with activeUsers, sessions, screenPageViews."""
    v = decode(row, [("segment", D), ("users", I), ("sessions", I), ("page_views", I)])
    return SegmentRecord(**v)


def decode_bucket(row: ReportRow) -> tuple[Optional[str], Optional[str], int]:
    """Age bracket, gender, users."""
    v = decode(row, [("age", D), ("gender", D), ("users", I)])
    return v["age"], v["gender"], v["users"]


def decode_daily_trend(row: ReportRow) -> DailyTrendPoint:
    v = decode(
        row,
        [("date", D), ("users", I), ("new_users", I), ("sessions", I), ("page_views", I)],
    )
    return DailyTrendPoint(
        date=v["date"] or "",
        users=v["users"],
        new_users=v["new_users"],
        returning_users=v["users"] - v["new_users"],
        sessions=v["sessions"],
        page_views=v["page_views"],
    )


# ---------------------------------------------------------------------------
# Pages
# ---------------------------------------------------------------------------


def decode_top_page(row: ReportRow) -> TopPage:
    v = decode(row, [("path", D), ("title", D), ("views", I), ("avg_duration", F)])
    return TopPage(
        path=display(v["path"]), title=display(v["title"]), views=v["views"], avg_duration=v["avg_duration"]
    )


def decode_exit_page(row: ReportRow) -> ExitPage:
    """Path, title, exits (or the sessions proxy), views, averageSessionDuration."""
    v = decode(row, [("path", D), ("title", D), ("exits", I), ("views", I), ("avg_duration", F)])
    return ExitPage(
        path=display(v["path"]),
        title=display(v["title"]),
        exits=v["exits"],
        views=v["views"],
        avg_duration=v["avg_duration"],
    )


def decode_engaged_page(row: ReportRow) -> EngagedPage:
    v = decode(
        row,
        [
            ("path", D),
            ("title", D),
            ("views", I),
            ("avg_duration", F),
            ("total_engagement", F),
            ("sessions", I),
        ],
    )
    v["path"], v["title"] = display(v["path"]), display(v["title"])
    return EngagedPage(**v)


def decode_page_engagement(row: ReportRow) -> PageEngagement:
    v = decode(
        row,
        [
            ("path", D),
            ("title", D),
            ("bounce_rate", P),
            ("avg_session_duration", F),
            ("page_views", I),
            ("sessions", I),
        ],
    )
    v["path"], v["title"] = display(v["path"]), display(v["title"])
    return PageEngagement(**v)


def decode_page_count(row: ReportRow) -> tuple[str, int]:
    """(first dimension as page path, first metric as integer); extra dimensions are ignored."""
    head = ReportRow(dimension_values=row.dimension_values[:1], metric_values=row.metric_values[:1])
    v = decode(head, [("path", D), ("count", I)])
    return display(v["path"]), v["count"]


def decode_page_load(row: ReportRow) -> PageLoadTime:
    v = decode(row, [("path", D), ("avg_load_time", F), ("views", I)])
    return PageLoadTime(path=display(v["path"]), avg_load_time=v["avg_load_time"], views=v["views"])


def decode_error_page(row: ReportRow) -> ErrorPage:
    v = decode(
        row,
        [("path", D), ("title", D), ("views", I), ("bounce_rate", P), ("avg_duration", F)],
    )
    v["path"], v["title"] = display(v["path"]), display(v["title"])
    return ErrorPage(**v)


def decode_content_group(row: ReportRow) -> ContentGroupRecord:
    v = decode(
        row,
        [("group1", D), ("group2", D), ("page_views", I), ("sessions", I), ("users", I)],
    )
    v["group1"], v["group2"] = display(v["group1"]), display(v["group2"])
    return ContentGroupRecord(**v)


def decode_flow(row: ReportRow) -> tuple[str, Optional[str], int]:
    """(pagePath, pageReferrer or None, views)."""
    v = decode(row, [("path", D), ("referrer", D), ("views", I)])
    return display(v["path"]), v["referrer"], v["views"]


# ---------------------------------------------------------------------------
# Events, sources, devices
# ---------------------------------------------------------------------------


def decode_event_count(row: ReportRow) -> EventCount:
    """eventName with eventCount and, when requested, totalRevenue."""
    v = decode(row, [("event_name", D), ("count", I), ("revenue", F)])
    return EventCount(event_name=v["event_name"] or "", count=v["count"], revenue=v["revenue"])


def decode_session_source(row: ReportRow) -> SourceRecord:
    v = decode(
        row,
        [("source", D), ("medium", D), ("channel_group", D), ("sessions", I), ("users", I)],
    )
    return SourceRecord(
        source=display(v["source"]),
        medium=display(v["medium"]),
        channel_group=v["channel_group"],
        sessions=v["sessions"],
        users=v["users"],
        attribution="last-touch",
    )


def decode_first_touch_source(row: ReportRow) -> SourceRecord:
    v = decode(row, [("source", D), ("medium", D), ("sessions", I), ("users", I), ("new_users", I)])
    return SourceRecord(
        source=display(v["source"]),
        medium=display(v["medium"]),
        sessions=v["sessions"],
        users=v["users"],
        new_users=v["new_users"],
        attribution="first-touch",
    )


def decode_landing_page(row: ReportRow) -> LandingPage:
    v = decode(
        row,
        [("landing_page", D), ("sessions", I), ("users", I), ("new_users", I), ("bounce_rate", P)],
    )
    v["landing_page"] = display(v["landing_page"])
    return LandingPage(**v)


def decode_source_conversion(row: ReportRow) -> SourceConversion:
    v = decode(row, [("source", D), ("medium", D), ("conversions", I), ("sessions", I), ("users", I)])
    v["source"], v["medium"] = display(v["source"]), display(v["medium"])
    return SourceConversion(**v)


def decode_organic_source(row: ReportRow) -> OrganicSource:
    v = decode(row, [("source", D), ("medium", D), ("sessions", I), ("users", I), ("page_views", I)])
    v["source"], v["medium"] = display(v["source"]), display(v["medium"])
    return OrganicSource(**v)


def decode_keyword(row: ReportRow) -> Keyword:
    v = decode(row, [("keyword", D), ("sessions", I), ("page_views", I)])
    return Keyword(
        keyword=display(v["keyword"], "(not provided)"),
        sessions=v["sessions"],
        page_views=v["page_views"],
    )


def decode_referrer(row: ReportRow) -> tuple[Optional[str], int, int]:
    """(pageReferrer or None, sessions, users)."""
    v = decode(row, [("referrer", D), ("sessions", I), ("users", I)])
    return v["referrer"], v["sessions"], v["users"]


def decode_device_performance(row: ReportRow) -> DevicePerformance:
    v = decode(row, [("device", D), ("avg_load_time", F), ("views", I), ("bounce_rate", P)])
    v["device"] = display(v["device"])
    return DevicePerformance(**v)
