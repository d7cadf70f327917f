"""
Enumeration types for the reporting dashboard.

All enums inherit from str to ensure JSON serialization compatibility.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """
    Classification of a failed report query.

    Determines whether a sub-query failure aborts the request, triggers a
    fallback query, or degrades one optional field of the result.
    """

    AUTH = "auth"
    QUOTA = "quota"
    UNSUPPORTED = "unsupported"
    TRANSIENT = "transient"
    CONFIGURATION = "configuration"


class MatchType(str, Enum):
    """String match types for dimension filters."""

    EXACT = "EXACT"
    CONTAINS = "CONTAINS"
    BEGINS_WITH = "BEGINS_WITH"
    ENDS_WITH = "ENDS_WITH"


class NumericOperation(str, Enum):
    """Comparison operations for numeric-threshold filters."""

    EQUAL = "EQUAL"
    LESS_THAN = "LESS_THAN"
    LESS_THAN_OR_EQUAL = "LESS_THAN_OR_EQUAL"
    GREATER_THAN = "GREATER_THAN"
    GREATER_THAN_OR_EQUAL = "GREATER_THAN_OR_EQUAL"


class FieldKind(str, Enum):
    """How a positional row value is decoded."""

    DIM = "dim"
    INT = "int"
    FLOAT = "float"
    RATIO_PCT = "ratio_pct"


class DataSource(str, Enum):
    """
    Which query produced a metric that has a proxy fallback.

    Proxy values stand in for a metric the property cannot provide and are
    always labeled as such in the response.
    """

    EXITS = "exits"
    SESSIONS_PROXY = "sessions_proxy"
    PAGE_LOAD_TIME = "average_page_load_time"
    SESSION_DURATION_PROXY = "session_duration_proxy"
    SCROLL_90_PERCENT = "percent_scrolled_90"
    ANY_SCROLL_EVENT = "any_scroll_event"
    CONVERSIONS = "conversions"
    KEY_EVENTS = "key_events"
