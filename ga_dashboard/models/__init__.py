"""
Pydantic v2 data models for the analytics dashboard.

Model Organization:
    - enums: Enumeration types (error kinds, filter operators, data sources)
    - reports: Report query models sent to the report client
    - records: Decoded report rows
    - results: Aggregate results returned per dashboard page

Usage:
    >>> from ga_dashboard.models import DateRange, ReportRequest
    >>> request = ReportRequest(
    ...     date_range=DateRange(start_date="7daysAgo", end_date="today"),
    ...     dimensions=["country"],
    ...     metrics=["activeUsers"],
    ... )
"""

from .enums import DataSource, ErrorKind, FieldKind, MatchType, NumericOperation
from .reports import (
    DateRange,
    FilterExpression,
    NumericFilter,
    OrderBy,
    ReportRequest,
    ReportRow,
    StringFilter,
)

__all__ = [
    "DataSource",
    "ErrorKind",
    "FieldKind",
    "MatchType",
    "NumericOperation",
    "DateRange",
    "FilterExpression",
    "NumericFilter",
    "OrderBy",
    "ReportRequest",
    "ReportRow",
    "StringFilter",
]
