"""
Report query models.

A ReportRequest describes one read-only query against the reporting API:
date range, dimensions, metrics, optional filter trees, ordering and row
limit. A ReportRow is one returned row with dimension and metric values
positionally aligned to the request.
"""

import re
from datetime import date
from typing import Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from .enums import MatchType, NumericOperation

_RELATIVE_DATE = re.compile(r"^(today|yesterday|\d+daysAgo)$")
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def is_valid_report_date(value: str) -> bool:
    """True for YYYY-MM-DD dates and the API's relative tokens (NdaysAgo, today, yesterday)."""
    if _RELATIVE_DATE.match(value):
        return True
    if not _ISO_DATE.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


class DateRange(BaseModel):
    """Inclusive reporting window."""

    start_date: str = Field(default="30daysAgo", description="Start date or relative token")
    end_date: str = Field(default="today", description="End date or relative token")

    @field_validator("start_date", "end_date")
    @classmethod
    def validate_date(cls, v: str) -> str:
        """Accept literal dates and relative-date tokens only."""
        v = v.strip()
        if not is_valid_report_date(v):
            raise ValueError(
                f"Invalid date '{v}': expected YYYY-MM-DD, 'today', 'yesterday' or 'NdaysAgo'"
            )
        return v


class StringFilter(BaseModel):
    """String predicate on a dimension value."""

    match_type: MatchType = MatchType.EXACT
    value: str
    case_sensitive: bool = False


class NumericFilter(BaseModel):
    """Numeric-threshold predicate on a metric or numeric dimension."""

    operation: NumericOperation
    value: Union[int, float]


class FilterExpression(BaseModel):
    """
    Boolean expression tree over (field, match type, value) predicates.

    Each node is exactly one of: an AND group, an OR group, a negation, or a
    leaf predicate on ``field`` carrying a string or numeric filter.
    """

    and_group: Optional[list["FilterExpression"]] = None
    or_group: Optional[list["FilterExpression"]] = None
    not_expression: Optional["FilterExpression"] = None
    field: Optional[str] = None
    string_filter: Optional[StringFilter] = None
    numeric_filter: Optional[NumericFilter] = None

    @model_validator(mode="after")
    def check_single_node_kind(self) -> "FilterExpression":
        kinds = [
            self.and_group is not None,
            self.or_group is not None,
            self.not_expression is not None,
            self.field is not None,
        ]
        if sum(kinds) != 1:
            raise ValueError(
                "Filter expression must be exactly one of and_group, or_group, not_expression or a leaf"
            )
        for group in (self.and_group, self.or_group):
            if group is not None and not group:
                raise ValueError("Filter groups must contain at least one expression")
        if self.field is not None:
            if (self.string_filter is None) == (self.numeric_filter is None):
                raise ValueError("Leaf filter needs exactly one of string_filter or numeric_filter")
        return self

    def leaf_fields(self) -> set[str]:
        """Every field referenced by a leaf predicate in this tree."""
        if self.field is not None:
            return {self.field}
        fields: set[str] = set()
        for child in (self.and_group or []) + (self.or_group or []):
            fields |= child.leaf_fields()
        if self.not_expression is not None:
            fields |= self.not_expression.leaf_fields()
        return fields


def exact(field: str, value: str) -> FilterExpression:
    return FilterExpression(field=field, string_filter=StringFilter(match_type=MatchType.EXACT, value=value))


def contains(field: str, value: str) -> FilterExpression:
    return FilterExpression(
        field=field, string_filter=StringFilter(match_type=MatchType.CONTAINS, value=value)
    )


def threshold(field: str, operation: NumericOperation, value: Union[int, float]) -> FilterExpression:
    return FilterExpression(field=field, numeric_filter=NumericFilter(operation=operation, value=value))


def any_of(*expressions: FilterExpression) -> FilterExpression:
    if len(expressions) == 1:
        return expressions[0]
    return FilterExpression(or_group=list(expressions))


def all_of(*expressions: FilterExpression) -> FilterExpression:
    if len(expressions) == 1:
        return expressions[0]
    return FilterExpression(and_group=list(expressions))


def contains_any(field: str, *values: str) -> FilterExpression:
    """OR of CONTAINS predicates on one field."""
    return any_of(*(contains(field, v) for v in values))


class OrderBy(BaseModel):
    """Row ordering on a metric or dimension."""

    field: str
    is_metric: bool = True
    desc: bool = True


class ReportRequest(BaseModel):
    """
    One report query.

    Attributes:
        date_range: Reporting window
        dimensions: Ordered dimension names (may be empty for totals-only reports)
        metrics: Ordered metric names, never empty
        dimension_filter: Optional filter tree evaluated on dimensions
        metric_filter: Optional filter tree evaluated on aggregated metrics
        order_by: Optional ordering
        limit: Optional row limit
    """

    date_range: DateRange = Field(default_factory=DateRange)
    dimensions: list[str] = Field(default_factory=list)
    metrics: list[str] = Field(min_length=1)
    dimension_filter: Optional[FilterExpression] = None
    metric_filter: Optional[FilterExpression] = None
    order_by: Optional[OrderBy] = None
    limit: Optional[int] = Field(default=None, ge=1)

    @model_validator(mode="after")
    def check_fields(self) -> "ReportRequest":
        if self.order_by is not None:
            known = self.metrics if self.order_by.is_metric else self.dimensions
            if self.order_by.field not in known:
                raise ValueError(f"order_by field '{self.order_by.field}' is not part of the request")
        if self.metric_filter is not None:
            unknown = self.metric_filter.leaf_fields() - set(self.metrics)
            if unknown:
                raise ValueError(f"metric_filter references metrics not requested: {sorted(unknown)}")
        return self


class ReportRow(BaseModel):
    """One returned row; values are strings aligned to the request's dimensions and metrics."""

    dimension_values: list[str] = Field(default_factory=list)
    metric_values: list[str] = Field(default_factory=list)


def by_metric(field: str, desc: bool = True) -> OrderBy:
    return OrderBy(field=field, is_metric=True, desc=desc)


def by_dimension(field: str, desc: bool = False) -> OrderBy:
    return OrderBy(field=field, is_metric=False, desc=desc)
