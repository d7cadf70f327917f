"""
Aggregators: pure functions folding decoded records into derived statistics.

Percentages, weighted averages, rates, top-N ranking, the unsupported-query
fallback chain, event-name funnels and referrer-based user flows. None of
these raise on empty input or zero denominators; every degenerate case has a
defined value.
"""

import math
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Iterable, Optional, Sequence, TypeVar
from urllib.parse import urlsplit

import structlog

from ga_dashboard.connectors.report_client import ReportQueryError
from ga_dashboard.models.enums import MatchType
from ga_dashboard.models.records import FlowSource, UserFlow

logger = structlog.get_logger()

T = TypeVar("T")

ENTRANCE = "(entrance)"
INTERNAL = "(internal)"


def fixed(value: float, places: int) -> str:
    """Format with a fixed number of decimals (display strings in responses)."""
    return f"{value:.{places}f}"


def percentage_of_total(parts: Sequence[float]) -> list[str]:
    """
    Each part's share of the sum, as a percentage string with one decimal.

    Shares are rounded by largest remainder so they add up to exactly 100.0;
    ties go to the earlier part. A zero (or empty) total yields "0.0" for
    every part.

    Example:
        >>> percentage_of_total([30, 10, 10])
        ['60.0', '20.0', '20.0']
        >>> percentage_of_total([1, 1, 1])
        ['33.4', '33.3', '33.3']
    """
    total = sum(parts)
    if total == 0:
        return ["0.0" for _ in parts]
    tenths = [part * 1000 / total for part in parts]
    shares = [math.floor(t) for t in tenths]
    leftover = max(0, 1000 - sum(shares))
    by_remainder = sorted(range(len(parts)), key=lambda i: tenths[i] - shares[i], reverse=True)
    for i in by_remainder[:leftover]:
        shares[i] += 1
    return [fixed(share / 10, 1) for share in shares]


def weighted_average(values: Sequence[float], weights: Sequence[float]) -> float:
    """sum(value * weight) / sum(weight); 0 when the weights sum to 0."""
    total_weight = sum(weights)
    if total_weight == 0:
        return 0.0
    return sum(v * w for v, w in zip(values, weights)) / total_weight


def rate(numerator: float, denominator: float) -> float:
    """numerator / denominator * 100, rounded to 2 decimals; 0 when denominator is 0."""
    if denominator == 0:
        return 0.0
    return round(numerator / denominator * 100, 2)


def ratio(numerator: float, denominator: float, places: int = 2) -> float:
    """Plain ratio rounded to ``places``; 0 when denominator is 0."""
    if denominator == 0:
        return 0.0
    return round(numerator / denominator, places)


def sum_of(records: Iterable[Any], attr: str) -> float:
    return sum(getattr(r, attr) for r in records)


def top_n(records: Iterable[T], key: Callable[[T], float], n: Optional[int]) -> list[T]:
    """
    Stable descending sort by ``key``, truncated to ``n`` (all when n is None).

    Ties keep their input order, which is the order the report client
    returned (itself the request's order_by).
    """
    ranked = sorted(records, key=key, reverse=True)
    return ranked if n is None else ranked[:n]


# ---------------------------------------------------------------------------
# Fallback chain
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FallbackResult(Generic[T]):
    """Result of a fallback chain; ``degraded`` is True when the secondary query produced it."""

    data: T
    degraded: bool = False


async def fallback_chain(
    primary: Callable[[], Awaitable[T]],
    secondary: Callable[[], Awaitable[T]],
) -> FallbackResult[T]:
    """
    Run ``primary``; if it fails as unsupported, run ``secondary`` instead.

    Any other ReportQueryError (auth, quota, transient, configuration)
    propagates without attempting the secondary query.
    """
    try:
        return FallbackResult(data=await primary(), degraded=False)
    except ReportQueryError as e:
        if not e.is_unsupported:
            raise
        logger.info("fallback_query_used", reason=str(e))
    return FallbackResult(data=await secondary(), degraded=True)


# ---------------------------------------------------------------------------
# Event-name funnel
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MatchRule:
    """Assigns event names matching ``pattern`` to ``category``."""

    category: str
    match_type: MatchType
    pattern: str

    def matches(self, event_name: str) -> bool:
        if self.match_type == MatchType.EXACT:
            return event_name == self.pattern
        if self.match_type == MatchType.CONTAINS:
            return self.pattern.lower() in event_name.lower()
        if self.match_type == MatchType.BEGINS_WITH:
            return event_name.lower().startswith(self.pattern.lower())
        return event_name.lower().endswith(self.pattern.lower())


def funnel_from_event_names(
    events: Iterable[tuple[str, float]],
    rules: Sequence[MatchRule],
) -> dict[str, float]:
    """
    Bucket (event name, count) pairs into rule categories.

    Each event is counted in the category of the first rule it matches;
    events matching no rule are dropped. Every category named by a rule is
    present in the result, 0 when nothing matched it.
    """
    totals: dict[str, float] = {rule.category: 0 for rule in rules}
    for event_name, count in events:
        for rule in rules:
            if rule.matches(event_name):
                totals[rule.category] += count
                break
    return totals


# ---------------------------------------------------------------------------
# Referrers and user flows
# ---------------------------------------------------------------------------


def is_own_host(hostname: str, site_hostname: str) -> bool:
    hostname = hostname.lower()
    site_hostname = site_hostname.lower()
    return hostname == site_hostname or hostname.endswith("." + site_hostname)


def classify_referrer(referrer: Optional[str], site_hostname: str) -> str:
    """
    Label where a page view came from.

    - no referrer: "(entrance)"
    - the site's own host (exact or subdomain): the referrer's URL path
    - anything else: the referrer's hostname
    Referrers that do not parse as URLs are returned unchanged.
    """
    if referrer is None or not referrer.strip():
        return ENTRANCE
    try:
        parts = urlsplit(referrer.strip())
    except ValueError:
        return referrer
    if not parts.hostname:
        return referrer
    if is_own_host(parts.hostname, site_hostname):
        return parts.path or INTERNAL
    return parts.hostname


def group_user_flows(
    rows: Iterable[tuple[str, Optional[str], int]],
    site_hostname: str,
    max_sources: int = 5,
    max_pages: int = 20,
) -> list[UserFlow]:
    """
    Group (page, referrer, views) rows into per-page flows.

    Views from the same classified source are summed. Each page keeps its
    top ``max_sources`` sources by views; pages are ranked by total views
    and capped at ``max_pages``.
    """
    flows: dict[str, dict[str, int]] = {}
    totals: dict[str, int] = {}
    for page, referrer, views in rows:
        source = classify_referrer(referrer, site_hostname)
        sources = flows.setdefault(page, {})
        sources[source] = sources.get(source, 0) + views
        totals[page] = totals.get(page, 0) + views

    result = [
        UserFlow(
            page=page,
            total_views=totals[page],
            sources=[
                FlowSource(from_page=name, views=views)
                for name, views in top_n(sources.items(), key=lambda s: s[1], n=max_sources)
            ],
        )
        for page, sources in flows.items()
    ]
    return top_n(result, key=lambda f: f.total_views, n=max_pages)
