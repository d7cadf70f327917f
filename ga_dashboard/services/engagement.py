"""
Engagement: bounce rate, session duration, pages per session, scroll depth
and CTA clicks, overall and per page.
"""

from typing import Optional

from ga_dashboard.engine import decoders
from ga_dashboard.engine.aggregators import fixed, rate, ratio, top_n, weighted_average
from ga_dashboard.engine.pipeline import PipelineResult, QuerySpec
from ga_dashboard.models.enums import DataSource, FieldKind
from ga_dashboard.models.records import ScrollDepthPage
from ga_dashboard.models.reports import DateRange, all_of, by_metric, contains, contains_any, exact
from ga_dashboard.models.results import EngagementByPage, EngagementMetrics
from ga_dashboard.services.base import ReportBuilder, report

PERCENT_SCROLLED = "customEvent:percent_scrolled"
SCROLL_PAGES_LIMIT = 20


def fold_counts(rows) -> dict[str, int]:
    """Sum the first metric per page path."""
    totals: dict[str, int] = {}
    for row in rows:
        path, count = decoders.decode_page_count(row)
        totals[path] = totals.get(path, 0) + count
    return totals


def scroll_depth_pages(scrolled: dict[str, int], page_users: dict[str, int]) -> list[ScrollDepthPage]:
    """Per-page share of users who scrolled, ranked by scrolled users."""
    pages = [
        ScrollDepthPage(
            path=path,
            scrolled_users=count,
            total_users=page_users.get(path, 0),
            percent_scrolled=fixed(rate(count, page_users.get(path, 0)), 2),
        )
        for path, count in scrolled.items()
    ]
    return top_n(pages, key=lambda p: p.scrolled_users, n=SCROLL_PAGES_LIMIT)


class EngagementReportBuilder(ReportBuilder):
    """
    Required: overall engagement totals. Optional: scroll_depth (scroll event
    counts), cta_clicks, scroll_depth_by_page (90% scroll users per page,
    falling back to any scroll event).
    """

    OPTIONAL_QUERIES = frozenset({"scroll_depth", "cta_clicks", "scroll_depth_by_page"})

    def queries(self, date_range: DateRange) -> list[QuerySpec]:
        return [
            QuerySpec(
                "overall",
                report(
                    date_range,
                    metrics=[
                        "bounceRate",
                        "averageSessionDuration",
                        "screenPageViews",
                        "sessions",
                        "eventCount",
                    ],
                ),
            ),
            *self.optional(
                "scroll_depth",
                report(
                    date_range,
                    ["eventName"],
                    ["eventCount"],
                    dimension_filter=contains("eventName", "scroll"),
                ),
            ),
            *self.optional(
                "cta_clicks",
                report(
                    date_range,
                    ["eventName"],
                    ["eventCount"],
                    dimension_filter=contains_any("eventName", "click", "cta", "button"),
                ),
            ),
            *self.optional(
                "scroll_by_page",
                primary=report(
                    date_range,
                    ["pagePath", "eventName", PERCENT_SCROLLED],
                    ["activeUsers"],
                    dimension_filter=all_of(
                        exact("eventName", "scroll"), exact(PERCENT_SCROLLED, "90")
                    ),
                    limit=1000,
                ),
                fallback=report(
                    date_range,
                    ["pagePath", "eventName"],
                    ["activeUsers"],
                    dimension_filter=exact("eventName", "scroll"),
                    limit=1000,
                ),
                group="scroll_depth_by_page",
            ),
            *self.optional(
                "page_users",
                report(date_range, ["pagePath"], ["activeUsers"], limit=1000),
                group="scroll_depth_by_page",
            ),
        ]

    @staticmethod
    def _scroll_by_page(result: PipelineResult) -> tuple[Optional[list[ScrollDepthPage]], Optional[DataSource]]:
        if not (result.available("scroll_by_page") and result.available("page_users")):
            return None, None
        source = DataSource.ANY_SCROLL_EVENT if result.degraded("scroll_by_page") else DataSource.SCROLL_90_PERCENT
        pages = scroll_depth_pages(
            fold_counts(result.rows("scroll_by_page")), fold_counts(result.rows("page_users"))
        )
        return pages, source

    async def build(self, date_range: DateRange) -> EngagementMetrics:
        result = await self.run(self.queries(date_range))

        overall = decoders.decode_totals(
            result.first_row("overall"),
            [
                ("bounce_rate", FieldKind.RATIO_PCT),
                ("avg_session_duration", FieldKind.FLOAT),
                ("page_views", FieldKind.INT),
                ("sessions", FieldKind.INT),
                ("events", FieldKind.INT),
            ],
        )

        scroll_depth = None
        if result.available("scroll_depth"):
            scroll_depth = {}
            for event in (decoders.decode_event_count(r) for r in result.rows("scroll_depth")):
                scroll_depth[event.event_name] = scroll_depth.get(event.event_name, 0) + event.count

        cta_clicks = None
        if result.available("cta_clicks"):
            cta_clicks = sum(decoders.decode_event_count(r).count for r in result.rows("cta_clicks"))

        scroll_pages, scroll_source = self._scroll_by_page(result)

        return EngagementMetrics(
            bounce_rate=overall["bounce_rate"],
            average_session_duration=overall["avg_session_duration"],
            pages_per_session=ratio(overall["page_views"], overall["sessions"]),
            scroll_depth=scroll_depth,
            scroll_depth_by_page=scroll_pages,
            scroll_depth_source=scroll_source,
            cta_clicks=cta_clicks,
            total_sessions=overall["sessions"],
            total_page_views=overall["page_views"],
            total_events=overall["events"],
        )

    async def by_page(self, date_range: DateRange, limit: int = 20) -> EngagementByPage:
        """Per-page engagement plus session-weighted bounce rate and duration rollups."""
        result = await self.run(
            [
                QuerySpec(
                    "pages",
                    report(
                        date_range,
                        ["pagePath", "pageTitle"],
                        ["bounceRate", "averageSessionDuration", "screenPageViews", "sessions"],
                        order_by=by_metric("screenPageViews"),
                        limit=limit,
                    ),
                )
            ]
        )
        pages = [decoders.decode_page_engagement(r) for r in result.rows("pages")]
        pages = [p.model_copy(update={"pages_per_session": ratio(p.page_views, p.sessions)}) for p in pages]
        sessions = [p.sessions for p in pages]
        return EngagementByPage(
            pages=pages,
            weighted_bounce_rate=round(weighted_average([p.bounce_rate for p in pages], sessions), 2),
            weighted_avg_session_duration=round(
                weighted_average([p.avg_session_duration for p in pages], sessions), 2
            ),
        )
