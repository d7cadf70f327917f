"""
Content insights: exit pages, high-engagement pages, content grouping and
page-to-page user flows reconstructed from referrers.
"""

from typing import Iterable, Optional

from ga_dashboard.engine import decoders
from ga_dashboard.engine.aggregators import fixed, group_user_flows, rate, ratio, top_n
from ga_dashboard.engine.pipeline import QuerySpec
from ga_dashboard.models.enums import DataSource
from ga_dashboard.models.records import EngagedPage, ExitPage, FlowSource, UserFlow
from ga_dashboard.models.reports import DateRange, ReportRow, by_metric
from ga_dashboard.models.results import ContentInsights
from ga_dashboard.services.base import ReportBuilder, report

PAGE_DIMENSIONS = ["pagePath", "pageTitle"]
PAGES_LIMIT = 20
FLOW_ROWS_LIMIT = 100
FLOWS_UNAVAILABLE = "(data not available)"


def with_exit_rates(pages: Iterable[ExitPage]) -> list[ExitPage]:
    return [p.model_copy(update={"exit_rate": fixed(rate(p.exits, p.views), 2)}) for p in pages]


def with_engagement_per_view(pages: Iterable[EngagedPage]) -> list[EngagedPage]:
    return [
        p.model_copy(update={"engagement_per_view": fixed(ratio(p.total_engagement, p.views), 2)})
        for p in pages
    ]


def flows_without_referrers(rows: Iterable[ReportRow]) -> list[UserFlow]:
    """Page view totals only, each marked as having no source breakdown."""
    flows = []
    for row in rows:
        page, views = decoders.decode_page_count(row)
        flows.append(
            UserFlow(page=page, total_views=views, sources=[FlowSource(from_page=FLOWS_UNAVAILABLE, views=0)])
        )
    return flows


class ContentReportBuilder(ReportBuilder):
    """
    Required: exit pages (true exits with a sessions proxy fallback),
    high-engagement pages. Optional: content_grouping, user_flows.

    Args:
        site_hostname: The site's own host, used to tell internal from
            external referrers in user flows
    """

    OPTIONAL_QUERIES = frozenset({"content_grouping", "user_flows"})

    def __init__(self, client, site_hostname: str, timeout_seconds: float = 30.0, include=None):
        super().__init__(client, timeout_seconds=timeout_seconds, include=include)
        self.site_hostname = site_hostname

    def queries(self, date_range: DateRange) -> list[QuerySpec]:
        return [
            QuerySpec(
                "exit_pages",
                primary=report(
                    date_range,
                    PAGE_DIMENSIONS,
                    ["exits", "screenPageViews", "averageSessionDuration"],
                    order_by=by_metric("exits"),
                    limit=PAGES_LIMIT,
                ),
                fallback=report(
                    date_range,
                    PAGE_DIMENSIONS,
                    ["sessions", "screenPageViews", "averageSessionDuration"],
                    order_by=by_metric("sessions"),
                    limit=PAGES_LIMIT,
                ),
            ),
            QuerySpec(
                "high_engagement",
                report(
                    date_range,
                    PAGE_DIMENSIONS,
                    ["screenPageViews", "averageSessionDuration", "userEngagementDuration", "sessions"],
                    order_by=by_metric("userEngagementDuration"),
                    limit=PAGES_LIMIT,
                ),
            ),
            *self.optional(
                "content_grouping",
                report(
                    date_range,
                    ["contentGroup", "contentType"],
                    ["screenPageViews", "sessions", "activeUsers"],
                    order_by=by_metric("screenPageViews"),
                    limit=50,
                ),
            ),
            *self.optional(
                "user_flows",
                primary=report(
                    date_range,
                    ["pagePath", "pageReferrer"],
                    ["screenPageViews"],
                    order_by=by_metric("screenPageViews"),
                    limit=FLOW_ROWS_LIMIT,
                ),
                fallback=report(
                    date_range,
                    ["pagePath"],
                    ["screenPageViews"],
                    order_by=by_metric("screenPageViews"),
                    limit=PAGES_LIMIT,
                ),
            ),
        ]

    async def build(self, date_range: DateRange) -> ContentInsights:
        result = await self.run(self.queries(date_range))

        exit_pages = with_exit_rates(decoders.decode_exit_page(r) for r in result.rows("exit_pages"))
        engaged = with_engagement_per_view(
            decoders.decode_engaged_page(r) for r in result.rows("high_engagement")
        )

        content_grouping = None
        if result.available("content_grouping"):
            content_grouping = [decoders.decode_content_group(r) for r in result.rows("content_grouping")]

        user_flows: Optional[list[UserFlow]] = None
        flows_degraded = result.degraded("user_flows")
        if result.available("user_flows"):
            rows = result.rows("user_flows")
            if flows_degraded:
                user_flows = flows_without_referrers(rows)
            else:
                user_flows = group_user_flows(
                    (decoders.decode_flow(r) for r in rows), self.site_hostname, max_pages=PAGES_LIMIT
                )

        return ContentInsights(
            top_exit_pages=top_n(exit_pages, key=lambda p: p.exits, n=PAGES_LIMIT),
            exits_source=DataSource.SESSIONS_PROXY if result.degraded("exit_pages") else DataSource.EXITS,
            high_engagement_pages=engaged,
            user_flows=user_flows,
            user_flows_degraded=flows_degraded,
            content_grouping=content_grouping,
        )
