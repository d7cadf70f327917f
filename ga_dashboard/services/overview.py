"""Site overview totals, daily trend and top pages."""

from ga_dashboard.engine import decoders
from ga_dashboard.engine.pipeline import QuerySpec
from ga_dashboard.models.enums import DataSource, FieldKind
from ga_dashboard.models.reports import DateRange, by_dimension, by_metric
from ga_dashboard.models.results import OverviewMetrics, TopPages
from ga_dashboard.services.base import ReportBuilder, report

OVERVIEW_METRICS = [
    "activeUsers",
    "newUsers",
    "sessions",
    "screenPageViews",
    "averageSessionDuration",
    "bounceRate",
]


def conversions_source(degraded: bool) -> DataSource:
    """Label for the conversions figure: keyEvents is used where conversions is gone."""
    return DataSource.KEY_EVENTS if degraded else DataSource.CONVERSIONS


class OverviewReportBuilder(ReportBuilder):
    """Required: totals (conversions falls back to keyEvents). Optional: daily_trend."""

    OPTIONAL_QUERIES = frozenset({"daily_trend"})

    def queries(self, date_range: DateRange) -> list[QuerySpec]:
        return [
            QuerySpec(
                "totals",
                primary=report(date_range, metrics=OVERVIEW_METRICS + ["conversions"]),
                fallback=report(date_range, metrics=OVERVIEW_METRICS + ["keyEvents"]),
            ),
            *self.optional(
                "daily_trend",
                report(
                    date_range,
                    ["date"],
                    ["activeUsers", "newUsers", "sessions", "screenPageViews"],
                    order_by=by_dimension("date"),
                ),
            ),
        ]

    async def build(self, date_range: DateRange) -> OverviewMetrics:
        result = await self.run(self.queries(date_range))

        totals = decoders.decode_totals(
            result.first_row("totals"),
            [
                ("active_users", FieldKind.INT),
                ("new_users", FieldKind.INT),
                ("sessions", FieldKind.INT),
                ("page_views", FieldKind.INT),
                ("avg_session_duration", FieldKind.FLOAT),
                ("bounce_rate", FieldKind.RATIO_PCT),
                ("conversions", FieldKind.INT),
            ],
        )

        daily_trend = None
        if result.available("daily_trend"):
            daily_trend = [decoders.decode_daily_trend(r) for r in result.rows("daily_trend")]

        return OverviewMetrics(
            **totals,
            returning_users=totals["active_users"] - totals["new_users"],
            conversions_metric=conversions_source(result.degraded("totals")),
            daily_trend=daily_trend,
        )

    async def top_pages(self, date_range: DateRange, limit: int = 10) -> TopPages:
        result = await self.run(
            [
                QuerySpec(
                    "pages",
                    report(
                        date_range,
                        ["pagePath", "pageTitle"],
                        ["screenPageViews", "averageSessionDuration"],
                        order_by=by_metric("screenPageViews"),
                        limit=limit,
                    ),
                )
            ]
        )
        return TopPages(pages=[decoders.decode_top_page(r) for r in result.rows("pages")])
