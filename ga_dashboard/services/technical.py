"""
Technical performance: page load times, 404 pages, per-device performance
and Core Web Vitals event counts.
"""

from ga_dashboard.engine import decoders
from ga_dashboard.engine.aggregators import MatchRule, funnel_from_event_names, sum_of, weighted_average
from ga_dashboard.engine.pipeline import QuerySpec
from ga_dashboard.models.enums import DataSource, MatchType
from ga_dashboard.models.reports import DateRange, by_metric, contains, contains_any
from ga_dashboard.models.results import CoreWebVitals, TechnicalPerformance
from ga_dashboard.services.base import ReportBuilder, report

LOAD_TIME = "averagePageLoadTime"
LOAD_TIME_PROXY = "averageSessionDuration"
WEB_VITALS = ["LCP", "CLS", "INP", "FID"]
WEB_VITAL_RULES = [MatchRule(name, MatchType.CONTAINS, name) for name in WEB_VITALS]


def load_time_report(date_range: DateRange, dimension: str, load_metric: str, extra=(), limit=None):
    return report(
        date_range,
        [dimension],
        [load_metric, "screenPageViews", *extra],
        order_by=by_metric("screenPageViews"),
        limit=limit,
    )


class TechnicalReportBuilder(ReportBuilder):
    """
    Required: page load times (session duration proxy when load time is
    unavailable), 404 pages. Optional: device_performance.
    """

    OPTIONAL_QUERIES = frozenset({"device_performance"})

    def queries(self, date_range: DateRange) -> list[QuerySpec]:
        return [
            QuerySpec(
                "page_load",
                primary=load_time_report(date_range, "pagePath", LOAD_TIME, limit=20),
                fallback=load_time_report(date_range, "pagePath", LOAD_TIME_PROXY, limit=20),
            ),
            QuerySpec(
                "error_pages",
                report(
                    date_range,
                    ["pagePath", "pageTitle"],
                    ["screenPageViews", "bounceRate", "averageSessionDuration"],
                    dimension_filter=contains("pagePath", "404"),
                    order_by=by_metric("screenPageViews"),
                    limit=20,
                ),
            ),
            *self.optional(
                "device_performance",
                primary=load_time_report(
                    date_range, "deviceCategory", LOAD_TIME, extra=["bounceRate"]
                ),
                fallback=load_time_report(
                    date_range, "deviceCategory", LOAD_TIME_PROXY, extra=["bounceRate"]
                ),
            ),
        ]

    async def build(self, date_range: DateRange) -> TechnicalPerformance:
        result = await self.run(self.queries(date_range))

        pages = [decoders.decode_page_load(r) for r in result.rows("page_load")]
        overall = weighted_average([p.avg_load_time for p in pages], [p.views for p in pages])
        error_pages = [decoders.decode_error_page(r) for r in result.rows("error_pages")]

        device_performance = None
        if result.available("device_performance"):
            device_performance = [
                decoders.decode_device_performance(r) for r in result.rows("device_performance")
            ]

        return TechnicalPerformance(
            overall_avg_load_time=round(overall, 2),
            load_time_source=(
                DataSource.SESSION_DURATION_PROXY if result.degraded("page_load") else DataSource.PAGE_LOAD_TIME
            ),
            page_load_times=pages,
            error_pages=error_pages,
            total_404_errors=int(sum_of(error_pages, "views")),
            device_performance=device_performance,
        )

    async def core_web_vitals(self, date_range: DateRange) -> CoreWebVitals:
        """
        Counts of web-vitals events; unavailable unless the site sends them.

        Event names are matched by substring, case-insensitively, so both
        ``LCP`` and ``web_vitals_lcp`` count towards LCP.
        """
        result = await self.run(
            [
                QuerySpec(
                    "web_vitals",
                    report(
                        date_range,
                        ["eventName"],
                        ["eventCount"],
                        dimension_filter=contains_any("eventName", *WEB_VITALS),
                    ),
                    required=False,
                )
            ]
        )
        if not result.available("web_vitals"):
            return CoreWebVitals()

        events = (decoders.decode_event_count(r) for r in result.rows("web_vitals"))
        totals = funnel_from_event_names(((e.event_name, e.count) for e in events), WEB_VITAL_RULES)
        vitals = {name: int(count) for name, count in totals.items()}
        return CoreWebVitals(vitals=vitals, available=any(vitals.values()))
