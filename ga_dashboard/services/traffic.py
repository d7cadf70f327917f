"""Traffic sources under last-touch and first-touch attribution, plus landing pages."""

from ga_dashboard.engine import decoders
from ga_dashboard.engine.aggregators import percentage_of_total
from ga_dashboard.engine.pipeline import QuerySpec
from ga_dashboard.models.records import SourceRecord
from ga_dashboard.models.reports import DateRange, by_metric
from ga_dashboard.models.results import TrafficSources
from ga_dashboard.services.base import ReportBuilder, report


def with_session_percentages(sources: list[SourceRecord]) -> list[SourceRecord]:
    pcts = percentage_of_total([s.sessions for s in sources])
    return [s.model_copy(update={"session_percentage": p}) for s, p in zip(sources, pcts)]


class TrafficReportBuilder(ReportBuilder):
    """All three queries are required."""

    def queries(self, date_range: DateRange, limit: int = 20) -> list[QuerySpec]:
        by_sessions = by_metric("sessions")
        return [
            QuerySpec(
                "session_sources",
                report(
                    date_range,
                    ["sessionSource", "sessionMedium", "sessionDefaultChannelGroup"],
                    ["sessions", "activeUsers"],
                    order_by=by_sessions,
                    limit=limit,
                ),
            ),
            QuerySpec(
                "first_touch",
                report(
                    date_range,
                    ["firstUserSource", "firstUserMedium"],
                    ["sessions", "activeUsers", "newUsers"],
                    order_by=by_sessions,
                    limit=limit,
                ),
            ),
            QuerySpec(
                "landing_pages",
                report(
                    date_range,
                    ["landingPage"],
                    ["sessions", "activeUsers", "newUsers", "bounceRate"],
                    order_by=by_sessions,
                    limit=limit,
                ),
            ),
        ]

    async def build(self, date_range: DateRange, limit: int = 20) -> TrafficSources:
        result = await self.run(self.queries(date_range, limit))
        return TrafficSources(
            session_sources=with_session_percentages(
                [decoders.decode_session_source(r) for r in result.rows("session_sources")]
            ),
            first_touch_sources=with_session_percentages(
                [decoders.decode_first_touch_source(r) for r in result.rows("first_touch")]
            ),
            landing_pages=[decoders.decode_landing_page(r) for r in result.rows("landing_pages")],
        )
