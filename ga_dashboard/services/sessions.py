"""Session quality metrics."""

from ga_dashboard.engine import decoders
from ga_dashboard.engine.aggregators import ratio
from ga_dashboard.engine.pipeline import QuerySpec
from ga_dashboard.models.enums import FieldKind
from ga_dashboard.models.reports import DateRange
from ga_dashboard.models.results import SessionMetrics
from ga_dashboard.services.base import ReportBuilder, report

SESSION_FIELDS = [
    ("activeUsers", "active_users", FieldKind.INT),
    ("averageSessionDuration", "average_session_duration", FieldKind.FLOAT),
    ("bounceRate", "bounce_rate", FieldKind.RATIO_PCT),
    ("engagedSessions", "engaged_sessions", FieldKind.INT),
    ("engagementRate", "engagement_rate", FieldKind.RATIO_PCT),
    ("sessions", "sessions", FieldKind.INT),
]


class SessionReportBuilder(ReportBuilder):
    """Required: overall session totals. Optional: key_event_rate."""

    OPTIONAL_QUERIES = frozenset({"key_event_rate"})

    def queries(self, date_range: DateRange) -> list[QuerySpec]:
        return [
            QuerySpec("overall", report(date_range, metrics=[metric for metric, _, _ in SESSION_FIELDS])),
            *self.optional("key_event_rate", report(date_range, metrics=["sessionKeyEventRate"])),
        ]

    async def build(self, date_range: DateRange) -> SessionMetrics:
        result = await self.run(self.queries(date_range))

        overall = decoders.decode_totals(
            result.first_row("overall"), [(name, kind) for _, name, kind in SESSION_FIELDS]
        )

        key_event_rate = None
        if result.available("key_event_rate"):
            decoded = decoders.decode_totals(
                result.first_row("key_event_rate"), [("rate", FieldKind.RATIO_PCT)]
            )
            key_event_rate = round(decoded["rate"], 2)

        return SessionMetrics(
            active_users=overall["active_users"],
            average_session_duration=overall["average_session_duration"],
            bounce_rate=overall["bounce_rate"],
            engaged_sessions=overall["engaged_sessions"],
            engaged_sessions_per_active_user=ratio(overall["engaged_sessions"], overall["active_users"]),
            engagement_rate=overall["engagement_rate"],
            session_key_event_rate=key_event_rate,
            sessions=overall["sessions"],
            sessions_per_active_user=ratio(overall["sessions"], overall["active_users"]),
        )
