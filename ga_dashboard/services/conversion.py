"""
Conversion funnel: overall conversion rate, event-name funnel categories,
revenue, cart abandonment and conversions by traffic source.
"""

from ga_dashboard.engine import decoders
from ga_dashboard.engine.aggregators import MatchRule, fixed, funnel_from_event_names, rate, top_n
from ga_dashboard.engine.pipeline import QuerySpec
from ga_dashboard.models.enums import FieldKind, MatchType
from ga_dashboard.models.reports import DateRange, by_metric
from ga_dashboard.models.results import ConversionBySource, ConversionMetrics
from ga_dashboard.services.base import ReportBuilder, report
from ga_dashboard.services.overview import conversions_source

FORM = "form_submissions"
EMAIL = "email_opt_ins"
PURCHASE = "purchases"
ADD_TO_CART = "add_to_cart"

# Order matters: an event is counted in the first category it matches.
FUNNEL_RULES = [
    MatchRule(FORM, MatchType.CONTAINS, "form"),
    MatchRule(FORM, MatchType.CONTAINS, "submit"),
    MatchRule(EMAIL, MatchType.CONTAINS, "email"),
    MatchRule(EMAIL, MatchType.CONTAINS, "newsletter"),
    MatchRule(EMAIL, MatchType.CONTAINS, "signup"),
    MatchRule(PURCHASE, MatchType.EXACT, "purchase"),
    MatchRule(PURCHASE, MatchType.CONTAINS, "transaction"),
    MatchRule(ADD_TO_CART, MatchType.CONTAINS, "add_to_cart"),
]

EVENTS_LIMIT = 1000
SOURCES_LIMIT = 20


class ConversionReportBuilder(ReportBuilder):
    """Required: overall totals (conversions falls back to keyEvents), events."""

    def queries(self, date_range: DateRange) -> list[QuerySpec]:
        base = ["sessions", "activeUsers", "eventCount"]
        return [
            QuerySpec(
                "overall",
                primary=report(date_range, metrics=base + ["conversions"]),
                fallback=report(date_range, metrics=base + ["keyEvents"]),
            ),
            QuerySpec(
                "events",
                report(
                    date_range,
                    ["eventName"],
                    ["eventCount", "totalRevenue"],
                    order_by=by_metric("eventCount"),
                    limit=EVENTS_LIMIT,
                ),
            ),
        ]

    async def build(self, date_range: DateRange) -> ConversionMetrics:
        result = await self.run(self.queries(date_range))

        overall = decoders.decode_totals(
            result.first_row("overall"),
            [
                ("sessions", FieldKind.INT),
                ("users", FieldKind.INT),
                ("events", FieldKind.INT),
                ("conversions", FieldKind.INT),
            ],
        )

        events = [decoders.decode_event_count(r) for r in result.rows("events")]
        counts = funnel_from_event_names(((e.event_name, e.count) for e in events), FUNNEL_RULES)
        revenue = funnel_from_event_names(((e.event_name, e.revenue) for e in events), FUNNEL_RULES)

        purchases = int(counts[PURCHASE])
        add_to_cart = int(counts[ADD_TO_CART])

        return ConversionMetrics(
            conversion_rate=fixed(rate(overall["conversions"], overall["sessions"]), 2),
            total_conversions=overall["conversions"],
            conversions_metric=conversions_source(result.degraded("overall")),
            total_sessions=overall["sessions"],
            total_users=overall["users"],
            total_events=overall["events"],
            form_submissions=int(counts[FORM]),
            email_opt_ins=int(counts[EMAIL]),
            purchases=purchases,
            revenue=fixed(revenue[PURCHASE], 2),
            add_to_cart=add_to_cart,
            cart_abandonment_rate=fixed(rate(add_to_cart - purchases, add_to_cart), 2),
        )

    async def by_source(self, date_range: DateRange) -> ConversionBySource:
        """Conversions per session source / medium with a per-source conversion rate."""
        result = await self.run(
            [
                QuerySpec(
                    "sources",
                    primary=report(
                        date_range,
                        ["sessionSource", "sessionMedium"],
                        ["conversions", "sessions", "activeUsers"],
                        order_by=by_metric("conversions"),
                        limit=SOURCES_LIMIT,
                    ),
                    fallback=report(
                        date_range,
                        ["sessionSource", "sessionMedium"],
                        ["keyEvents", "sessions", "activeUsers"],
                        order_by=by_metric("keyEvents"),
                        limit=SOURCES_LIMIT,
                    ),
                )
            ]
        )
        sources = [decoders.decode_source_conversion(r) for r in result.rows("sources")]
        sources = [
            s.model_copy(update={"conversion_rate": fixed(rate(s.conversions, s.sessions), 2)})
            for s in sources
        ]
        return ConversionBySource(sources=top_n(sources, key=lambda s: s.conversions, n=SOURCES_LIMIT))
