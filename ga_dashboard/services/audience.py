"""
Audience profile: geography, devices, new vs returning, demographics,
language and time-of-day traffic.
"""

from typing import Optional

from ga_dashboard.engine import decoders
from ga_dashboard.engine.aggregators import percentage_of_total
from ga_dashboard.engine.pipeline import QuerySpec
from ga_dashboard.models.enums import FieldKind
from ga_dashboard.models.records import BucketCount, DeviceRecord, SegmentRecord
from ga_dashboard.models.reports import DateRange, ReportRow, by_dimension, by_metric
from ga_dashboard.models.results import (
    AudienceProfile,
    AudienceTotals,
    Demographics,
    NewReturningMetrics,
    TimeAnalysis,
)
from ga_dashboard.services.base import ReportBuilder, report

TRAFFIC_METRICS = ["activeUsers", "sessions", "screenPageViews"]
DETAILED_DEVICE_DIMENSIONS = [
    "deviceCategory",
    "mobileDeviceModel",
    "mobileDeviceMarketingName",
    "screenResolution",
]
DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


def new_returning(active_users: int, new_users: int) -> NewReturningMetrics:
    """
    Split active users into new and returning.

    Returning users are not a metric upstream; they are derived as
    activeUsers - newUsers and passed through unclamped, so a negative value
    surfaces an inconsistency between the two upstream counts.
    """
    return NewReturningMetrics(
        new_users=new_users,
        returning_users=active_users - new_users,
        total_users=active_users,
    )


def with_device_percentages(devices: list[DeviceRecord]) -> list[DeviceRecord]:
    """Shares of the listed device rows, not of the whole window."""
    user_pcts = percentage_of_total([d.users for d in devices])
    session_pcts = percentage_of_total([d.sessions for d in devices])
    return [
        d.model_copy(update={"user_percentage": u, "session_percentage": s})
        for d, u, s in zip(devices, user_pcts, session_pcts)
    ]


def fold_demographics(rows: list[ReportRow]) -> Demographics:
    """Sum users per age bracket and per gender, dropping unknown values."""
    ages: dict[str, int] = {}
    genders: dict[str, int] = {}
    for row in rows:
        age, gender, users = decoders.decode_bucket(row)
        if age is not None:
            ages[age] = ages.get(age, 0) + users
        if gender is not None:
            genders[gender] = genders.get(gender, 0) + users
    return Demographics(
        age_brackets=[BucketCount(name=k, users=v) for k, v in sorted(ages.items())],
        genders=[
            BucketCount(name=k, users=v)
            for k, v in sorted(genders.items(), key=lambda item: item[1], reverse=True)
        ],
    )


def label_day(record: SegmentRecord) -> SegmentRecord:
    if record.segment is not None and record.segment.isdigit() and int(record.segment) < 7:
        return record.model_copy(update={"label": DAY_NAMES[int(record.segment)]})
    return record


class AudienceReportBuilder(ReportBuilder):
    """
    Required: overview totals, geographic, device (detailed with category
    fallback), visitor type. Optional: demographics, language, time_analysis.
    """

    OPTIONAL_QUERIES = frozenset({"demographics", "language", "time_analysis"})

    def queries(self, date_range: DateRange) -> list[QuerySpec]:
        by_users = by_metric("activeUsers")
        return [
            QuerySpec("overview", report(date_range, metrics=["activeUsers", "newUsers", "sessions"])),
            QuerySpec(
                "geographic",
                report(date_range, ["country", "region"], TRAFFIC_METRICS, order_by=by_users, limit=50),
            ),
            QuerySpec(
                "device",
                primary=report(
                    date_range, DETAILED_DEVICE_DIMENSIONS, TRAFFIC_METRICS, order_by=by_users, limit=50
                ),
                fallback=report(date_range, ["deviceCategory"], TRAFFIC_METRICS, order_by=by_users),
            ),
            QuerySpec("visitor_type", report(date_range, ["newVsReturning"], TRAFFIC_METRICS)),
            *self.optional(
                "demographics",
                report(date_range, ["userAgeBracket", "userGender"], ["activeUsers"], limit=50),
            ),
            *self.optional(
                "language",
                report(date_range, ["language"], TRAFFIC_METRICS, order_by=by_users, limit=20),
            ),
            *self.optional(
                "time_by_hour",
                report(date_range, ["hour"], TRAFFIC_METRICS, order_by=by_dimension("hour")),
                group="time_analysis",
            ),
            *self.optional(
                "time_by_day",
                report(date_range, ["dayOfWeek"], TRAFFIC_METRICS, order_by=by_dimension("dayOfWeek")),
                group="time_analysis",
            ),
        ]

    async def build(self, date_range: DateRange) -> AudienceProfile:
        result = await self.run(self.queries(date_range))

        overview = decoders.decode_totals(
            result.first_row("overview"),
            [("active_users", FieldKind.INT), ("new_users", FieldKind.INT), ("sessions", FieldKind.INT)],
        )

        geographic = [decoders.decode_geo(r) for r in result.rows("geographic")]
        geo_pcts = percentage_of_total([g.users for g in geographic])
        geographic = [g.model_copy(update={"user_percentage": p}) for g, p in zip(geographic, geo_pcts)]

        device_degraded = result.degraded("device")
        decode_device = (
            decoders.decode_device_category if device_degraded else decoders.decode_device_detailed
        )
        devices = with_device_percentages([decode_device(r) for r in result.rows("device")])

        demographics: Optional[Demographics] = None
        if result.available("demographics"):
            demographics = fold_demographics(result.rows("demographics"))

        language = None
        if result.available("language"):
            language = [decoders.decode_segment(r) for r in result.rows("language")]

        time_analysis = None
        if result.available("time_by_hour") or result.available("time_by_day"):
            time_analysis = TimeAnalysis(
                by_hour=[decoders.decode_segment(r) for r in result.rows("time_by_hour") or []],
                by_day_of_week=[
                    label_day(decoders.decode_segment(r)) for r in result.rows("time_by_day") or []
                ],
            )

        # the detailed device query is capped, so totals come from the unsplit overview
        totals = AudienceTotals(users=overview["active_users"], sessions=overview["sessions"])
        return AudienceProfile(
            overview=totals,
            new_returning_metrics=new_returning(overview["active_users"], overview["new_users"]),
            geographic=geographic,
            device=devices,
            device_degraded=device_degraded,
            visitor_type=[decoders.decode_segment(r) for r in result.rows("visitor_type")],
            demographics=demographics,
            language=language,
            time_analysis=time_analysis,
            totals=totals,
        )
