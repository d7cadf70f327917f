"""
Aggregate results returned by the domain report builders.

One model per dashboard page. Lists of decoded records plus derived
scalars. Optional sections are None when the sub-query backing them was not
available for the analytics property. Proxy-backed values carry a
``*Source`` label naming the query that produced them.
"""

from typing import Optional

from pydantic import Field

from .enums import DataSource
from .records import (
    BucketCount,
    CamelModel,
    ContentGroupRecord,
    DailyTrendPoint,
    DevicePerformance,
    DeviceRecord,
    EngagedPage,
    ErrorPage,
    ExitPage,
    GeoRecord,
    Keyword,
    LandingPage,
    OrganicSource,
    PageEngagement,
    PageLoadTime,
    ReferringDomain,
    ScrollDepthPage,
    SegmentRecord,
    SourceConversion,
    SourceRecord,
    TopPage,
    UserFlow,
)


class OverviewMetrics(CamelModel):
    active_users: int = 0
    new_users: int = 0
    returning_users: int = 0
    sessions: int = 0
    page_views: int = 0
    avg_session_duration: float = 0.0
    bounce_rate: float = 0.0
    conversions: int = 0
    conversions_metric: DataSource = DataSource.CONVERSIONS
    daily_trend: Optional[list[DailyTrendPoint]] = None


class NewReturningMetrics(CamelModel):
    new_users: int = 0
    # activeUsers - newUsers, deliberately unclamped
    returning_users: int = 0
    total_users: int = 0


class Demographics(CamelModel):
    age_brackets: list[BucketCount] = Field(default_factory=list)
    genders: list[BucketCount] = Field(default_factory=list)


class TimeAnalysis(CamelModel):
    by_hour: list[SegmentRecord] = Field(default_factory=list)
    by_day_of_week: list[SegmentRecord] = Field(default_factory=list)


class AudienceTotals(CamelModel):
    users: int = 0
    sessions: int = 0


class AudienceProfile(CamelModel):
    overview: AudienceTotals
    new_returning_metrics: NewReturningMetrics
    geographic: list[GeoRecord] = Field(default_factory=list)
    device: list[DeviceRecord] = Field(default_factory=list)
    device_degraded: bool = False
    visitor_type: list[SegmentRecord] = Field(default_factory=list)
    demographics: Optional[Demographics] = None
    language: Optional[list[SegmentRecord]] = None
    time_analysis: Optional[TimeAnalysis] = None
    totals: AudienceTotals


class EngagementMetrics(CamelModel):
    bounce_rate: float = 0.0
    average_session_duration: float = 0.0
    pages_per_session: float = 0.0
    scroll_depth: Optional[dict[str, int]] = None
    scroll_depth_by_page: Optional[list[ScrollDepthPage]] = None
    scroll_depth_source: Optional[DataSource] = None
    cta_clicks: Optional[int] = None
    total_sessions: int = 0
    total_page_views: int = 0
    total_events: int = 0


class EngagementByPage(CamelModel):
    pages: list[PageEngagement] = Field(default_factory=list)
    weighted_bounce_rate: float = 0.0
    weighted_avg_session_duration: float = 0.0


class ConversionMetrics(CamelModel):
    conversion_rate: str = "0.00"
    total_conversions: int = 0
    conversions_metric: DataSource = DataSource.CONVERSIONS
    total_sessions: int = 0
    total_users: int = 0
    total_events: int = 0
    form_submissions: int = 0
    email_opt_ins: int = 0
    purchases: int = 0
    revenue: str = "0.00"
    add_to_cart: int = 0
    cart_abandonment_rate: str = "0.00"


class ConversionBySource(CamelModel):
    sources: list[SourceConversion] = Field(default_factory=list)


class ContentInsights(CamelModel):
    top_exit_pages: list[ExitPage] = Field(default_factory=list)
    exits_source: DataSource = DataSource.EXITS
    high_engagement_pages: list[EngagedPage] = Field(default_factory=list)
    user_flows: Optional[list[UserFlow]] = None
    user_flows_degraded: bool = False
    content_grouping: Optional[list[ContentGroupRecord]] = None


class OrganicSearch(CamelModel):
    total_sessions: int = 0
    total_users: int = 0
    sources: list[OrganicSource] = Field(default_factory=list)


class KeywordSummary(CamelModel):
    total: int = 0
    top_keywords: list[Keyword] = Field(default_factory=list)


class ReferringDomains(CamelModel):
    total: int = 0
    domains: list[ReferringDomain] = Field(default_factory=list)
    note: str = ""


class SEOMetrics(CamelModel):
    organic_search: OrganicSearch
    keywords: Optional[KeywordSummary] = None
    referring_domains: Optional[ReferringDomains] = None
    note: str = ""


class TechnicalPerformance(CamelModel):
    overall_avg_load_time: float = 0.0
    load_time_source: DataSource = DataSource.PAGE_LOAD_TIME
    page_load_times: list[PageLoadTime] = Field(default_factory=list)
    error_pages: list[ErrorPage] = Field(default_factory=list)
    total_404_errors: int = Field(default=0, alias="total404Errors")
    device_performance: Optional[list[DevicePerformance]] = None


class CoreWebVitals(CamelModel):
    vitals: dict[str, int] = Field(default_factory=dict)
    available: bool = False
    note: str = "Core Web Vitals require custom event tracking in GA4"


class SessionMetrics(CamelModel):
    active_users: int = 0
    average_session_duration: float = 0.0
    bounce_rate: float = 0.0
    engaged_sessions: int = 0
    engaged_sessions_per_active_user: float = 0.0
    engagement_rate: float = 0.0
    session_key_event_rate: Optional[float] = None
    sessions: int = 0
    sessions_per_active_user: float = 0.0


class TrafficSources(CamelModel):
    session_sources: list[SourceRecord] = Field(default_factory=list)
    first_touch_sources: list[SourceRecord] = Field(default_factory=list)
    landing_pages: list[LandingPage] = Field(default_factory=list)


class TopPages(CamelModel):
    pages: list[TopPage] = Field(default_factory=list)
