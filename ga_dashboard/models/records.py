"""
Decoded report records.

Each record is the typed form of one report row. Numeric fields are already
parsed; unknown dimension values are either None or a display fallback,
depending on the field. Records serialize with camelCase keys for the
dashboard front end.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serializing field names as camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Audience
# ---------------------------------------------------------------------------


class GeoRecord(CamelModel):
    country: str
    region: str
    users: int = 0
    sessions: int = 0
    page_views: int = 0
    user_percentage: str = "0.0"


class DeviceRecord(CamelModel):
    device: str
    model: Optional[str] = None
    marketing_name: Optional[str] = None
    screen_resolution: Optional[str] = None
    users: int = 0
    sessions: int = 0
    page_views: int = 0
    user_percentage: str = "0.0"
    session_percentage: str = "0.0"


class SegmentRecord(CamelModel):
    """Users/sessions/views for one value of a single categorical dimension."""

    segment: Optional[str]
    label: Optional[str] = None
    users: int = 0
    sessions: int = 0
    page_views: int = 0


class BucketCount(CamelModel):
    name: str
    users: int = 0


class DailyTrendPoint(CamelModel):
    date: str
    users: int = 0
    new_users: int = 0
    returning_users: int = 0
    sessions: int = 0
    page_views: int = 0


# ---------------------------------------------------------------------------
# Pages
# ---------------------------------------------------------------------------


class TopPage(CamelModel):
    path: str
    title: str
    views: int = 0
    avg_duration: float = 0.0


class ExitPage(CamelModel):
    path: str
    title: str
    exits: int = 0
    views: int = 0
    exit_rate: str = "0.00"
    avg_duration: float = 0.0


class EngagedPage(CamelModel):
    path: str
    title: str
    views: int = 0
    avg_duration: float = 0.0
    total_engagement: float = 0.0
    sessions: int = 0
    engagement_per_view: str = "0.00"


class PageEngagement(CamelModel):
    path: str
    title: str
    bounce_rate: float = 0.0
    avg_session_duration: float = 0.0
    page_views: int = 0
    sessions: int = 0
    pages_per_session: float = 0.0


class ScrollDepthPage(CamelModel):
    path: str
    scrolled_users: int = 0
    total_users: int = 0
    percent_scrolled: str = "0.00"


class PageLoadTime(CamelModel):
    path: str
    avg_load_time: float = 0.0
    views: int = 0


class ErrorPage(CamelModel):
    path: str
    title: str
    views: int = 0
    bounce_rate: float = 0.0
    avg_duration: float = 0.0


class ContentGroupRecord(CamelModel):
    group1: str
    group2: str
    page_views: int = 0
    sessions: int = 0
    users: int = 0


class FlowSource(CamelModel):
    from_page: str = Field(alias="from")
    views: int = 0


class UserFlow(CamelModel):
    page: str
    total_views: int = 0
    sources: list[FlowSource] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Events, sources, devices
# ---------------------------------------------------------------------------


class EventCount(CamelModel):
    event_name: str
    count: int = 0
    revenue: float = 0.0


class SourceRecord(CamelModel):
    source: str
    medium: str
    channel_group: Optional[str] = None
    sessions: int = 0
    users: int = 0
    new_users: Optional[int] = None
    attribution: str
    session_percentage: str = "0.0"


class SourceConversion(CamelModel):
    source: str
    medium: str
    conversions: int = 0
    sessions: int = 0
    users: int = 0
    conversion_rate: str = "0.00"


class LandingPage(CamelModel):
    landing_page: str
    sessions: int = 0
    users: int = 0
    new_users: int = 0
    bounce_rate: float = 0.0


class OrganicSource(CamelModel):
    source: str
    medium: str
    sessions: int = 0
    users: int = 0
    page_views: int = 0


class Keyword(CamelModel):
    keyword: str
    sessions: int = 0
    page_views: int = 0


class ReferringDomain(CamelModel):
    domain: str
    sessions: int = 0
    users: int = 0


class DevicePerformance(CamelModel):
    device: str
    avg_load_time: float = 0.0
    views: int = 0
    bounce_rate: float = 0.0
