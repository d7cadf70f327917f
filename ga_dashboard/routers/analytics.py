"""
Analytics router - one endpoint per dashboard page.

Every endpoint takes an optional ``startDate``/``endDate`` window and
returns ``{"success": true, "data": ...}``. Report errors are translated to
error envelopes by the application's exception handlers.
"""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ValidationError

from ga_dashboard.config import Settings, get_settings
from ga_dashboard.connectors.report_client import ReportClient, get_report_client
from ga_dashboard.models.reports import DateRange
from ga_dashboard.services import (
    AudienceReportBuilder,
    ContentReportBuilder,
    ConversionReportBuilder,
    EngagementReportBuilder,
    OverviewReportBuilder,
    SEOReportBuilder,
    SessionReportBuilder,
    TechnicalReportBuilder,
    TrafficReportBuilder,
)
from ga_dashboard.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


def get_date_range(
    startDate: str = Query("30daysAgo", description="YYYY-MM-DD, today, yesterday or NdaysAgo"),
    endDate: str = Query("today", description="YYYY-MM-DD, today, yesterday or NdaysAgo"),
) -> DateRange:
    try:
        return DateRange(start_date=startDate, end_date=endDate)
    except ValidationError as e:
        message = "; ".join(err["msg"] for err in e.errors())
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)


def envelope(result: BaseModel) -> dict[str, Any]:
    return {"success": True, "data": result.model_dump(mode="json", by_alias=True)}


class Context:
    """Per-request dependencies shared by every analytics endpoint."""

    def __init__(
        self,
        date_range: DateRange = Depends(get_date_range),
        client: ReportClient = Depends(get_report_client),
        settings: Settings = Depends(get_settings),
    ):
        self.date_range = date_range
        self.client = client
        self.settings = settings

    @property
    def timeout(self) -> float:
        return self.settings.report_timeout_seconds


@router.get("/overview")
async def overview(ctx: Context = Depends()):
    """Site totals with the daily trend."""
    logger.info("analytics_overview", start=ctx.date_range.start_date, end=ctx.date_range.end_date)
    result = await OverviewReportBuilder(ctx.client, ctx.timeout).build(ctx.date_range)
    return envelope(result)


@router.get("/top-pages")
async def top_pages(ctx: Context = Depends(), limit: int = Query(10, ge=1, le=100)):
    result = await OverviewReportBuilder(ctx.client, ctx.timeout).top_pages(ctx.date_range, limit)
    return envelope(result)


@router.get("/audience")
async def audience(ctx: Context = Depends()):
    """Geography, devices, visitor type, demographics, language and time of day."""
    result = await AudienceReportBuilder(ctx.client, ctx.timeout).build(ctx.date_range)
    return envelope(result)


@router.get("/engagement")
async def engagement(ctx: Context = Depends()):
    result = await EngagementReportBuilder(ctx.client, ctx.timeout).build(ctx.date_range)
    return envelope(result)


@router.get("/engagement/by-page")
async def engagement_by_page(ctx: Context = Depends(), limit: int = Query(20, ge=1, le=100)):
    result = await EngagementReportBuilder(ctx.client, ctx.timeout).by_page(ctx.date_range, limit)
    return envelope(result)


@router.get("/conversion")
async def conversion(ctx: Context = Depends()):
    """Conversion rate, event funnel, revenue and cart abandonment."""
    result = await ConversionReportBuilder(ctx.client, ctx.timeout).build(ctx.date_range)
    return envelope(result)


@router.get("/conversion/by-source")
async def conversion_by_source(ctx: Context = Depends()):
    result = await ConversionReportBuilder(ctx.client, ctx.timeout).by_source(ctx.date_range)
    return envelope(result)


@router.get("/content")
async def content(ctx: Context = Depends()):
    builder = ContentReportBuilder(ctx.client, ctx.settings.site_hostname, ctx.timeout)
    return envelope(await builder.build(ctx.date_range))


@router.get("/seo")
async def seo(ctx: Context = Depends()):
    builder = SEOReportBuilder(ctx.client, ctx.settings.site_hostname, ctx.timeout)
    return envelope(await builder.build(ctx.date_range))


@router.get("/technical")
async def technical(ctx: Context = Depends()):
    """Page load times, 404 pages and per-device performance."""
    result = await TechnicalReportBuilder(ctx.client, ctx.timeout).build(ctx.date_range)
    return envelope(result)


@router.get("/core-web-vitals")
async def core_web_vitals(ctx: Context = Depends()):
    result = await TechnicalReportBuilder(ctx.client, ctx.timeout).core_web_vitals(ctx.date_range)
    return envelope(result)


@router.get("/sessions")
async def sessions(ctx: Context = Depends()):
    result = await SessionReportBuilder(ctx.client, ctx.timeout).build(ctx.date_range)
    return envelope(result)


@router.get("/traffic-sources")
async def traffic_sources(ctx: Context = Depends(), limit: int = Query(20, ge=1, le=100)):
    """Last-touch and first-touch sources with landing pages."""
    result = await TrafficReportBuilder(ctx.client, ctx.timeout).build(ctx.date_range, limit)
    return envelope(result)
