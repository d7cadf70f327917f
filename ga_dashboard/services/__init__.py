"""
Domain report builders.
Each builder composes report queries, decoders and aggregators into the
result model for one dashboard page.
"""

from ga_dashboard.services.audience import AudienceReportBuilder
from ga_dashboard.services.base import ReportBuilder
from ga_dashboard.services.content import ContentReportBuilder
from ga_dashboard.services.conversion import ConversionReportBuilder
from ga_dashboard.services.engagement import EngagementReportBuilder
from ga_dashboard.services.overview import OverviewReportBuilder
from ga_dashboard.services.seo import SEOReportBuilder
from ga_dashboard.services.sessions import SessionReportBuilder
from ga_dashboard.services.technical import TechnicalReportBuilder
from ga_dashboard.services.traffic import TrafficReportBuilder

__all__ = [
    "ReportBuilder",
    "OverviewReportBuilder",
    "AudienceReportBuilder",
    "EngagementReportBuilder",
    "ConversionReportBuilder",
    "ContentReportBuilder",
    "SEOReportBuilder",
    "TechnicalReportBuilder",
    "SessionReportBuilder",
    "TrafficReportBuilder",
]
