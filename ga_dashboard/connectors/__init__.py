"""External reporting API connectors."""

from ga_dashboard.connectors.report_client import (
    GA4ReportClient,
    ReportClient,
    ReportQueryError,
    get_report_client,
    init_report_client,
)

__all__ = [
    "GA4ReportClient",
    "ReportClient",
    "ReportQueryError",
    "get_report_client",
    "init_report_client",
]
