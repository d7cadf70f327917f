"""
Google Analytics 4 Data API report client.

This module is the only I/O boundary of the dashboard:
- ReportClient: abstract "run one report" capability
- GA4ReportClient: implementation on the GA4 Data API (v1beta, async)
- Error classification into ReportQueryError kinds (auth, quota,
  unsupported, transient, configuration)
- Process-wide client handle, initialized once at startup and read-only after
"""

import base64
import binascii
import json
from abc import ABC, abstractmethod
from typing import Any, Optional

import structlog
from google.analytics.data_v1beta import BetaAnalyticsDataAsyncClient
from google.analytics.data_v1beta.types import (
    DateRange as GADateRange,
    Dimension,
    Filter,
    FilterExpression as GAFilterExpression,
    FilterExpressionList,
    Metric,
    NumericValue,
    OrderBy as GAOrderBy,
    RunReportRequest,
)
from google.api_core import exceptions as api_exceptions
from google.oauth2 import service_account

from ga_dashboard.config import Settings, get_settings
from ga_dashboard.models.enums import ErrorKind
from ga_dashboard.models.reports import FilterExpression, ReportRequest, ReportRow

logger = structlog.get_logger()

SCOPES = ["https://www.googleapis.com/auth/analytics.readonly"]


class ReportQueryError(Exception):
    """
    Raised when a report query fails.

    Attributes:
        kind: Failure classification deciding how callers react
        cause: Underlying exception, if any
    """

    def __init__(self, kind: ErrorKind, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.kind = kind
        self.cause = cause

    @property
    def is_unsupported(self) -> bool:
        return self.kind == ErrorKind.UNSUPPORTED

    def __repr__(self) -> str:
        return f"ReportQueryError(kind={self.kind.value!r}, message={str(self)!r})"


def classify_api_error(exc: BaseException) -> ErrorKind:
    """
    Map a google-api-core exception onto an ErrorKind.

    GA4 answers INVALID_ARGUMENT for dimensions, metrics or custom
    parameters that are not defined on the property, so those are
    classified as UNSUPPORTED.
    """
    if isinstance(exc, (api_exceptions.Unauthenticated, api_exceptions.PermissionDenied)):
        return ErrorKind.AUTH
    if isinstance(exc, (api_exceptions.ResourceExhausted, api_exceptions.TooManyRequests)):
        return ErrorKind.QUOTA
    if isinstance(exc, (api_exceptions.InvalidArgument, api_exceptions.BadRequest)):
        return ErrorKind.UNSUPPORTED
    return ErrorKind.TRANSIENT


class ReportClient(ABC):
    """Runs one report query and returns its rows. Performs no interpretation of the rows."""

    @abstractmethod
    async def run_report(self, request: ReportRequest) -> list[ReportRow]:
        """
        Execute a report request.

        Raises:
            ReportQueryError: On auth, quota, unsupported-field or transport failures
        """


def load_credentials(settings: Settings) -> service_account.Credentials:
    """
    Load service account credentials.

    Prefers the base64-encoded JSON (production deployments) over the key
    file path (local development).

    Raises:
        ReportQueryError: CONFIGURATION when neither source is usable
    """
    if settings.ga_service_account_base64:
        try:
            info = json.loads(base64.b64decode(settings.ga_service_account_base64).decode("utf-8"))
        except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ReportQueryError(
                ErrorKind.CONFIGURATION, "GA_SERVICE_ACCOUNT_BASE64 is not valid base64 JSON", e
            )
        logger.info("ga_credentials_loaded", source="base64_env")
        return service_account.Credentials.from_service_account_info(info, scopes=SCOPES)

    if settings.ga_key_file_path:
        try:
            credentials = service_account.Credentials.from_service_account_file(
                settings.ga_key_file_path, scopes=SCOPES
            )
        except (OSError, ValueError) as e:
            raise ReportQueryError(
                ErrorKind.CONFIGURATION,
                f"Cannot read service account key file {settings.ga_key_file_path}",
                e,
            )
        logger.info("ga_credentials_loaded", source="key_file", path=settings.ga_key_file_path)
        return credentials

    raise ReportQueryError(
        ErrorKind.CONFIGURATION,
        "Neither GA_SERVICE_ACCOUNT_BASE64 nor GA_KEY_FILE_PATH is set",
    )


def _to_ga_filter(expression: FilterExpression) -> GAFilterExpression:
    """Translate a FilterExpression tree into the Data API's filter proto."""
    if expression.and_group is not None:
        return GAFilterExpression(
            and_group=FilterExpressionList(expressions=[_to_ga_filter(e) for e in expression.and_group])
        )
    if expression.or_group is not None:
        return GAFilterExpression(
            or_group=FilterExpressionList(expressions=[_to_ga_filter(e) for e in expression.or_group])
        )
    if expression.not_expression is not None:
        return GAFilterExpression(not_expression=_to_ga_filter(expression.not_expression))

    if expression.string_filter is not None:
        sf = expression.string_filter
        leaf = Filter(
            field_name=expression.field,
            string_filter=Filter.StringFilter(
                match_type=Filter.StringFilter.MatchType[sf.match_type.value],
                value=sf.value,
                case_sensitive=sf.case_sensitive,
            ),
        )
    else:
        nf = expression.numeric_filter
        if isinstance(nf.value, int):
            value = NumericValue(int64_value=nf.value)
        else:
            value = NumericValue(double_value=nf.value)
        leaf = Filter(
            field_name=expression.field,
            numeric_filter=Filter.NumericFilter(
                operation=Filter.NumericFilter.Operation[nf.operation.value],
                value=value,
            ),
        )
    return GAFilterExpression(filter=leaf)


class GA4ReportClient(ReportClient):
    """
    Report client backed by the GA4 Data API.

    Attributes:
        property_id: GA4 property ID (numeric string)
    """

    def __init__(self, property_id: str, api_client: Any):
        if not property_id:
            raise ReportQueryError(ErrorKind.CONFIGURATION, "GA_PROPERTY_ID is not set")
        self.property_id = property_id
        self._api = api_client

    @classmethod
    def from_settings(cls, settings: Settings) -> "GA4ReportClient":
        if not settings.ga_property_id:
            raise ReportQueryError(ErrorKind.CONFIGURATION, "GA_PROPERTY_ID is not set")
        credentials = load_credentials(settings)
        return cls(settings.ga_property_id, BetaAnalyticsDataAsyncClient(credentials=credentials))

    def build_request(self, request: ReportRequest) -> RunReportRequest:
        """Translate a ReportRequest into a RunReportRequest proto."""
        kwargs: dict[str, Any] = {
            "property": f"properties/{self.property_id}",
            "date_ranges": [
                GADateRange(
                    start_date=request.date_range.start_date,
                    end_date=request.date_range.end_date,
                )
            ],
            "dimensions": [Dimension(name=d) for d in request.dimensions],
            "metrics": [Metric(name=m) for m in request.metrics],
        }
        if request.dimension_filter is not None:
            kwargs["dimension_filter"] = _to_ga_filter(request.dimension_filter)
        if request.metric_filter is not None:
            kwargs["metric_filter"] = _to_ga_filter(request.metric_filter)
        if request.order_by is not None:
            if request.order_by.is_metric:
                order = GAOrderBy(
                    metric=GAOrderBy.MetricOrderBy(metric_name=request.order_by.field),
                    desc=request.order_by.desc,
                )
            else:
                order = GAOrderBy(
                    dimension=GAOrderBy.DimensionOrderBy(dimension_name=request.order_by.field),
                    desc=request.order_by.desc,
                )
            kwargs["order_bys"] = [order]
        if request.limit is not None:
            kwargs["limit"] = request.limit
        return RunReportRequest(**kwargs)

    async def run_report(self, request: ReportRequest) -> list[ReportRow]:
        ga_request = self.build_request(request)
        logger.debug(
            "report_query_started",
            dimensions=request.dimensions,
            metrics=request.metrics,
            start_date=request.date_range.start_date,
            end_date=request.date_range.end_date,
            limit=request.limit,
        )

        try:
            response = await self._api.run_report(request=ga_request)
        except api_exceptions.GoogleAPICallError as e:
            kind = classify_api_error(e)
            logger.warning(
                "report_query_failed",
                kind=kind.value,
                dimensions=request.dimensions,
                metrics=request.metrics,
                error=str(e),
            )
            raise ReportQueryError(kind, str(e), e)

        rows = [
            ReportRow(
                dimension_values=[v.value for v in row.dimension_values],
                metric_values=[v.value for v in row.metric_values],
            )
            for row in response.rows
        ]
        logger.debug(
            "report_query_completed",
            dimensions=request.dimensions,
            metrics=request.metrics,
            row_count=len(rows),
        )
        return rows


# ---------------------------------------------------------------------------
# Process-wide client handle
# ---------------------------------------------------------------------------

_report_client: Optional[ReportClient] = None


def init_report_client(settings: Optional[Settings] = None) -> Optional[ReportClient]:
    """
    Initialize the process-wide report client once.

    Called from the application lifespan. A missing or broken configuration
    is logged and leaves the handle unset; requests then fail with a
    CONFIGURATION error instead of the process refusing to start.
    """
    global _report_client
    if _report_client is not None:
        return _report_client

    settings = settings or get_settings()
    try:
        _report_client = GA4ReportClient.from_settings(settings)
    except ReportQueryError as e:
        logger.warning("report_client_unavailable", reason=str(e))
        return None

    logger.info("report_client_initialized", property_id=settings.ga_property_id)
    return _report_client


def get_report_client() -> ReportClient:
    """
    Get the initialized report client.

    Raises:
        ReportQueryError: CONFIGURATION if init_report_client has not succeeded
    """
    if _report_client is None:
        raise ReportQueryError(ErrorKind.CONFIGURATION, "Analytics client not initialized")
    return _report_client
