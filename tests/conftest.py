"""
Pytest configuration and shared fixtures for the GA dashboard test suite.

Provides row factories, an in-memory report client that answers requests
from canned routes, environment isolation and an authenticated API client.
"""

import asyncio
import os
from typing import Callable, Iterable, Optional, Sequence, Union
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

# Set testing environment BEFORE importing app
os.environ["TESTING"] = "true"
os.environ["ADMIN_ACCESS_CODE"] = "4321"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["GA_PROPERTY_ID"] = ""
os.environ["GA_SERVICE_ACCOUNT_BASE64"] = ""
os.environ["GA_KEY_FILE_PATH"] = ""
os.environ["SITE_HOSTNAME"] = "example.com"
os.environ["LOG_FORMAT"] = "console"

from ga_dashboard.connectors.report_client import ReportClient, ReportQueryError  # noqa: E402
from ga_dashboard.models.enums import ErrorKind  # noqa: E402
from ga_dashboard.models.reports import DateRange, ReportRequest, ReportRow  # noqa: E402


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def make_row(dimensions: Sequence[object] = (), metrics: Sequence[object] = ()) -> ReportRow:
    """Report row with every value rendered as the API renders it (strings)."""
    return ReportRow(
        dimension_values=[str(d) for d in dimensions],
        metric_values=[str(m) for m in metrics],
    )


def make_request(
    metrics: Sequence[str] = ("activeUsers",),
    dimensions: Sequence[str] = (),
    **overrides,
) -> ReportRequest:
    return ReportRequest(
        date_range=overrides.pop("date_range", DateRange()),
        dimensions=list(dimensions),
        metrics=list(metrics),
        **overrides,
    )


def unsupported(message: str = "Field is not a valid metric for this property") -> ReportQueryError:
    return ReportQueryError(ErrorKind.UNSUPPORTED, message)


def run(coro):
    """Drive a coroutine to completion from a synchronous test."""
    return asyncio.run(coro)


Response = Union[list, BaseException]


class FakeReportClient(ReportClient):
    """
    In-memory report client.

    Routes are matched in the order they were added: a route matches when
    every metric and dimension it names is part of the request and its
    ``where`` predicate (if any) accepts the request. Unmatched requests
    return an empty report.
    """

    def __init__(self):
        self.routes: list[tuple] = []
        self.requests: list[ReportRequest] = []
        self.in_flight = 0
        self.max_in_flight = 0

    def on(
        self,
        response: Response,
        metrics: Optional[Iterable[str]] = None,
        dimensions: Optional[Iterable[str]] = None,
        where: Optional[Callable[[ReportRequest], bool]] = None,
        delay: float = 0.0,
    ) -> "FakeReportClient":
        self.routes.append(
            (
                set(metrics) if metrics is not None else None,
                set(dimensions) if dimensions is not None else None,
                where,
                response,
                delay,
            )
        )
        return self

    def _match(self, request: ReportRequest):
        for metrics, dimensions, where, response, delay in self.routes:
            if metrics is not None and not metrics <= set(request.metrics):
                continue
            if dimensions is not None and not dimensions <= set(request.dimensions):
                continue
            if where is not None and not where(request):
                continue
            return response, delay
        return [], 0.0

    def requested(self, metric: str) -> list[ReportRequest]:
        return [r for r in self.requests if metric in r.metrics]

    async def run_report(self, request: ReportRequest) -> list[ReportRow]:
        self.requests.append(request)
        response, delay = self._match(request)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            # Yield at least once so concurrent queries overlap
            await asyncio.sleep(delay)
        finally:
            self.in_flight -= 1
        if isinstance(response, BaseException):
            raise response
        return list(response)


# ---------------------------------------------------------------------------
# Pytest fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_client() -> FakeReportClient:
    return FakeReportClient()


@pytest.fixture
def date_range() -> DateRange:
    return DateRange(start_date="7daysAgo", end_date="today")


@pytest.fixture
def client(fake_client):
    """FastAPI test client with the report client replaced by the in-memory fake."""
    from ga_dashboard.connectors.report_client import get_report_client
    from ga_dashboard.main import app

    app.dependency_overrides[get_report_client] = lambda: fake_client
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    """Authenticated request headers for integration tests."""
    from ga_dashboard.auth.jwt import ADMIN_SUBJECT, create_access_token

    return {
        "Authorization": f"Bearer {create_access_token({'sub': ADMIN_SUBJECT})}",
        "X-Request-ID": str(uuid4()),
    }
