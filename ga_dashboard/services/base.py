"""
Base class for domain report builders.

A builder composes several report queries, decoders and aggregators into
one result model for a dashboard page. Optional sub-queries are selected by
name through ``include`` so that one builder covers both the full and the
reduced variants of a page.
"""

from typing import Iterable, Optional

import structlog

from ga_dashboard.connectors.report_client import ReportClient
from ga_dashboard.engine.pipeline import PipelineResult, QuerySpec, ReportPipeline
from ga_dashboard.models.reports import (
    DateRange,
    FilterExpression,
    OrderBy,
    ReportRequest,
)


def report(
    date_range: DateRange,
    dimensions: Iterable[str] = (),
    metrics: Iterable[str] = (),
    dimension_filter: Optional[FilterExpression] = None,
    order_by: Optional[OrderBy] = None,
    limit: Optional[int] = None,
) -> ReportRequest:
    """Shorthand for building a ReportRequest."""
    return ReportRequest(
        date_range=date_range,
        dimensions=list(dimensions),
        metrics=list(metrics),
        dimension_filter=dimension_filter,
        order_by=order_by,
        limit=limit,
    )


class ReportBuilder:
    """
    Shared plumbing for domain report builders.

    Subclasses list their optional sub-query names in ``OPTIONAL_QUERIES``
    and implement ``build``.

    Args:
        client: Report client used for every sub-query
        timeout_seconds: Deadline for all sub-queries of one build
        include: Optional sub-queries to run (default: all of them)
    """

    OPTIONAL_QUERIES: frozenset[str] = frozenset()

    def __init__(
        self,
        client: ReportClient,
        timeout_seconds: float = 30.0,
        include: Optional[Iterable[str]] = None,
    ):
        self.client = client
        self.pipeline = ReportPipeline(client, timeout_seconds=timeout_seconds)
        if include is None:
            self.include = self.OPTIONAL_QUERIES
        else:
            self.include = frozenset(include)
            unknown = self.include - self.OPTIONAL_QUERIES
            if unknown:
                raise ValueError(
                    f"{type(self).__name__} has no optional queries named {sorted(unknown)}"
                )
        self.logger = structlog.get_logger().bind(builder=type(self).__name__)

    def optional(
        self,
        name: str,
        primary: ReportRequest,
        fallback: Optional[ReportRequest] = None,
        group: Optional[str] = None,
    ) -> list[QuerySpec]:
        """
        An optional QuerySpec, or nothing when it is not included.

        ``group`` names the include switch when several queries share one.
        """
        if (group or name) not in self.include:
            return []
        return [QuerySpec(name=name, primary=primary, fallback=fallback, required=False)]

    async def run(self, specs: list[QuerySpec]) -> PipelineResult:
        result = await self.pipeline.run(specs)
        self.logger.info(
            "report_built",
            queries=len(specs),
            available=sorted(result.outcomes),
            degraded=sorted(n for n in result.outcomes if result.degraded(n)),
        )
        return result
