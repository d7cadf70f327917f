"""
Shared pipeline runner for domain report builders.

A builder declares its sub-queries as QuerySpecs; the pipeline issues them
all concurrently, joins them under one deadline and applies the
required/optional policy uniformly:

- required query fails            -> the error propagates, request aborts
- required query misses deadline  -> ReportTimeoutError
- optional query unsupported      -> skipped, field degrades to None
- optional query misses deadline  -> skipped, field degrades to None
- optional query fails otherwise  -> the error propagates (auth/quota/...)

A QuerySpec carrying a fallback request runs through fallback_chain, so an
unsupported primary query is retried once with the coarser request.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Optional, Sequence

import structlog

from ga_dashboard.connectors.report_client import ReportClient, ReportQueryError
from ga_dashboard.engine.aggregators import FallbackResult, fallback_chain
from ga_dashboard.models.reports import ReportRequest, ReportRow

logger = structlog.get_logger()


class ReportTimeoutError(Exception):
    """Raised when required report queries do not finish before the request deadline."""

    def __init__(self, pending: Sequence[str], timeout_seconds: float):
        super().__init__(
            f"Report queries timed out after {timeout_seconds}s: {', '.join(sorted(pending))}"
        )
        self.pending = list(pending)
        self.timeout_seconds = timeout_seconds


@dataclass(frozen=True)
class QuerySpec:
    """
    One sub-query of a domain report.

    Attributes:
        name: Key under which rows are returned
        primary: Preferred request
        fallback: Coarser request used when ``primary`` is unsupported
        required: Whether failure of this query aborts the whole report
    """

    name: str
    primary: ReportRequest
    fallback: Optional[ReportRequest] = None
    required: bool = True


@dataclass
class PipelineResult:
    """Rows per query name; skipped optional queries are absent."""

    outcomes: dict[str, FallbackResult[list[ReportRow]]] = field(default_factory=dict)

    def rows(self, name: str) -> Optional[list[ReportRow]]:
        outcome = self.outcomes.get(name)
        return None if outcome is None else outcome.data

    def first_row(self, name: str) -> Optional[ReportRow]:
        rows = self.rows(name)
        return rows[0] if rows else None

    def degraded(self, name: str) -> bool:
        outcome = self.outcomes.get(name)
        return outcome is not None and outcome.degraded

    def available(self, name: str) -> bool:
        return name in self.outcomes


def _skippable(error: BaseException) -> bool:
    return isinstance(error, ReportQueryError) and error.is_unsupported


class ReportPipeline:
    """Runs a builder's QuerySpecs concurrently against a report client."""

    def __init__(self, client: ReportClient, timeout_seconds: float = 30.0):
        self.client = client
        self.timeout_seconds = timeout_seconds

    async def _execute(self, spec: QuerySpec) -> FallbackResult[list[ReportRow]]:
        if spec.fallback is None:
            return FallbackResult(data=await self.client.run_report(spec.primary))
        return await fallback_chain(
            lambda: self.client.run_report(spec.primary),
            lambda: self.client.run_report(spec.fallback),
        )

    async def run(self, specs: Sequence[QuerySpec]) -> PipelineResult:
        names = [s.name for s in specs]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate query names in pipeline: {names}")

        result = PipelineResult()
        if not specs:
            return result

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout_seconds
        tasks = {asyncio.ensure_future(self._execute(spec)): spec for spec in specs}
        pending = set(tasks)
        fatal: Optional[tuple[QuerySpec, BaseException]] = None

        try:
            while pending and fatal is None:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    break
                finished, pending = await asyncio.wait(
                    pending, timeout=remaining, return_when=asyncio.FIRST_EXCEPTION
                )
                for task in finished:
                    spec = tasks[task]
                    error = task.exception()
                    if error is None:
                        result.outcomes[spec.name] = task.result()
                    elif spec.required or not _skippable(error):
                        fatal = fatal or (spec, error)
                    else:
                        logger.info("optional_query_skipped", query=spec.name, reason=str(error))

            if fatal is not None:
                spec, error = fatal
                logger.warning(
                    "report_query_fatal", query=spec.name, required=spec.required, error=str(error)
                )
                raise error

            timed_out = [tasks[t].name for t in pending if tasks[t].required]
            for task in pending:
                if not tasks[task].required:
                    logger.info("optional_query_skipped", query=tasks[task].name, reason="timeout")
            if timed_out:
                logger.warning(
                    "report_query_timeout", queries=timed_out, timeout_seconds=self.timeout_seconds
                )
                raise ReportTimeoutError(timed_out, self.timeout_seconds)
        finally:
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        return result
