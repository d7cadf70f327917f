"""SEO: organic search sources, search keywords and referring domains."""

from typing import Iterable, Optional
from urllib.parse import urlsplit

from ga_dashboard.engine import decoders
from ga_dashboard.engine.aggregators import is_own_host, sum_of, top_n
from ga_dashboard.engine.pipeline import QuerySpec
from ga_dashboard.models.records import ReferringDomain
from ga_dashboard.models.reports import DateRange, ReportRow, by_metric, exact
from ga_dashboard.models.results import KeywordSummary, OrganicSearch, ReferringDomains, SEOMetrics
from ga_dashboard.services.base import ReportBuilder, report

KEYWORDS_SHOWN = 20
DOMAINS_SHOWN = 50
REFERRING_DOMAINS_NOTE = "Referring domains are derived from referral sessions recorded by GA4"
BACKLINKS_NOTE = "Backlink data is not available from GA4; use Google Search Console for backlinks"


def external_domain(referrer: Optional[str], site_hostname: str) -> Optional[str]:
    """Hostname of an external referrer; None for own-site, missing or unparsable referrers."""
    if referrer is None:
        return None
    try:
        hostname = urlsplit(referrer.strip()).hostname
    except ValueError:
        return None
    if not hostname or is_own_host(hostname, site_hostname):
        return None
    return hostname.lower()


def fold_referring_domains(rows: Iterable[ReportRow], site_hostname: str) -> list[ReferringDomain]:
    """Sum sessions and users per external referring hostname, ranked by sessions."""
    domains: dict[str, ReferringDomain] = {}
    for row in rows:
        referrer, sessions, users = decoders.decode_referrer(row)
        domain = external_domain(referrer, site_hostname)
        if domain is None:
            continue
        record = domains.setdefault(domain, ReferringDomain(domain=domain))
        record.sessions += sessions
        record.users += users
    return top_n(domains.values(), key=lambda d: d.sessions, n=None)


class SEOReportBuilder(ReportBuilder):
    """Required: organic search sources. Optional: keywords, referring_domains."""

    OPTIONAL_QUERIES = frozenset({"keywords", "referring_domains"})

    def __init__(self, client, site_hostname: str, timeout_seconds: float = 30.0, include=None):
        super().__init__(client, timeout_seconds=timeout_seconds, include=include)
        self.site_hostname = site_hostname

    def queries(self, date_range: DateRange) -> list[QuerySpec]:
        by_sessions = by_metric("sessions")
        return [
            QuerySpec(
                "organic",
                report(
                    date_range,
                    ["sessionSource", "sessionMedium"],
                    ["sessions", "activeUsers", "screenPageViews"],
                    dimension_filter=exact("sessionMedium", "organic"),
                    order_by=by_sessions,
                    limit=20,
                ),
            ),
            *self.optional(
                "keywords",
                report(
                    date_range,
                    ["searchTerm"],
                    ["sessions", "screenPageViews"],
                    order_by=by_sessions,
                    limit=50,
                ),
            ),
            *self.optional(
                "referring_domains",
                report(
                    date_range,
                    ["pageReferrer"],
                    ["sessions", "activeUsers"],
                    dimension_filter=exact("sessionMedium", "referral"),
                    order_by=by_sessions,
                    limit=200,
                ),
            ),
        ]

    async def build(self, date_range: DateRange) -> SEOMetrics:
        result = await self.run(self.queries(date_range))

        sources = [decoders.decode_organic_source(r) for r in result.rows("organic")]

        keywords = None
        if result.available("keywords"):
            decoded = [decoders.decode_keyword(r) for r in result.rows("keywords")]
            keywords = KeywordSummary(total=len(decoded), top_keywords=decoded[:KEYWORDS_SHOWN])

        referring = None
        if result.available("referring_domains"):
            domains = fold_referring_domains(result.rows("referring_domains"), self.site_hostname)
            referring = ReferringDomains(
                total=len(domains), domains=domains[:DOMAINS_SHOWN], note=REFERRING_DOMAINS_NOTE
            )

        return SEOMetrics(
            organic_search=OrganicSearch(
                total_sessions=int(sum_of(sources, "sessions")),
                total_users=int(sum_of(sources, "users")),
                sources=sources,
            ),
            keywords=keywords,
            referring_domains=referring,
            note=BACKLINKS_NOTE,
        )
