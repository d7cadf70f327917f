"""
Unit tests for the domain report builders, driven by the in-memory report
client. Each test wires canned rows to the sub-queries of one builder and
checks the folded result.
"""

import pytest

from ga_dashboard.connectors.report_client import ReportQueryError
from ga_dashboard.models.enums import DataSource, ErrorKind, MatchType
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
from ga_dashboard.services.engagement import PERCENT_SCROLLED
from tests.conftest import make_row, run, unsupported


def _is_contains_filter(request):
    f = request.dimension_filter
    return f is not None and f.string_filter is not None and f.string_filter.match_type == MatchType.CONTAINS


def _is_or_filter(request):
    return request.dimension_filter is not None and request.dimension_filter.or_group is not None


# =============================================================================
# Overview
# =============================================================================


def test_overview_falls_back_to_key_events(fake_client, date_range):
    fake_client.on(unsupported(), metrics=["conversions"]).on(
        [make_row([], ["100", "30", "150", "400", "65.5", "0.42", "12"])], metrics=["keyEvents"]
    ).on(
        [make_row(["20240101"], ["50", "20", "70", "200"]), make_row(["20240102"], ["50", "60", "80", "200"])],
        dimensions=["date"],
    )

    result = run(OverviewReportBuilder(fake_client).build(date_range))

    assert result.active_users == 100
    assert result.returning_users == 70
    assert result.bounce_rate == pytest.approx(42.0)
    assert result.conversions == 12
    assert result.conversions_metric == DataSource.KEY_EVENTS
    assert [p.returning_users for p in result.daily_trend] == [30, -10]


def test_overview_without_daily_trend(fake_client, date_range):
    result = run(OverviewReportBuilder(fake_client, include=[]).build(date_range))

    assert result.daily_trend is None
    assert result.conversions_metric == DataSource.CONVERSIONS
    assert len(fake_client.requests) == 1


def test_top_pages_passes_limit(fake_client, date_range):
    fake_client.on([make_row(["/", "Home"], ["500", "30"])], dimensions=["pagePath", "pageTitle"])

    result = run(OverviewReportBuilder(fake_client).top_pages(date_range, limit=5))

    assert result.pages[0].path == "/"
    assert result.pages[0].views == 500
    assert fake_client.requests[0].limit == 5


# =============================================================================
# Audience
# =============================================================================


def _audience_routes(client):
    return (
        client.on([make_row([], ["100", "120", "150"])], metrics=["newUsers"])
        .on(
            [make_row(["US", "CA"], ["30", "40", "90"]), make_row(["UK", "(not set)"], ["10", "10", "20"])],
            dimensions=["country"],
        )
        .on(unsupported(), dimensions=["mobileDeviceModel"])
        .on(
            [make_row(["desktop"], ["60", "70", "200"]), make_row(["mobile"], ["20", "30", "50"])],
            dimensions=["deviceCategory"],
        )
        .on(
            [make_row(["new"], ["60", "70", "150"]), make_row(["returning"], ["40", "80", "250"])],
            dimensions=["newVsReturning"],
        )
        .on(
            [
                make_row(["25-34", "female"], ["5"]),
                make_row(["25-34", "male"], ["7"]),
                make_row(["(not set)", "male"], ["3"]),
            ],
            dimensions=["userAgeBracket"],
        )
        .on(unsupported(), dimensions=["language"])
        .on([make_row(["0"], ["1", "1", "2"])], dimensions=["dayOfWeek"])
    )


def test_audience_profile(fake_client, date_range):
    _audience_routes(fake_client)

    profile = run(AudienceReportBuilder(fake_client).build(date_range))

    assert profile.overview.users == 100
    assert profile.new_returning_metrics.returning_users == -20
    assert [g.user_percentage for g in profile.geographic] == ["75.0", "25.0"]
    assert profile.geographic[1].region == "N/A"

    assert profile.device_degraded
    assert [d.user_percentage for d in profile.device] == ["75.0", "25.0"]
    assert [d.session_percentage for d in profile.device] == ["70.0", "30.0"]
    assert (profile.totals.users, profile.totals.sessions) == (100, 150)

    assert [(b.name, b.users) for b in profile.demographics.age_brackets] == [("25-34", 12)]
    assert [(b.name, b.users) for b in profile.demographics.genders] == [("male", 10), ("female", 5)]
    assert profile.language is None
    assert profile.time_analysis.by_hour == []
    assert profile.time_analysis.by_day_of_week[0].label == "Sunday"


def test_audience_totals_cover_capped_device_rows(fake_client, date_range):
    fake_client.on([make_row([], ["500", "200", "800"])], metrics=["newUsers"]).on(
        [
            make_row(["mobile", "iPhone", "Apple iPhone", "390x844"], ["30", "40", "90"]),
            make_row(["desktop", "(not set)", "(not set)", "1920x1080"], ["10", "10", "20"]),
        ],
        dimensions=["mobileDeviceModel"],
    )

    profile = run(AudienceReportBuilder(fake_client, include=[]).build(date_range))

    assert not profile.device_degraded
    assert (profile.totals.users, profile.totals.sessions) == (500, 800)
    assert [d.user_percentage for d in profile.device] == ["75.0", "25.0"]


def test_audience_serializes_camel_case(fake_client, date_range):
    _audience_routes(fake_client)

    body = run(AudienceReportBuilder(fake_client).build(date_range)).model_dump(by_alias=True)

    assert body["newReturningMetrics"]["returningUsers"] == -20
    assert body["deviceDegraded"] is True
    assert "userPercentage" in body["geographic"][0]


def test_audience_include_limits_queries(fake_client, date_range):
    run(AudienceReportBuilder(fake_client, include=["language"]).build(date_range))

    dimensions = [tuple(r.dimensions) for r in fake_client.requests]
    assert ("language",) in dimensions
    assert ("userAgeBracket", "userGender") not in dimensions
    assert ("hour",) not in dimensions


def test_unknown_optional_query_rejected(fake_client):
    with pytest.raises(ValueError):
        AudienceReportBuilder(fake_client, include=["weather"])


def test_required_query_failure_aborts_build(fake_client, date_range):
    fake_client.on(ReportQueryError(ErrorKind.QUOTA, "quota"), dimensions=["country"])

    with pytest.raises(ReportQueryError) as exc_info:
        run(AudienceReportBuilder(fake_client).build(date_range))
    assert exc_info.value.kind == ErrorKind.QUOTA


# =============================================================================
# Engagement
# =============================================================================


def test_engagement_metrics(fake_client, date_range):
    fake_client.on(
        [make_row([], ["0.4", "120.5", "300", "100", "900"])], metrics=["bounceRate", "eventCount"]
    ).on(
        [make_row(["/a", "scroll", "90"], ["5"]), make_row(["/b", "scroll", "90"], ["1"])],
        dimensions=[PERCENT_SCROLLED],
    ).on(
        [make_row(["/a"], ["10"]), make_row(["/b"], ["4"])],
        dimensions=["pagePath"],
        metrics=["activeUsers"],
    ).on(
        [make_row(["cta_click"], ["4"]), make_row(["button_press"], ["2"])],
        dimensions=["eventName"],
        where=_is_or_filter,
    ).on(
        [make_row(["scroll"], ["30"]), make_row(["scroll_50"], ["10"])],
        dimensions=["eventName"],
        where=_is_contains_filter,
    )

    result = run(EngagementReportBuilder(fake_client).build(date_range))

    assert result.bounce_rate == pytest.approx(40.0)
    assert result.pages_per_session == 3.0
    assert result.total_events == 900
    assert result.scroll_depth == {"scroll": 30, "scroll_50": 10}
    assert result.cta_clicks == 6
    assert result.scroll_depth_source == DataSource.SCROLL_90_PERCENT
    assert [(p.path, p.percent_scrolled) for p in result.scroll_depth_by_page] == [
        ("/a", "50.00"),
        ("/b", "25.00"),
    ]


def test_engagement_scroll_depth_falls_back_to_any_scroll(fake_client, date_range):
    fake_client.on(unsupported(), dimensions=[PERCENT_SCROLLED]).on(
        [make_row(["/a", "scroll"], ["3"])], dimensions=["pagePath", "eventName"]
    ).on([make_row(["/a"], ["6"])], dimensions=["pagePath"])

    result = run(EngagementReportBuilder(fake_client, include=["scroll_depth_by_page"]).build(date_range))

    assert result.scroll_depth_source == DataSource.ANY_SCROLL_EVENT
    assert result.scroll_depth_by_page[0].percent_scrolled == "50.00"
    assert result.scroll_depth is None
    assert result.cta_clicks is None


def test_engagement_by_page_weighted_rollups(fake_client, date_range):
    fake_client.on(
        [
            make_row(["/a", "A"], ["0.5", "100", "200", "100"]),
            make_row(["/b", "B"], ["0.2", "50", "100", "300"]),
        ],
        dimensions=["pagePath"],
    )

    result = run(EngagementReportBuilder(fake_client).by_page(date_range, limit=10))

    assert result.weighted_bounce_rate == pytest.approx(27.5)
    assert result.weighted_avg_session_duration == pytest.approx(62.5)
    assert [p.pages_per_session for p in result.pages] == [2.0, 0.33]


# =============================================================================
# Conversion
# =============================================================================


def test_conversion_funnel(fake_client, date_range):
    fake_client.on(
        [make_row([], ["200", "150", "5000", "10"])], metrics=["conversions"]
    ).on(
        [
            make_row(["form_submit"], ["5", "0"]),
            make_row(["newsletter_signup"], ["3", "0"]),
            make_row(["purchase"], ["4", "99.5"]),
            make_row(["transaction_complete"], ["1", "10"]),
            make_row(["add_to_cart"], ["10", "0"]),
            make_row(["page_view"], ["1000", "0"]),
        ],
        dimensions=["eventName"],
    )

    result = run(ConversionReportBuilder(fake_client).build(date_range))

    assert result.conversion_rate == "5.00"
    assert result.conversions_metric == DataSource.CONVERSIONS
    assert (result.form_submissions, result.email_opt_ins) == (5, 3)
    assert (result.purchases, result.add_to_cart) == (5, 10)
    assert result.revenue == "109.50"
    assert result.cart_abandonment_rate == "50.00"


def test_conversion_with_no_traffic(fake_client, date_range):
    result = run(ConversionReportBuilder(fake_client).build(date_range))

    assert result.conversion_rate == "0.00"
    assert result.cart_abandonment_rate == "0.00"
    assert result.revenue == "0.00"


def test_conversion_by_source(fake_client, date_range):
    fake_client.on(
        [
            make_row(["google", "organic"], ["4", "100", "90"]),
            make_row(["(direct)", "(none)"], ["6", "50", "45"]),
        ],
        metrics=["conversions"],
        dimensions=["sessionSource"],
    )

    result = run(ConversionReportBuilder(fake_client).by_source(date_range))

    assert [(s.source, s.conversion_rate) for s in result.sources] == [
        ("(direct)", "12.00"),
        ("google", "4.00"),
    ]


# =============================================================================
# Content
# =============================================================================


def _content_routes(client):
    return (
        client.on(
            [make_row(["/a", "A"], ["100", "30", "3000", "40"])], metrics=["userEngagementDuration"]
        )
        .on(unsupported(), metrics=["exits"])
        .on([make_row(["/a", "A"], ["40", "100", "30.5"])], metrics=["sessions", "averageSessionDuration"])
        .on(unsupported(), dimensions=["contentGroup"])
    )


def test_content_insights(fake_client, date_range):
    _content_routes(fake_client).on(
        [
            make_row(["/a", "https://example.com/b"], ["5"]),
            make_row(["/a", "(not set)"], ["7"]),
            make_row(["/b", "https://www.google.com/"], ["2"]),
        ],
        dimensions=["pageReferrer"],
    )

    result = run(ContentReportBuilder(fake_client, "example.com").build(date_range))

    assert result.exits_source == DataSource.SESSIONS_PROXY
    assert result.top_exit_pages[0].exit_rate == "40.00"
    assert result.high_engagement_pages[0].engagement_per_view == "30.00"
    assert result.content_grouping is None
    assert not result.user_flows_degraded
    flow = result.user_flows[0]
    assert (flow.page, flow.total_views) == ("/a", 12)
    assert [(s.from_page, s.views) for s in flow.sources] == [("(entrance)", 7), ("/b", 5)]
    assert result.user_flows[1].sources[0].from_page == "www.google.com"


def test_content_user_flows_without_referrers(fake_client, date_range):
    _content_routes(fake_client).on(unsupported(), dimensions=["pageReferrer"]).on(
        [make_row(["/a"], ["9"])], where=lambda r: r.dimensions == ["pagePath"]
    )

    result = run(ContentReportBuilder(fake_client, "example.com").build(date_range))

    assert result.user_flows_degraded
    body = result.model_dump(by_alias=True)
    assert body["userFlows"] == [
        {"page": "/a", "totalViews": 9, "sources": [{"from": "(data not available)", "views": 0}]}
    ]


# =============================================================================
# SEO
# =============================================================================


def test_seo_metrics(fake_client, date_range):
    fake_client.on(
        [
            make_row(["google", "organic"], ["80", "70", "200"]),
            make_row(["bing", "organic"], ["20", "15", "40"]),
        ],
        dimensions=["sessionSource"],
    ).on(
        [make_row([f"term {i}"], ["1", "2"]) for i in range(25)], dimensions=["searchTerm"]
    ).on(
        [
            make_row(["https://news.ycombinator.com/item"], ["3", "3"]),
            make_row(["https://www.reddit.com/r/x"], ["5", "4"]),
            make_row(["https://news.ycombinator.com/"], ["3", "1"]),
            make_row(["https://blog.example.com/post"], ["10", "9"]),
            make_row(["(not set)"], ["4", "4"]),
        ],
        dimensions=["pageReferrer"],
    )

    result = run(SEOReportBuilder(fake_client, "example.com").build(date_range))

    assert result.organic_search.total_sessions == 100
    assert result.organic_search.total_users == 85
    assert result.keywords.total == 25
    assert len(result.keywords.top_keywords) == 20
    assert [(d.domain, d.sessions, d.users) for d in result.referring_domains.domains] == [
        ("news.ycombinator.com", 6, 4),
        ("www.reddit.com", 5, 4),
    ]
    assert result.referring_domains.total == 2
    assert result.note


def test_seo_optional_sections_degrade(fake_client, date_range):
    fake_client.on(unsupported(), dimensions=["searchTerm"]).on(unsupported(), dimensions=["pageReferrer"])

    result = run(SEOReportBuilder(fake_client, "example.com").build(date_range))

    assert result.keywords is None
    assert result.referring_domains is None


# =============================================================================
# Technical
# =============================================================================


def test_technical_performance_uses_proxy(fake_client, date_range):
    fake_client.on(
        [make_row(["/404", "Not found"], ["7", "0.9", "5"]), make_row(["/x/404", "NF"], ["3", "1", "2"])],
        dimensions=["pageTitle"],
    ).on(unsupported(), metrics=["averagePageLoadTime"]).on(
        [make_row(["desktop"], ["3.0", "50", "0.4"])], dimensions=["deviceCategory"]
    ).on(
        [make_row(["/a"], ["2.0", "100"]), make_row(["/b"], ["4.0", "300"])], dimensions=["pagePath"]
    )

    result = run(TechnicalReportBuilder(fake_client).build(date_range))

    assert result.load_time_source == DataSource.SESSION_DURATION_PROXY
    assert result.overall_avg_load_time == 3.5
    assert result.total_404_errors == 10
    assert result.device_performance[0].bounce_rate == pytest.approx(40.0)
    assert result.model_dump(by_alias=True)["total404Errors"] == 10


def test_core_web_vitals(fake_client, date_range):
    fake_client.on([make_row(["LCP"], ["10"]), make_row(["CLS"], ["0"])], dimensions=["eventName"])

    result = run(TechnicalReportBuilder(fake_client).core_web_vitals(date_range))

    assert result.available
    assert result.vitals == {"LCP": 10, "CLS": 0, "INP": 0, "FID": 0}


def test_core_web_vitals_matches_mixed_case_and_prefixed_names(fake_client, date_range):
    fake_client.on(
        [make_row(["lcp"], ["10"]), make_row(["Cls"], ["4"]), make_row(["web_vitals_LCP"], ["3"])],
        dimensions=["eventName"],
    )

    result = run(TechnicalReportBuilder(fake_client).core_web_vitals(date_range))

    assert result.available
    assert result.vitals == {"LCP": 13, "CLS": 4, "INP": 0, "FID": 0}
    request_filter = fake_client.requests[0].dimension_filter
    assert [f.string_filter.match_type for f in request_filter.or_group] == [MatchType.CONTAINS] * 4


def test_core_web_vitals_unavailable(fake_client, date_range):
    fake_client.on(unsupported(), dimensions=["eventName"])

    result = run(TechnicalReportBuilder(fake_client).core_web_vitals(date_range))

    assert not result.available
    assert result.vitals == {}


# =============================================================================
# Sessions and traffic
# =============================================================================


def test_session_metrics(fake_client, date_range):
    fake_client.on(
        [make_row([], ["100", "60", "0.3", "80", "0.7", "150"])], metrics=["engagedSessions"]
    ).on([make_row([], ["0.0512"])], metrics=["sessionKeyEventRate"])

    result = run(SessionReportBuilder(fake_client).build(date_range))

    assert result.engaged_sessions_per_active_user == 0.8
    assert result.sessions_per_active_user == 1.5
    assert result.bounce_rate == pytest.approx(30.0)
    assert result.engagement_rate == pytest.approx(70.0)
    assert result.session_key_event_rate == pytest.approx(5.12)


def test_session_key_event_rate_unsupported_is_none(fake_client, date_range):
    fake_client.on(unsupported(), metrics=["sessionKeyEventRate"])

    result = run(SessionReportBuilder(fake_client).build(date_range))

    assert result.session_key_event_rate is None
    assert result.sessions_per_active_user == 0.0


def test_traffic_sources(fake_client, date_range):
    fake_client.on(
        [
            make_row(["google", "organic", "Organic Search"], ["75", "60"]),
            make_row(["(direct)", "(none)", "Direct"], ["25", "20"]),
        ],
        dimensions=["sessionDefaultChannelGroup"],
    ).on(
        [make_row(["google", "organic"], ["10", "8", "8"])], dimensions=["firstUserSource"]
    ).on([make_row(["/"], ["50", "40", "30", "0.5"])], dimensions=["landingPage"])

    result = run(TrafficReportBuilder(fake_client).build(date_range, limit=10))

    assert [s.session_percentage for s in result.session_sources] == ["75.0", "25.0"]
    assert result.session_sources[0].attribution == "last-touch"
    assert result.first_touch_sources[0].session_percentage == "100.0"
    assert result.landing_pages[0].bounce_rate == pytest.approx(50.0)
    assert all(r.limit == 10 for r in fake_client.requests)


def test_exit_rate_with_sessions_proxy(fake_client, date_range):
    fake_client.on(unsupported(), metrics=["exits"]).on(
        [make_row(["/a", "A"], ["80", "100", "10"]), make_row(["/b", "B"], ["10", "100", "10"])],
        metrics=["sessions", "averageSessionDuration"],
        where=lambda r: "userEngagementDuration" not in r.metrics,
    )

    result = run(ContentReportBuilder(fake_client, "example.com", include=[]).build(date_range))

    assert [(p.path, p.exit_rate) for p in result.top_exit_pages] == [("/a", "80.00"), ("/b", "10.00")]
    assert result.exits_source == DataSource.SESSIONS_PROXY


def test_exit_rate_with_true_exits(fake_client, date_range):
    fake_client.on([make_row(["/a", "A"], ["30", "120", "10"])], metrics=["exits"])

    result = run(ContentReportBuilder(fake_client, "example.com", include=[]).build(date_range))

    assert result.top_exit_pages[0].exit_rate == "25.00"
    assert result.exits_source == DataSource.EXITS
