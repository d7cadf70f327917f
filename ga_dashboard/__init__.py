"""
GA4 reporting dashboard API.

Queries the Google Analytics 4 Data API and folds the returned rows into
per-domain summaries (audience, engagement, conversion, content, SEO,
technical performance, sessions, traffic sources) served as JSON.
"""

__version__ = "0.1.0"
