"""Scraper package — page fetch, sanitising, and critical CSS recovery."""

from critical_css.scraper.extractor import extract_critical_css
from critical_css.scraper.fetcher import FetchError, fetch_html
from critical_css.scraper.sanitizer import PLACEHOLDER, sanitize_html

__all__ = ["fetch_html", "FetchError", "sanitize_html", "PLACEHOLDER", "extract_critical_css"]
