"""Critical CSS pipeline.

``generate_critical_css`` orchestrates one run over every configured page:

    locate CSS bundle → (per page) fetch → sanitise → extract → recover CSS → write

Pages are processed one after another in configured order.  A page that fails
is recorded and the run moves on; only a missing CSS bundle or an output
directory that cannot be created aborts the run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from critical_css.assets import CssAssetInfo, locate_css_asset
from critical_css.config import PageSpec, ResolvedConfig
from critical_css.engine import CriticalEngine
from critical_css.scraper.extractor import extract_critical_css
from critical_css.scraper.fetcher import build_client, fetch_html
from critical_css.scraper.sanitizer import sanitize_html

logger = logging.getLogger(__name__)

NO_CRITICAL_CSS = "No critical CSS extracted"


@dataclass(frozen=True)
class PageResult:
    page: PageSpec
    success: bool
    size: str | None = None
    error: str | None = None

    @classmethod
    def ok(cls, page: PageSpec, size: str) -> PageResult:
        return cls(page=page, success=True, size=size)

    @classmethod
    def failure(cls, page: PageSpec, error: str) -> PageResult:
        return cls(page=page, success=False, error=error)


@dataclass(frozen=True)
class RunSummary:
    """Per-page results in configured order."""

    results: tuple[PageResult, ...]

    @property
    def successful(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return len(self.results) - self.successful

    @property
    def failures(self) -> list[PageResult]:
        return [r for r in self.results if not r.success]


def output_filename(page: PageSpec) -> str:
    """Name of the file written for *page*, e.g. ``index_critical.min.css``."""
    return f"{page.template}_critical.min.css"


def size_kb(text: str) -> str:
    """UTF-8 size of *text* in kilobytes, two decimals."""
    return f"{len(text.encode('utf-8')) / 1024:.2f}"


def build_engine(config: ResolvedConfig) -> CriticalEngine:
    return CriticalEngine(
        path=config.project_root / config.public_dir,
        public_path=config.public_path,
        **config.extraction,
    )


def process_page(
    page: PageSpec,
    config: ResolvedConfig,
    css_info: CssAssetInfo,
    engine: CriticalEngine,
    client: httpx.Client,
) -> PageResult:
    """Run one page through fetch → sanitise → extract → write.

    Any exception raised along the way is returned as a failed
    :class:`PageResult` instead of propagating.
    """
    url = f"{config.base_url}{page.uri}"
    filename = output_filename(page)
    output_path = config.output_dir / filename

    try:
        logger.info("Processing: %s -> %s", url, filename)

        html = fetch_html(url, client)
        html = sanitize_html(html, css_info.href)
        processed = engine.process(html)
        critical_css = extract_critical_css(processed)

        if not critical_css:
            logger.warning("  No critical CSS extracted for %s", page.template)
            logger.warning("  No selectors in the stylesheet matched the page HTML")
            return PageResult.failure(page, NO_CRITICAL_CSS)

        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(critical_css, encoding="utf-8")

        size = size_kb(critical_css)
        logger.info("  Created: %s (%s KB)", filename, size)
        return PageResult.ok(page, size)
    except Exception as exc:
        logger.error("  Error processing %s: %s", page.template, exc)
        return PageResult.failure(page, str(exc) or type(exc).__name__)


def generate_critical_css(config: ResolvedConfig, client: httpx.Client | None = None) -> RunSummary:
    """Generate one critical CSS file per configured page.

    Args:
        config: Fully resolved configuration.
        client: Optional HTTP client; one is created (and closed) for the run
            when omitted.

    Returns:
        A :class:`RunSummary` with one result per page, in configured order.

    Raises:
        AssetNotFoundError: If no built CSS bundle can be located.
        OSError: If the output directory cannot be created.
    """
    logger.info("Generating critical CSS from: %s", config.base_url)

    config.output_dir.mkdir(parents=True, exist_ok=True)

    css_info = locate_css_asset(config.project_root, config.manifest_path, config.app_entry)
    logger.info("Using CSS from: %s", css_info.absolute_path)
    logger.info("CSS href: %s", css_info.href)

    engine = build_engine(config)

    if client is None:
        with build_client(config.request_timeout) as own_client:
            results = [process_page(p, config, css_info, engine, own_client) for p in config.pages]
    else:
        results = [process_page(p, config, css_info, engine, client) for p in config.pages]

    summary = RunSummary(results=tuple(results))
    logger.info("Generated: %d/%d critical CSS files", summary.successful, len(summary.results))
    return summary
