"""Inline the critical part of a page's stylesheets.

``CriticalEngine.process`` takes HTML whose ``<link rel="stylesheet">`` tags
point at files under ``path`` (served from ``public_path``), prunes each
stylesheet to the rules the document uses, and inlines the result as
``<style data-href="...">`` right before its link.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from urllib.parse import unquote, urlsplit

import soupsieve as sv
from bs4 import BeautifulSoup, Tag

from critical_css.engine.stylesheet import KEYFRAMES_POLICIES, StylesheetPruner

logger = logging.getLogger(__name__)

PRELOAD_STRATEGIES = ("none", "media", "swap", "body")

LOG_LEVELS = {
    "trace": logging.DEBUG,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "silent": logging.CRITICAL + 1,
}

# Pseudo-elements and user-interaction states that cannot be evaluated
# against static HTML.  Structural pseudo-classes are left to soupsieve.
_PSEUDO_RE = re.compile(r"(?<!\\)(?:::[a-zA-Z-]+|:[a-zA-Z-]+)(?![a-zA-Z-(])")
_DYNAMIC_PSEUDO_CLASSES = frozenset(
    {
        "hover", "focus", "focus-within", "focus-visible", "active", "visited", "link",
        "any-link", "target", "target-within", "local-link", "user-invalid", "user-valid",
        "before", "after", "first-line", "first-letter",
    }
)
_TRAILING_COMBINATOR_RE = re.compile(r"[\s>+~]+$")
_ALWAYS_CRITICAL = frozenset({"html", "body", ":root", "*"})


def _strip_dynamic_pseudos(selector: str) -> str:
    """Drop pseudo-elements and interaction states outside any parentheses.

    ``a:hover`` becomes ``a``; ``li:not(:first-child)`` is left for soupsieve.
    """

    def replace(match: re.Match[str]) -> str:
        before = selector[: match.start()]
        if before.count("(") > before.count(")"):
            return match.group(0)
        token = match.group(0)
        name = token.lstrip(":").lower()
        if token.startswith("::") or name.startswith("-") or name in _DYNAMIC_PSEUDO_CLASSES:
            return ""
        return token

    return _PSEUDO_RE.sub(replace, selector)


class SelectorMatcher:
    """Memoised "does this selector match anything in *soup*" check."""

    def __init__(self, soup: BeautifulSoup) -> None:
        self.soup = soup
        self._cache: dict[str, bool] = {}

    def __call__(self, selector: str) -> bool:
        if selector not in self._cache:
            self._cache[selector] = self._matches(selector)
        return self._cache[selector]

    def _matches(self, selector: str) -> bool:
        if selector in _ALWAYS_CRITICAL:
            return True
        cleaned = _TRAILING_COMBINATOR_RE.sub("", _strip_dynamic_pseudos(selector)).strip()
        if not cleaned or cleaned in _ALWAYS_CRITICAL:
            return True
        try:
            return sv.select_one(cleaned, self.soup) is not None
        except (sv.SelectorSyntaxError, NotImplementedError, ValueError) as exc:
            logger.debug("Dropping selector %r: %s", selector, exc)
            return False


def _rel(link: Tag) -> list[str]:
    return [value.lower() for value in link.get("rel") or []]


class CriticalEngine:
    """Configured once per run; ``process`` is called once per page.

    Args:
        path: Filesystem root stylesheets are resolved from.
        public_path: URL prefix that maps to *path*.
        reduce_inline_styles: Prune inline ``<style>`` blocks too.
        preload: How the original link is kept: ``none``, ``media``,
            ``swap`` or ``body``.
        fonts: Keep ``@font-face`` rules for fonts the critical rules use.
        keyframes: ``critical``, ``all`` or ``none``.
        log_level: ``trace``, ``debug``, ``info``, ``warn``, ``error`` or
            ``silent``.
    """

    def __init__(
        self,
        path: Path,
        public_path: str = "/",
        reduce_inline_styles: bool = True,
        preload: str = "media",
        fonts: bool = True,
        keyframes: str = "critical",
        log_level: str = "info",
    ) -> None:
        if preload not in PRELOAD_STRATEGIES:
            raise ValueError(f"preload must be one of {', '.join(PRELOAD_STRATEGIES)}, got {preload!r}")
        if log_level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}, got {log_level!r}")
        if keyframes not in KEYFRAMES_POLICIES:
            raise ValueError(f"keyframes must be one of {', '.join(KEYFRAMES_POLICIES)}, got {keyframes!r}")

        self.path = Path(path).resolve()
        self.public_path = public_path if public_path.endswith("/") else public_path + "/"
        self.reduce_inline_styles = reduce_inline_styles
        self.preload = preload
        self.fonts = fonts
        self.keyframes = keyframes
        logging.getLogger("critical_css.engine").setLevel(LOG_LEVELS[log_level])

    def resolve_stylesheet(self, href: str) -> Path | None:
        """Map *href* to a file under :attr:`path`, or ``None`` if it is remote or escapes it."""
        parts = urlsplit(href)
        if parts.scheme or parts.netloc:
            return None
        url_path = unquote(parts.path)
        if url_path.startswith(self.public_path):
            relative = url_path[len(self.public_path):]
        elif not url_path.startswith("/"):
            relative = url_path
        else:
            return None
        candidate = (self.path / relative).resolve()
        if not candidate.is_relative_to(self.path):
            return None
        return candidate

    def process(self, html: str) -> str:
        """Return *html* with critical CSS inlined for every local stylesheet link."""
        soup = BeautifulSoup(html, "html.parser")
        pruner = StylesheetPruner(SelectorMatcher(soup), fonts=self.fonts, keyframes=self.keyframes)

        for link in soup.find_all("link"):
            href = link.get("href")
            if _rel(link) != ["stylesheet"] or not href:
                continue
            self._inline_stylesheet(soup, link, href, pruner)

        if self.reduce_inline_styles:
            self._reduce_inline_styles(pruner, soup)

        return str(soup)

    def _inline_stylesheet(self, soup: BeautifulSoup, link: Tag, href: str, pruner: StylesheetPruner) -> None:
        css_file = self.resolve_stylesheet(href)
        if css_file is None:
            logger.warning("Unable to resolve stylesheet %s", href)
            return
        try:
            css = css_file.read_text(encoding="utf-8")
        except OSError as exc:
            logger.warning("Unable to read stylesheet %s: %s", css_file, exc)
            return

        critical = pruner.prune(css)
        if not critical:
            logger.info("No critical rules found in %s", href)
            return

        style = soup.new_tag("style", attrs={"data-href": href})
        style.string = critical
        link.insert_before(style)
        logger.info(
            "Inlined %.2f kB (%d%% of original) of %s",
            len(critical.encode("utf-8")) / 1024,
            round(100 * len(critical) / max(len(css), 1)),
            href,
        )
        self._apply_preload(soup, link, href)

    def _apply_preload(self, soup: BeautifulSoup, link: Tag, href: str) -> None:
        if self.preload == "none":
            return
        if self.preload == "body":
            if soup.body is not None:
                soup.body.append(link.extract())
            return

        noscript = soup.new_tag("noscript")
        noscript.append(soup.new_tag("link", attrs={"rel": "stylesheet", "href": href}))
        if self.preload == "media":
            media = link.get("media", "all")
            link["media"] = "print"
            link["onload"] = f"this.media='{media}'"
        else:
            link["rel"] = "preload"
            link["as"] = "style"
            link["onload"] = "this.rel='stylesheet'"
        link.insert_after(noscript)

    def _reduce_inline_styles(self, pruner: StylesheetPruner, soup: BeautifulSoup) -> None:
        for style in soup.find_all("style"):
            if style.has_attr("data-href"):
                continue
            reduced = pruner.prune(str(style.string or ""))
            if reduced:
                style.string = reduced
            else:
                style.decompose()
