"""Recover the inlined critical CSS from the engine's output HTML."""

from __future__ import annotations

from bs4 import BeautifulSoup, Tag

from critical_css.scraper.sanitizer import PLACEHOLDER


def _style_text(style: Tag) -> str:
    return str(style.string or "")


def extract_critical_css(html: str) -> str:
    """Return the critical CSS inlined into *html*, stripped of outer whitespace.

    A ``<style data-href>`` block written for the linked bundle wins.  Without
    one, the text of every other ``<style>`` block is concatenated.  An empty
    string means nothing was extracted.
    """
    soup = BeautifulSoup(html, "html.parser")

    marked = soup.find("style", attrs={"data-href": True})
    if marked is not None:
        return _style_text(marked).strip()

    texts = (_style_text(style) for style in soup.find_all("style"))
    return "".join(text for text in texts if PLACEHOLDER not in text).strip()
