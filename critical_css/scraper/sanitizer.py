"""Prepare fetched HTML for critical CSS extraction.

Existing ``<style>`` blocks are swapped for a placeholder comment, existing
stylesheet links are dropped, and a single link to the built bundle is added
at the end of ``<head>`` so the engine resolves it from disk.
"""

from __future__ import annotations

from bs4 import BeautifulSoup, Comment

PLACEHOLDER = "existing-style-placeholder"


def sanitize_html(html: str, css_href: str) -> str:
    """Return *html* with its own styles removed and *css_href* linked instead.

    If the document has no ``<head>`` no link is added.
    """
    soup = BeautifulSoup(html, "html.parser")

    for style in soup.find_all("style"):
        style.replace_with(Comment(f" {PLACEHOLDER} "))

    for link in soup.find_all("link"):
        rel = [value.lower() for value in link.get("rel") or []]
        if rel == ["stylesheet"]:
            link.decompose()

    if soup.head is not None:
        soup.head.append(soup.new_tag("link", attrs={"rel": "stylesheet", "href": css_href}))

    return str(soup)
