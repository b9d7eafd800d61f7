"""Structural HTML → Markdown conversion."""

from __future__ import annotations

from dataclasses import dataclass

import html2text
from bs4 import BeautifulSoup, Tag

from markgrab.errors import SelectorNotFoundError

# Elements whose content never belongs in the converted page.
_DISCARDED_TAGS = ("script", "style", "noscript", "template")


@dataclass(frozen=True)
class MarkdownConverter:
    """html2text options for one run.

    Build one per run and hand it to the resolver.  ``HTML2Text`` keeps parser
    state between ``handle`` calls, so :meth:`convert` creates a fresh one
    from these options every time.
    """

    body_width: int = 0
    ignore_links: bool = False
    ignore_images: bool = False
    ignore_emphasis: bool = False
    bypass_tables: bool = False
    unicode_snob: bool = True

    def _handler(self) -> html2text.HTML2Text:
        h = html2text.HTML2Text()
        h.body_width = self.body_width
        h.ignore_links = self.ignore_links
        h.ignore_images = self.ignore_images
        h.ignore_emphasis = self.ignore_emphasis
        h.bypass_tables = self.bypass_tables
        h.unicode_snob = self.unicode_snob
        return h

    def convert(self, html: str) -> str:
        """Convert an HTML fragment, returning Markdown ending in one newline."""
        markdown = self._handler().handle(html).strip()
        return markdown + "\n" if markdown else ""


def extract_content_html(html: str, selector: str, url: str = "") -> str:
    """Return the inner markup of the first element matching *selector*.

    Scripts, styles and similar non-content elements are removed first.

    Raises:
        SelectorNotFoundError: If no element matches.
    """
    soup = BeautifulSoup(html, "html.parser")
    element = soup.select_one(selector)
    if not isinstance(element, Tag):
        raise SelectorNotFoundError(selector, url)

    for tag in element.find_all(_DISCARDED_TAGS):
        tag.decompose()
    return element.decode_contents()
