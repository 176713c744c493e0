"""Canonical text assembly and page lookup.

The canonical text of a document is its page texts joined with a blank
line.  Page spans record where each page sits inside it, so a chunk's page
references are simply the pages its ``[start, end)`` span overlaps.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

PAGE_SEPARATOR = "\n\n"


class _HasPageText(Protocol):
    page_number: int
    text: str


@dataclass(frozen=True)
class PageSpan:
    page_number: int
    start: int
    end: int


def build_canonical_text(pages: Sequence[_HasPageText]) -> tuple[str, list[PageSpan]]:
    """Join page texts and return the text with each page's span."""
    spans: list[PageSpan] = []
    parts: list[str] = []
    cursor = 0
    for index, page in enumerate(pages):
        if index > 0:
            parts.append(PAGE_SEPARATOR)
            cursor += len(PAGE_SEPARATOR)
        parts.append(page.text)
        spans.append(PageSpan(page.page_number, cursor, cursor + len(page.text)))
        cursor += len(page.text)
    return "".join(parts), spans


def page_references(page_spans: Sequence[PageSpan], start: int, end: int) -> list[int]:
    """Return the page numbers whose text overlaps ``[start, end)``."""
    return [
        span.page_number
        for span in page_spans
        if span.start < span.end and span.start < end and start < span.end
    ]
