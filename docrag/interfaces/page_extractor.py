"""Abstract base classes for the page extraction backend.

The page extractor turns raw document bytes into per-page text.  A page
describer (optional) turns a rendered page into a textual description so
image-heavy pages still contribute searchable text.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from docrag.models.document import PageRange


@dataclass(frozen=True)
class PageContent:
    """Text extracted from one page.  ``page_number`` is 1-based."""

    page_number: int
    text: str


class IPageExtractor(ABC):
    """Contract for document page extraction."""

    @abstractmethod
    async def page_count(self, data: bytes) -> int:
        """Return the number of pages in the document.

        Raises
        ------
        docrag.utils.errors.PasswordProtectedError
            If the document is encrypted.
        docrag.utils.errors.CorruptDocumentError
            If the bytes are not a readable document.
        """

    @abstractmethod
    async def extract_pages(self, data: bytes, page_range: PageRange) -> list[PageContent]:
        """Extract text for every page in *page_range* (inclusive, 1-based).

        Pages without text are returned with an empty string so page
        numbering stays dense.
        """

    @abstractmethod
    async def render_page(self, data: bytes, page_number: int) -> bytes:
        """Render one page (1-based) to PNG bytes for a page describer."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"pymupdf"``."""


class IPageDescriber(ABC):
    """Contract for describing a rendered page image as text."""

    @abstractmethod
    async def describe_page(self, image: bytes, page_number: int) -> str:
        """Return a textual description of a rendered page (PNG bytes).

        May raise; the ingestion pipeline substitutes a placeholder.
        """

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the describer is configured."""
