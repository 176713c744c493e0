"""PDF page extraction using PyMuPDF (fitz).

Opens the document from memory, reads text page-by-page and renders pages
to PNG on request.  PyMuPDF is synchronous, so every call runs in a worker
thread via :func:`asyncio.to_thread` to keep the event loop free.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterator
from contextlib import contextmanager

import fitz  # PyMuPDF -- the "fitz" import name is a PyMuPDF convention
import structlog

from docrag.interfaces.page_extractor import IPageExtractor, PageContent
from docrag.models.document import PageRange
from docrag.utils.errors import CorruptDocumentError, PageRangeError, PasswordProtectedError

logger = structlog.get_logger(logger_name=__name__)

_PROVIDER = "pymupdf"
_RENDER_DPI = 100


class PyMuPDFPageExtractor(IPageExtractor):
    """Extracts per-page text from PDF bytes."""

    def __init__(self, render_dpi: int = _RENDER_DPI) -> None:
        self._render_dpi = render_dpi

    # ------------------------------------------------------------------
    # IPageExtractor interface
    # ------------------------------------------------------------------

    async def page_count(self, data: bytes) -> int:
        return await asyncio.to_thread(self._page_count_sync, data)

    async def extract_pages(self, data: bytes, page_range: PageRange) -> list[PageContent]:
        return await asyncio.to_thread(self._extract_pages_sync, data, page_range)

    async def render_page(self, data: bytes, page_number: int) -> bytes:
        return await asyncio.to_thread(self._render_page_sync, data, page_number)

    def get_provider_name(self) -> str:
        return _PROVIDER

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    @contextmanager
    def _open(data: bytes) -> Iterator[fitz.Document]:
        """Open *data* as a PDF, mapping failures to extraction errors."""
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except Exception as exc:
            logger.error("pdf_open_failed", error=str(exc), size=len(data))
            raise CorruptDocumentError(
                message=f"Document is corrupt or not a valid PDF: {exc}",
                provider_name=_PROVIDER,
            ) from exc

        try:
            if doc.needs_pass:
                raise PasswordProtectedError(
                    message="Document is password-protected and cannot be opened",
                    provider_name=_PROVIDER,
                )
            yield doc
        finally:
            doc.close()

    def _page_count_sync(self, data: bytes) -> int:
        with self._open(data) as doc:
            return doc.page_count

    def _extract_pages_sync(self, data: bytes, page_range: PageRange) -> list[PageContent]:
        pages: list[PageContent] = []
        with self._open(data) as doc:
            if page_range.start < 1 or page_range.end > doc.page_count:
                raise PageRangeError(
                    message=(
                        f"Page range {page_range.start}-{page_range.end} is outside "
                        f"the document (1-{doc.page_count})"
                    ),
                    provider_name=_PROVIDER,
                )
            for page_number in range(page_range.start, page_range.end + 1):
                text = doc[page_number - 1].get_text("text").strip()
                pages.append(PageContent(page_number=page_number, text=text))

        empty = sum(1 for page in pages if not page.text)
        if empty:
            logger.warning("pdf_pages_without_text", empty_pages=empty, total=len(pages))
        return pages

    def _render_page_sync(self, data: bytes, page_number: int) -> bytes:
        with self._open(data) as doc:
            if not 1 <= page_number <= doc.page_count:
                raise PageRangeError(
                    message=f"Page {page_number} is outside the document (1-{doc.page_count})",
                    provider_name=_PROVIDER,
                )
            pixmap = doc[page_number - 1].get_pixmap(dpi=self._render_dpi)
            return pixmap.tobytes("png")
