"""Resolve a :data:`~docrag.models.document.DocumentSource` into bytes.

The source's kind is decided once by its ``kind`` tag; nothing downstream
inspects the input's shape again.  Each source also yields a default
document id derived from its name: the last path segment with any
``.pdf`` suffix removed.  Unnamed byte uploads fall back to a content hash.
"""

from __future__ import annotations

import asyncio
import hashlib
import re
from dataclasses import dataclass
from pathlib import PurePosixPath
from urllib.parse import unquote, urlparse

import httpx
import structlog

from docrag.models.document import BytesSource, DocumentSource, FileSource, UrlSource
from docrag.utils.errors import AcquisitionError

logger = structlog.get_logger(logger_name=__name__)

_PDF_SUFFIX_RE = re.compile(r"\.pdf$", re.IGNORECASE)
_USER_AGENT = "docrag/0.1 (+https://github.com/docrag)"


@dataclass(frozen=True)
class LoadedSource:
    """Raw document bytes plus the id derived from the source name."""

    data: bytes
    derived_id: str


def derive_document_id(name: str) -> str:
    """Strip directories / URL path and a trailing ``.pdf`` from *name*."""
    path = urlparse(name).path if "://" in name else name
    base = PurePosixPath(unquote(path).replace("\\", "/")).name
    return _PDF_SUFFIX_RE.sub("", base)


def _content_id(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()[:16]


class SourceLoader:
    """Reads document bytes from memory, disk or HTTP.

    Parameters
    ----------
    http_client:
        Shared ``httpx.AsyncClient``; a private client is created per
        request when omitted.
    timeout:
        Per-request timeout in seconds for URL sources.
    """

    def __init__(self, http_client: httpx.AsyncClient | None = None, timeout: float = 30.0) -> None:
        self._http = http_client
        self._timeout = timeout

    async def load(self, source: DocumentSource) -> LoadedSource:
        if isinstance(source, BytesSource):
            return self._load_bytes(source)
        if isinstance(source, FileSource):
            return await self._load_file(source)
        if isinstance(source, UrlSource):
            return await self._load_url(source)
        raise AcquisitionError(message=f"Unsupported document source: {type(source).__name__}")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _load_bytes(source: BytesSource) -> LoadedSource:
        if not source.data:
            raise AcquisitionError(message="Document upload is empty", provider_name="bytes")
        derived = derive_document_id(source.filename) if source.filename else ""
        return LoadedSource(data=source.data, derived_id=derived or _content_id(source.data))

    @staticmethod
    async def _load_file(source: FileSource) -> LoadedSource:
        try:
            data = await asyncio.to_thread(source.path.read_bytes)
        except OSError as exc:
            raise AcquisitionError(
                message=f"Cannot read document file {source.path}: {exc}",
                provider_name="file",
            ) from exc
        if not data:
            raise AcquisitionError(message=f"Document file {source.path} is empty", provider_name="file")
        return LoadedSource(data=data, derived_id=derive_document_id(source.path.name))

    async def _load_url(self, source: UrlSource) -> LoadedSource:
        if not source.url.lower().startswith(("http://", "https://")):
            raise AcquisitionError(message=f"Not an HTTP(S) URL: {source.url}", provider_name="http")

        headers = {"User-Agent": _USER_AGENT}
        try:
            if self._http is not None:
                response = await self._http.get(
                    source.url, headers=headers, follow_redirects=True, timeout=self._timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.get(source.url, headers=headers, follow_redirects=True)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.warning("document_fetch_failed", url=source.url, status=exc.response.status_code)
            raise AcquisitionError(
                message=f"Failed to fetch document: HTTP {exc.response.status_code} {exc.response.reason_phrase}",
                provider_name="http",
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning("document_fetch_failed", url=source.url, error=str(exc))
            raise AcquisitionError(
                message=f"Failed to fetch document: {exc}", provider_name="http"
            ) from exc

        if not response.content:
            raise AcquisitionError(message=f"Empty response from {source.url}", provider_name="http")

        logger.info("document_fetched", url=source.url, size=len(response.content))
        derived = derive_document_id(source.url)
        return LoadedSource(data=response.content, derived_id=derived or _content_id(response.content))
