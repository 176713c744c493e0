"""Command-line interface for the docrag document store.

Usage::

    python -m docrag.cli index --file paper.pdf --title "A Paper" --pages 1-20
    python -m docrag.cli index --url https://example.com/paper.pdf
    python -m docrag.cli list
    python -m docrag.cli search paper "what does figure 3 show" --top 4
    python -m docrag.cli fulltext paper --no-page-markers
    python -m docrag.cli delete paper
    python -m docrag.cli stats

Every command builds the same component graph as the web app from
``Settings`` (environment / ``.env``), so a document indexed here is
visible to the API when both point at the same SQLite file.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

from docrag.config.settings import Settings
from docrag.main import build_service
from docrag.models.document import FileSource, PageRange, UrlSource
from docrag.services.ingestion.ingestion_service import IngestOptions
from docrag.services.retrieval_service import DocumentRetrievalService
from docrag.utils.errors import DocRAGError
from docrag.utils.logging import configure_logging


def _parse_pages(value: str) -> PageRange:
    """Parse ``"3"`` or ``"1-20"`` into a :class:`PageRange`."""
    start_text, _, end_text = value.partition("-")
    try:
        start = int(start_text)
        end = int(end_text) if end_text else start
    except ValueError as exc:
        msg = f"invalid page range {value!r}; expected N or START-END"
        raise argparse.ArgumentTypeError(msg) from exc
    return PageRange(start=start, end=end)


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _handle_index(args: argparse.Namespace, service: DocumentRetrievalService) -> int:
    """Index a PDF from a file or URL."""
    source = FileSource(path=Path(args.file)) if args.file else UrlSource(url=args.url)

    def _on_progress(progress: float, message: str) -> None:
        print(f"\r  [{progress:6.1%}] {message:<40}", end="", flush=True)

    options = IngestOptions(
        document_id=args.id,
        title=args.title,
        chunk_tokens=args.chunk_tokens,
        page_range=args.pages,
        process_images=args.images,
        on_progress=None if args.quiet else _on_progress,
    )
    result = await service.ingest(source, options)
    if not args.quiet:
        print()

    if result.reused_existing:
        print(f"Already indexed: {result.document_id} (loaded existing record)")
        return 0

    print("\nIngestion complete:")
    print(f"  Document ID:     {result.document_id}")
    print(f"  Pages:           {result.pages_processed}")
    print(f"  Chunks created:  {result.chunks_created}")
    print(f"  Degraded chunks: {result.degraded_chunks}")
    print(f"  Time:            {result.ingestion_time:.2f}s")
    return 0


async def _handle_list(args: argparse.Namespace, service: DocumentRetrievalService) -> int:
    documents = await service.list_documents()
    if not documents:
        print("No documents indexed.")
        return 0
    print(f"{'ID':<30} {'PAGES':>5} {'CHUNKS':>6}  PROCESSED")
    for doc in documents:
        print(
            f"{doc.id:<30} {doc.page_count:>5} {doc.chunk_count:>6}  "
            f"{doc.processed_at:%Y-%m-%d %H:%M}"
        )
    return 0


async def _handle_search(args: argparse.Namespace, service: DocumentRetrievalService) -> int:
    response = await service.search(args.document_id, args.query, args.top)
    if args.json:
        print(json.dumps(response.model_dump(mode="json"), indent=2))
        return 1 if response.error else 0
    if response.error:
        print(f"Error: {response.error}", file=sys.stderr)
        return 1

    print(f"{len(response.results)} of {response.total_chunks} chunks for: {response.query}")
    for rank_no, item in enumerate(response.results, start=1):
        pages = ", ".join(str(p) for p in item.page_references) or "?"
        print(f"\n#{rank_no}  similarity={item.similarity:.4f}  chunk={item.chunk_index}  pages={pages}")
        print(item.text)
    return 0


async def _handle_fulltext(args: argparse.Namespace, service: DocumentRetrievalService) -> int:
    response = await service.get_full_text(
        args.document_id,
        include_page_markers=not args.no_page_markers,
        include_images=not args.no_images,
    )
    if response.error:
        print(f"Error: {response.error}", file=sys.stderr)
        return 1
    print(response.full_text)
    return 0


async def _handle_delete(args: argparse.Namespace, service: DocumentRetrievalService) -> int:
    await service.delete(args.document_id)
    print(f"Deleted: {args.document_id}")
    return 0


async def _handle_stats(args: argparse.Namespace, service: DocumentRetrievalService) -> int:
    """Display storage statistics."""
    info = await service.get_storage_info()

    print("Storage Statistics")
    print("=" * 40)
    print(f"  Documents:  {len(info.documents)}")
    print(f"  Total size: {info.total_mb:.3f} MB ({info.total_bytes} bytes)")
    if info.documents:
        print()
        for doc in info.documents:
            print(f"    {doc.id:<30} {doc.chunks:>6} chunks  {doc.size_mb:8.3f} MB")
    return 0


_HANDLERS = {
    "index": _handle_index,
    "list": _handle_list,
    "search": _handle_search,
    "fulltext": _handle_fulltext,
    "delete": _handle_delete,
    "stats": _handle_stats,
}


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the docrag CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m docrag.cli",
        description="Index PDF documents and query them from the command line.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # -- index --
    index_parser = subparsers.add_parser("index", help="Index a PDF file or URL")
    source = index_parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--file", help="Path to the PDF file")
    source.add_argument("--url", help="URL of the PDF")
    index_parser.add_argument("--id", help="Document id (default: derived from the file name)")
    index_parser.add_argument("--title", help="Document title (default: the id)")
    index_parser.add_argument(
        "--chunk-tokens", type=int, dest="chunk_tokens", help="Token budget per chunk"
    )
    index_parser.add_argument(
        "--pages", type=_parse_pages, help="Page range, e.g. 5 or 1-20 (1-based, inclusive)"
    )
    index_parser.add_argument(
        "--images", action="store_true", help="Describe page images with the vision model"
    )
    index_parser.add_argument("--quiet", "-q", action="store_true", help="No progress output")

    # -- list --
    subparsers.add_parser("list", help="List indexed documents")

    # -- search --
    search_parser = subparsers.add_parser("search", help="Semantic search in one document")
    search_parser.add_argument("document_id", help="Document id")
    search_parser.add_argument("query", help="Search query")
    search_parser.add_argument("--top", type=int, default=None, help="Number of results (max 8)")
    search_parser.add_argument("--json", action="store_true", help="Print the raw JSON response")

    # -- fulltext --
    text_parser = subparsers.add_parser("fulltext", help="Print the full text of a document")
    text_parser.add_argument("document_id", help="Document id")
    text_parser.add_argument(
        "--no-page-markers", action="store_true", dest="no_page_markers",
        help="Omit '--- Page N ---' markers",
    )
    text_parser.add_argument(
        "--no-images", action="store_true", dest="no_images", help="Omit image descriptions"
    )

    # -- delete --
    delete_parser = subparsers.add_parser("delete", help="Remove a document from the store")
    delete_parser.add_argument("document_id", help="Document id")

    # -- stats --
    subparsers.add_parser("stats", help="Show storage statistics")

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


async def _run(args: argparse.Namespace, app_settings: Settings) -> int:
    service = build_service(app_settings)
    await service.initialize()
    try:
        return await _HANDLERS[args.command](args, service)
    except DocRAGError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return 1
    finally:
        await service.close()


def main(argv: list[str] | None = None, app_settings: Settings | None = None) -> int:
    """Parse *argv*, run the command and return its exit code."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    app_settings = app_settings or Settings()
    configure_logging(
        log_level="WARNING" if args.command != "index" else app_settings.log_level,
        store_backend=app_settings.store_backend,
    )
    return asyncio.run(_run(args, app_settings))
