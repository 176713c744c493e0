"""Storage size estimation shared by every document store backend."""

from __future__ import annotations

from docrag.models.document import ChunkRecord, DocumentMetadata, DocumentStorage

BYTES_PER_FLOAT = 4


def measure_document(
    metadata: DocumentMetadata,
    full_text: str | None,
    chunks: list[ChunkRecord],
) -> DocumentStorage:
    """Estimate bytes used by one document.

    Canonical text is counted as UTF-8, embeddings at 4 bytes per float,
    chunk metadata as its JSON serialisation without the embedding.
    """
    return DocumentStorage(
        id=metadata.id,
        title=metadata.title or metadata.id,
        chunks=len(chunks),
        text_bytes=len((full_text or "").encode("utf-8")),
        embedding_bytes=sum(
            len(chunk.embedding) * BYTES_PER_FLOAT for chunk in chunks if chunk.embedding
        ),
        metadata_bytes=sum(
            len(chunk.model_dump_json(exclude={"embedding"}).encode("utf-8")) for chunk in chunks
        ),
        processed_at=metadata.processed_at,
    )
