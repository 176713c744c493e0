"""Sentence-respecting text chunking with offset resolution.

Splits a document's canonical text into chunks sized for embedding models.
Sentences are accumulated greedily until the next one would push the chunk
over its token budget; a sentence is never split, so a single sentence
longer than the budget becomes its own oversize chunk.

Every chunk is the contiguous slice of the source text from its first
sentence to its last, which is what lets the store keep chunks as
``[text_start, text_end)`` offsets instead of copies.  :func:`resolve_offsets`
maps chunk strings back to those offsets; it also copes with chunk text
whose whitespace no longer matches the source.
"""

from __future__ import annotations

import bisect
import math
import re
from collections.abc import Callable
from dataclasses import dataclass

import structlog

logger = structlog.get_logger(logger_name=__name__)

# Abbreviations whose trailing period should NOT end a sentence.
_ABBREVIATIONS = (
    "Dr",
    "Mr",
    "Mrs",
    "Ms",
    "Prof",
    "Jr",
    "Sr",
    "St",
    "Fig",
    "Vol",
    "No",
    "vs",
    "etc",
    "approx",
    "Inc",
    "Ltd",
    r"e\.g",
    r"i\.e",
)
_ABBREVIATION_RE = re.compile(r"\b(?:" + "|".join(_ABBREVIATIONS) + r")\.")

# Terminal punctuation (plus closing quotes/brackets) followed by whitespace.
_SENTENCE_END_RE = re.compile(r"[.!?]+[\"')\]]*(?=\s)")


def estimate_tokens(text: str) -> int:
    """Approximate token count: ``ceil(len(text) / 4)``.

    Not a real tokenizer; budgets derived from it are upper bounds only.
    """
    return math.ceil(len(text) / 4)


@dataclass(frozen=True)
class TextSpan:
    """Half-open offsets ``[start, end)`` into a source text.

    ``exact`` is ``False`` when the span is a positional approximation
    rather than a located match.
    """

    start: int
    end: int
    exact: bool = True


class TextChunker:
    """Splits text into sentence-aligned chunks under a token budget.

    Parameters
    ----------
    max_tokens:
        Upper bound on :func:`estimate_tokens` per chunk (default 400).
        Exceeded only by a chunk holding one oversize sentence.
    """

    def __init__(self, max_tokens: int = 400) -> None:
        if max_tokens < 1:
            msg = f"max_tokens must be positive, got {max_tokens}"
            raise ValueError(msg)
        self._max_tokens = max_tokens

    @property
    def max_tokens(self) -> int:
        return self._max_tokens

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def chunk(self, full_text: str) -> list[str]:
        """Split *full_text* into chunk strings.  Empty input returns ``[]``."""
        return [full_text[span.start : span.end] for span in self.spans(full_text)]

    def spans(self, full_text: str) -> list[TextSpan]:
        """Return chunk boundaries as offsets into *full_text*."""
        if not full_text or not full_text.strip():
            return []

        chunks: list[TextSpan] = []
        chunk_start: int | None = None
        chunk_end = 0

        for sent_start, sent_end in self._sentence_spans(full_text):
            if chunk_start is None:
                chunk_start = sent_start
            elif estimate_tokens(full_text[chunk_start:sent_end]) > self._max_tokens:
                chunks.append(TextSpan(chunk_start, chunk_end))
                chunk_start = sent_start
            chunk_end = sent_end

        if chunk_start is not None:
            chunks.append(TextSpan(chunk_start, chunk_end))

        logger.debug(
            "chunking_complete",
            num_chunks=len(chunks),
            max_tokens=self._max_tokens,
            text_length=len(full_text),
        )
        return chunks

    # ------------------------------------------------------------------
    # Sentence splitting
    # ------------------------------------------------------------------

    @staticmethod
    def _sentence_spans(text: str) -> list[tuple[int, int]]:
        """Return ``(start, end)`` of each sentence, whitespace-trimmed.

        Periods after known abbreviations are masked with ``\\x00`` (same
        length, so indices stay aligned with the original text).
        """
        masked = _ABBREVIATION_RE.sub(lambda m: m.group(0)[:-1] + "\x00", text)

        spans: list[tuple[int, int]] = []
        last = 0
        for match in _SENTENCE_END_RE.finditer(masked):
            _append_trimmed(text, last, match.end(), spans)
            last = match.end()
        _append_trimmed(text, last, len(text), spans)
        return spans


def _append_trimmed(text: str, start: int, end: int, spans: list[tuple[int, int]]) -> None:
    while start < end and text[start].isspace():
        start += 1
    while end > start and text[end - 1].isspace():
        end -= 1
    if start < end:
        spans.append((start, end))


# ---------------------------------------------------------------------------
# Offset resolution
# ---------------------------------------------------------------------------


def _normalize_with_positions(text: str) -> tuple[str, list[int]]:
    """Collapse whitespace runs to one space, recording each kept char's source index."""
    chars: list[str] = []
    positions: list[int] = []
    in_space = False
    for index, char in enumerate(text):
        if char.isspace():
            if not in_space:
                chars.append(" ")
                positions.append(index)
            in_space = True
        else:
            chars.append(char)
            positions.append(index)
            in_space = False
    return "".join(chars), positions


def _find_normalized(full_text: str, chunk_text: str, search_from: int) -> TextSpan | None:
    needle = " ".join(chunk_text.split())
    if not needle:
        return None
    haystack, positions = _normalize_with_positions(full_text)
    norm_from = bisect.bisect_left(positions, search_from)
    index = haystack.find(needle, norm_from)
    if index < 0:
        return None
    start = positions[index]
    end = positions[index + len(needle) - 1] + 1
    return TextSpan(start, end)


def locate_chunk(full_text: str, chunk_text: str, search_from: int = 0) -> TextSpan:
    """Find *chunk_text* inside *full_text*, starting at *search_from*.

    Tries, in order: exact search from *search_from*; whitespace-normalized
    search from *search_from*; both again from position 0; finally an
    approximate span at *search_from*.  Never raises.  Approximate spans
    (``exact=False``) can be wrong for heavily repeated text.
    """
    index = full_text.find(chunk_text, search_from) if chunk_text else -1
    if index >= 0:
        return TextSpan(index, index + len(chunk_text))

    span = _find_normalized(full_text, chunk_text, search_from)
    if span is not None:
        return span

    if search_from > 0:
        index = full_text.find(chunk_text) if chunk_text else -1
        if index >= 0:
            return TextSpan(index, index + len(chunk_text))
        span = _find_normalized(full_text, chunk_text, 0)
        if span is not None:
            return span

    if not full_text:
        return TextSpan(0, 0, exact=False)
    length = max(len(chunk_text), 1)
    start = max(0, min(search_from, len(full_text) - length))
    end = min(len(full_text), start + length)
    return TextSpan(start, end, exact=False)


def resolve_offsets(
    full_text: str,
    chunks: list[str],
    on_resolved: Callable[[int, int], None] | None = None,
) -> list[TextSpan]:
    """Resolve each chunk string to its span in *full_text*, in order.

    Each search starts where the previous chunk ended.  *on_resolved* is
    called with ``(index, total)`` after every chunk.
    """
    spans: list[TextSpan] = []
    cursor = 0
    total = len(chunks)
    for index, chunk_text in enumerate(chunks):
        span = locate_chunk(full_text, chunk_text, cursor)
        if not span.exact:
            logger.warning(
                "chunk_offset_approximated",
                chunk_index=index,
                search_from=cursor,
                chunk_length=len(chunk_text),
            )
        spans.append(span)
        cursor = span.end
        if on_resolved is not None:
            on_resolved(index, total)
    return spans
