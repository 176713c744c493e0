"""Unit tests for the TextChunker and chunk offset resolution."""

from __future__ import annotations

import pytest

from docrag.services.chunker import (
    TextChunker,
    TextSpan,
    estimate_tokens,
    locate_chunk,
    resolve_offsets,
)
from tests.fakes import PAGE_ONE, PAGE_TWO

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _numbered_sentences(count: int = 20) -> str:
    return " ".join(f"Sentence {i} has exactly some words." for i in range(count))


# ---------------------------------------------------------------------------
# Token estimate
# ---------------------------------------------------------------------------


class TestEstimateTokens:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [("", 0), ("a", 1), ("abcd", 1), ("abcde", 2), ("x" * 400, 100)],
    )
    def test_ceil_of_quarter_length(self, text: str, expected: int) -> None:
        assert estimate_tokens(text) == expected


# ---------------------------------------------------------------------------
# Chunking
# ---------------------------------------------------------------------------


class TestChunking:
    def test_empty_and_whitespace_input(self) -> None:
        chunker = TextChunker(max_tokens=10)
        assert chunker.chunk("") == []
        assert chunker.chunk("   \n\n\t ") == []

    def test_short_text_is_one_chunk(self) -> None:
        chunker = TextChunker(max_tokens=400)
        assert chunker.chunk("One short sentence.") == ["One short sentence."]

    def test_invalid_budget_rejected(self) -> None:
        with pytest.raises(ValueError):
            TextChunker(max_tokens=0)

    def test_budget_respected(self) -> None:
        chunker = TextChunker(max_tokens=25)
        chunks = chunker.chunk(_numbered_sentences())

        assert len(chunks) > 1
        for chunk in chunks:
            assert estimate_tokens(chunk) <= 25

    def test_no_empty_chunks(self) -> None:
        chunks = TextChunker(max_tokens=15).chunk(PAGE_ONE + "\n\n" + PAGE_TWO)
        assert all(chunk.strip() for chunk in chunks)

    def test_oversize_sentence_becomes_its_own_chunk(self) -> None:
        long_sentence = "This sentence " + "goes on and on " * 20 + "until it ends."
        text = f"Short opener. {long_sentence} Short closer."
        chunks = TextChunker(max_tokens=10).chunk(text)

        assert long_sentence in chunks
        assert estimate_tokens(long_sentence) > 10

    def test_concatenation_preserves_words(self) -> None:
        text = PAGE_ONE + "\n\n" + PAGE_TWO
        chunks = TextChunker(max_tokens=40).chunk(text)
        assert " ".join(chunks).split() == text.split()

    def test_deterministic(self) -> None:
        text = _numbered_sentences(30)
        assert TextChunker(max_tokens=30).chunk(text) == TextChunker(max_tokens=30).chunk(text)

    def test_larger_budget_gives_fewer_chunks(self) -> None:
        text = _numbered_sentences(30)
        small = TextChunker(max_tokens=20).chunk(text)
        large = TextChunker(max_tokens=200).chunk(text)
        assert len(small) > len(large)


class TestSentenceBoundaries:
    def test_abbreviation_does_not_end_sentence(self) -> None:
        chunks = TextChunker(max_tokens=1).chunk("Dr. Smith arrived late. He sat down.")
        assert chunks == ["Dr. Smith arrived late.", "He sat down."]

    def test_closing_quote_stays_with_sentence(self) -> None:
        chunks = TextChunker(max_tokens=1).chunk('He said "stop." Then he left!')
        assert chunks == ['He said "stop."', "Then he left!"]

    def test_trailing_text_without_punctuation_is_kept(self) -> None:
        chunks = TextChunker(max_tokens=1).chunk("First sentence. dangling words")
        assert chunks == ["First sentence.", "dangling words"]


class TestSpans:
    def test_spans_match_chunk_slices(self) -> None:
        text = PAGE_ONE + "\n\n" + PAGE_TWO
        chunker = TextChunker(max_tokens=30)

        spans = chunker.spans(text)
        chunks = chunker.chunk(text)

        assert [text[s.start : s.end] for s in spans] == chunks
        assert all(span.exact for span in spans)

    def test_spans_are_ordered_and_disjoint(self) -> None:
        spans = TextChunker(max_tokens=20).spans(_numbered_sentences())
        for previous, current in zip(spans, spans[1:]):
            assert previous.end <= current.start


# ---------------------------------------------------------------------------
# Offset resolution
# ---------------------------------------------------------------------------


class TestLocateChunk:
    def test_exact_match(self) -> None:
        text = "Alpha beta. Gamma delta."
        assert locate_chunk(text, "Gamma delta.") == TextSpan(12, 24)

    def test_whitespace_normalized_match(self) -> None:
        text = "Alpha beta.\n\n  Gamma   delta."
        span = locate_chunk(text, "Alpha beta. Gamma delta.")

        assert span.exact
        assert span.start == 0
        assert span.end == len(text)

    def test_retry_from_start(self) -> None:
        text = "Alpha beta. Gamma delta."
        assert locate_chunk(text, "Alpha", search_from=10) == TextSpan(0, 5)

    def test_approximate_span_when_not_found(self) -> None:
        span = locate_chunk("abcdefgh", "zzz", search_from=2)

        assert span == TextSpan(2, 5, exact=False)

    def test_approximate_span_stays_inside_text(self) -> None:
        span = locate_chunk("abcdef", "zzzz", search_from=5)

        assert not span.exact
        assert 0 <= span.start < span.end <= 6

    @pytest.mark.parametrize("chunk_text", ["", "anything", "x"])
    def test_empty_text_gives_empty_span(self, chunk_text: str) -> None:
        span = locate_chunk("", chunk_text, search_from=3)

        assert span == TextSpan(0, 0, exact=False)


class TestResolveOffsets:
    def test_repeated_text_resolves_in_order(self) -> None:
        text = "Same line. Same line. Same line."
        spans = resolve_offsets(text, ["Same line."] * 3)

        assert spans == [TextSpan(0, 10), TextSpan(11, 21), TextSpan(22, 32)]

    def test_round_trip_with_chunker(self) -> None:
        text = PAGE_ONE + "\n\n" + PAGE_TWO
        chunks = TextChunker(max_tokens=25).chunk(text)

        spans = resolve_offsets(text, chunks)

        assert [text[s.start : s.end] for s in spans] == chunks

    def test_progress_callback(self) -> None:
        seen: list[tuple[int, int]] = []
        resolve_offsets(
            "One. Two. Three.",
            ["One.", "Two.", "Three."],
            lambda index, total: seen.append((index, total)),
        )
        assert seen == [(0, 3), (1, 3), (2, 3)]
