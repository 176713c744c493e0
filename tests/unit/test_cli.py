"""Tests for the docrag command-line interface.

Each test points the CLI at a temporary SQLite file so documents indexed
by one command are visible to the next, exactly as in real use.
"""

from __future__ import annotations

import argparse
from pathlib import Path

import pytest

from docrag.cli.commands import _parse_pages, main
from docrag.config.settings import Settings
from docrag.models.document import PageRange
from tests.fakes import SAMPLE_PAGES, make_pdf


@pytest.fixture
def cli_settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        openai_api_key="",
        openai_base_url="",
        store_backend="sqlite",
        sqlite_db_path=str(tmp_path / "cli.db"),
        progress_heartbeat_seconds=0.0,
        log_level="WARNING",
    )


@pytest.fixture
def lecture_pdf(tmp_path: Path) -> Path:
    path = tmp_path / "lecture.pdf"
    path.write_bytes(make_pdf(SAMPLE_PAGES))
    return path


def _index(pdf: Path, settings: Settings, *extra: str) -> int:
    return main(["index", "--file", str(pdf), "--quiet", *extra], settings)


class TestParsePages:
    def test_single_page(self) -> None:
        assert _parse_pages("5") == PageRange(start=5, end=5)

    def test_range(self) -> None:
        assert _parse_pages("1-20") == PageRange(start=1, end=20)

    def test_invalid(self) -> None:
        with pytest.raises(argparse.ArgumentTypeError):
            _parse_pages("first-last")


class TestCommands:
    def test_no_command_prints_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main([]) == 1
        assert "usage:" in capsys.readouterr().out

    def test_index_file(
        self, lecture_pdf: Path, cli_settings: Settings, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert _index(lecture_pdf, cli_settings, "--title", "Lecture") == 0

        out = capsys.readouterr().out
        assert "Ingestion complete" in out
        assert "Document ID:     lecture" in out
        assert "Pages:           3" in out

    def test_index_twice_reuses_record(
        self, lecture_pdf: Path, cli_settings: Settings, capsys: pytest.CaptureFixture[str]
    ) -> None:
        _index(lecture_pdf, cli_settings)
        capsys.readouterr()

        assert _index(lecture_pdf, cli_settings) == 0
        assert "Already indexed: lecture" in capsys.readouterr().out

    def test_index_over_page_limit(
        self, lecture_pdf: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        settings = Settings(
            _env_file=None,
            openai_api_key="",
            store_backend="memory",
            max_pages_per_ingest=2,
            log_level="WARNING",
        )

        assert _index(lecture_pdf, settings) == 1
        assert "at most 2 pages" in capsys.readouterr().err

    def test_index_page_subrange(
        self, lecture_pdf: Path, cli_settings: Settings, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert _index(lecture_pdf, cli_settings, "--pages", "2-3") == 0
        assert "Pages:           2" in capsys.readouterr().out

    def test_list(
        self, lecture_pdf: Path, cli_settings: Settings, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert main(["list"], cli_settings) == 0
        assert "No documents indexed." in capsys.readouterr().out

        _index(lecture_pdf, cli_settings)
        capsys.readouterr()
        assert main(["list"], cli_settings) == 0
        assert "lecture" in capsys.readouterr().out

    def test_search(
        self, lecture_pdf: Path, cli_settings: Settings, capsys: pytest.CaptureFixture[str]
    ) -> None:
        _index(lecture_pdf, cli_settings, "--chunk-tokens", "50")
        capsys.readouterr()

        assert main(["search", "lecture", "lava fountains", "--top", "2"], cli_settings) == 0

        out = capsys.readouterr().out
        assert "2 of" in out
        assert "#1  similarity=" in out

    def test_search_json(
        self, lecture_pdf: Path, cli_settings: Settings, capsys: pytest.CaptureFixture[str]
    ) -> None:
        _index(lecture_pdf, cli_settings)
        capsys.readouterr()

        assert main(["search", "lecture", "sourdough", "--json"], cli_settings) == 0
        assert '"query": "sourdough"' in capsys.readouterr().out

    def test_search_unknown_document(
        self, cli_settings: Settings, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert main(["search", "missing", "anything"], cli_settings) == 1
        assert "Document not found or has no content" in capsys.readouterr().err

    def test_fulltext(
        self, lecture_pdf: Path, cli_settings: Settings, capsys: pytest.CaptureFixture[str]
    ) -> None:
        _index(lecture_pdf, cli_settings)
        capsys.readouterr()

        assert main(["fulltext", "lecture"], cli_settings) == 0
        assert "--- Page 2 ---" in capsys.readouterr().out

        assert main(["fulltext", "lecture", "--no-page-markers"], cli_settings) == 0
        out = capsys.readouterr().out
        assert "--- Page" not in out
        assert "Pyroclastic" in out

    def test_delete(
        self, lecture_pdf: Path, cli_settings: Settings, capsys: pytest.CaptureFixture[str]
    ) -> None:
        _index(lecture_pdf, cli_settings)
        capsys.readouterr()

        assert main(["delete", "lecture"], cli_settings) == 0
        assert "Deleted: lecture" in capsys.readouterr().out

        assert main(["delete", "lecture"], cli_settings) == 1
        assert "Error: Document not found: lecture" in capsys.readouterr().err

    def test_stats(
        self, lecture_pdf: Path, cli_settings: Settings, capsys: pytest.CaptureFixture[str]
    ) -> None:
        _index(lecture_pdf, cli_settings)
        capsys.readouterr()

        assert main(["stats"], cli_settings) == 0

        out = capsys.readouterr().out
        assert "Documents:  1" in out
        assert "lecture" in out
