"""Shared pytest fixtures for the docrag test suite."""

from __future__ import annotations

import pytest

from docrag.config.settings import Settings
from docrag.providers.store.memory_document_store import MemoryDocumentStore
from docrag.providers.tools.memory_tool_registry import InMemoryToolRegistry
from docrag.utils.errors import CorruptDocumentError, PasswordProtectedError
from tests.fakes import SAMPLE_PAGES, FakePageExtractor

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_pages() -> list[str]:
    return list(SAMPLE_PAGES)


@pytest.fixture
def fake_extractor() -> FakePageExtractor:
    return FakePageExtractor()


@pytest.fixture
def encrypted_extractor() -> FakePageExtractor:
    return FakePageExtractor(failure=PasswordProtectedError(provider_name="fake_extractor"))


@pytest.fixture
def corrupt_extractor() -> FakePageExtractor:
    return FakePageExtractor(failure=CorruptDocumentError(provider_name="fake_extractor"))


@pytest.fixture
def memory_store() -> MemoryDocumentStore:
    return MemoryDocumentStore()


@pytest.fixture
def tool_registry() -> InMemoryToolRegistry:
    return InMemoryToolRegistry()


@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from the developer's environment."""
    return Settings(
        _env_file=None,
        openai_api_key="",
        openai_base_url="",
        store_backend="memory",
        progress_heartbeat_seconds=0.0,
    )
