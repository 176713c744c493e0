"""Application settings loaded from environment variables via pydantic-settings.

Settings are read from two sources, in priority order:

  1. Environment variables, e.g. ``OPENAI_API_KEY=sk-abc123``
  2. A ``.env`` file in the working directory

Field ``openai_api_key`` maps to env var ``OPENAI_API_KEY``; defaults apply
when neither source defines a value.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """docrag settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Remote embedding / vision ===
    # Empty key = remote embeddings disabled; the local hashing embedding is used.
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible endpoint (TogetherAI, Ollama /v1, ...)
    openai_embedding_model: str = "text-embedding-3-small"
    openai_vision_model: str = "gpt-4o-mini"  # Used only when process_images is requested

    # === Document store ===
    store_backend: str = "sqlite"  # "sqlite" (persistent) or "memory"
    sqlite_db_path: str = "data/docrag.db"

    # === Ingestion ===
    default_chunk_tokens: int = 400
    max_pages_per_ingest: int = 100
    persist_batch_size: int = 10
    progress_heartbeat_seconds: float = 2.0
    fetch_timeout_seconds: float = 30.0

    # === Retrieval ===
    default_search_results: int = 4
    max_search_results: int = 8
    search_preview_chars: int = 1200

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"

    def remote_embeddings_enabled(self) -> bool:
        """Return ``True`` when an API key or a custom endpoint is configured."""
        return bool(self.openai_api_key or self.openai_base_url)
