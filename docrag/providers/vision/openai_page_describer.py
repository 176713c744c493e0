"""OpenAI vision page describer.

Sends a rendered page to a vision-capable chat model and returns a short
description of its figures, charts and diagrams.  Used only when an
ingestion asks for ``process_images``.
"""

from __future__ import annotations

import base64

import openai
import structlog

from docrag.config.settings import Settings
from docrag.interfaces.page_extractor import IPageDescriber
from docrag.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)

_DESCRIBE_PROMPT = "Describe this image, chart, or diagram in detail for academic use."
_MAX_TOKENS = 500


class OpenAIPageDescriber(IPageDescriber):
    """Page describer backed by an OpenAI-compatible vision model."""

    def __init__(self, settings: Settings, timeout: float = 30.0) -> None:
        self._api_key = settings.openai_api_key
        self._base_url = settings.openai_base_url
        client_kwargs: dict = {
            "api_key": self._api_key or "unused",
            "timeout": openai.Timeout(timeout, connect=5.0),
        }
        if self._base_url:
            client_kwargs["base_url"] = self._base_url
        self._client = openai.AsyncOpenAI(**client_kwargs)
        self._model = settings.openai_vision_model or "gpt-4o-mini"
        self._provider_label = "openai-compatible_vision" if self._base_url else "openai_vision"

    async def describe_page(self, image: bytes, page_number: int) -> str:
        b64 = base64.b64encode(image).decode("utf-8")
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": _DESCRIBE_PROMPT},
                            {
                                "type": "image_url",
                                "image_url": {"url": f"data:image/png;base64,{b64}", "detail": "low"},
                            },
                        ],
                    }
                ],
                max_tokens=_MAX_TOKENS,
            )
        except openai.APIError as exc:
            raise ExtractionError(
                message=f"{self._provider_label} API error: {exc}",
                provider_name=self._provider_label,
            ) from exc

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise ExtractionError(
                message=f"{self._provider_label} returned an empty description",
                provider_name=self._provider_label,
            )
        logger.info(
            "page_described",
            page=page_number,
            model=self._model,
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return content.strip()

    def is_available(self) -> bool:
        return bool(self._api_key or self._base_url)
