"""Page describer (vision) providers."""

from docrag.providers.vision.openai_page_describer import OpenAIPageDescriber

__all__ = ["OpenAIPageDescriber"]
