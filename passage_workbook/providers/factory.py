from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from passage_workbook.config import Settings
    from passage_workbook.providers.base import LLMProvider


def get_llm(settings: Settings) -> LLMProvider:
    if settings.llm_provider == "ollama":
        from passage_workbook.providers.llm_ollama import OllamaProvider
        return OllamaProvider(base_url=settings.ollama_url, model=settings.llm_model)
    elif settings.llm_provider == "anthropic":
        from passage_workbook.providers.llm_anthropic import AnthropicProvider
        return AnthropicProvider(model=settings.llm_model)
    elif settings.llm_provider == "openai":
        from passage_workbook.providers.llm_openai import OpenAIProvider
        return OpenAIProvider(model=settings.llm_model)
    raise ValueError(f"Unknown LLM provider: {settings.llm_provider}")
