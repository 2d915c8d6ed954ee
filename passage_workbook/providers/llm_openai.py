from __future__ import annotations

import os
from typing import Any

from passage_workbook.prompts import STRUCTURED_SUFFIX
from passage_workbook.providers.base import LLMProvider, extract_json, object_schema, unwrap
from passage_workbook.schemas import schema_to_json


class OpenAIProvider(LLMProvider):
    def __init__(self, model: str = "gpt-4o-mini"):
        import openai
        self.client = openai.AsyncOpenAI(
            api_key=os.environ.get("OPENAI_API_KEY", ""),
        )
        self.model = model

    async def generate(self, prompt: str, temperature: float = 0.7) -> str:
        resp = await self.client.chat.completions.create(
            model=self.model,
            temperature=temperature,
            messages=[{"role": "user", "content": prompt}],
        )
        return resp.choices[0].message.content or ""

    async def generate_structured(self, prompt: str, schema: dict, temperature: float = 0.3) -> Any | None:
        # JSON mode only yields objects
        target, wrapped = object_schema(schema)
        resp = await self.client.chat.completions.create(
            model=self.model,
            temperature=temperature,
            messages=[{"role": "user", "content": prompt + STRUCTURED_SUFFIX.format(schema=schema_to_json(target))}],
            response_format={"type": "json_object"},
        )
        return unwrap(extract_json(resp.choices[0].message.content or ""), wrapped)

    def name(self) -> str:
        return f"openai/{self.model}"
