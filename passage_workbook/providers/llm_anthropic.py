from __future__ import annotations

import os
from typing import Any

from passage_workbook.providers.base import LLMProvider, object_schema, unwrap

RESULT_TOOL = "record_result"


class AnthropicProvider(LLMProvider):
    def __init__(self, model: str = "claude-sonnet-4-20250514", max_tokens: int = 4096):
        import anthropic
        self.client = anthropic.AsyncAnthropic(
            api_key=os.environ.get("ANTHROPIC_API_KEY", ""),
        )
        self.model = model
        self.max_tokens = max_tokens

    async def generate(self, prompt: str, temperature: float = 0.7) -> str:
        message = await self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=temperature,
            messages=[{"role": "user", "content": prompt}],
        )
        return message.content[0].text

    async def generate_structured(self, prompt: str, schema: dict, temperature: float = 0.3) -> Any | None:
        """Force a single tool call whose input schema is the result schema."""
        input_schema, wrapped = object_schema(schema)
        message = await self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=temperature,
            tools=[{
                "name": RESULT_TOOL,
                "description": "Record the generated result.",
                "input_schema": input_schema,
            }],
            tool_choice={"type": "tool", "name": RESULT_TOOL},
            messages=[{"role": "user", "content": prompt}],
        )
        for block in message.content:
            if block.type == "tool_use" and block.name == RESULT_TOOL:
                return unwrap(block.input, wrapped)
        return None

    def name(self) -> str:
        return f"anthropic/{self.model}"
