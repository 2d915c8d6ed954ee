from __future__ import annotations

import json
import re
from abc import ABC, abstractmethod
from typing import Any

from passage_workbook.prompts import STRUCTURED_SUFFIX
from passage_workbook.schemas import schema_to_json

_OPENERS = {"{": "}", "[": "]"}


def extract_json(text: str) -> Any | None:
    """Extract a JSON object or array from an LLM response.

    Strips ``<think>`` blocks first, then tries code-fenced JSON, then falls
    back to balanced top-level ``{…}``/``[…]`` blocks, preferring the *last*
    one since models often draft partial JSON before the final answer.
    """
    text = re.sub(r"<think>.*?</think>", "", text, flags=re.DOTALL).strip()

    m = re.search(r"```(?:json)?\s*\n?([\[{].*?[\]}])\s*\n?```", text, re.DOTALL)
    if m:
        try:
            return json.loads(m.group(1))
        except json.JSONDecodeError:
            pass

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    for candidate in reversed(_find_json_blocks(text)):
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue
    return None


def _find_json_blocks(text: str) -> list[str]:
    """Find balanced top-level ``{…}`` or ``[…]`` substrings in *text*."""
    results: list[str] = []
    i = 0
    while i < len(text):
        opener = text[i]
        if opener not in _OPENERS:
            i += 1
            continue
        closer = _OPENERS[opener]
        depth = 0
        in_str = False
        escape = False
        for j in range(i, len(text)):
            ch = text[j]
            if escape:
                escape = False
                continue
            if ch == "\\":
                escape = True
                continue
            if ch == '"':
                in_str = not in_str
                continue
            if in_str:
                continue
            if ch == opener:
                depth += 1
            elif ch == closer:
                depth -= 1
                if depth == 0:
                    results.append(text[i : j + 1])
                    i = j + 1
                    break
        else:
            # Unbalanced, skip this opening bracket
            i += 1
    return results


def object_schema(schema: dict) -> tuple[dict, bool]:
    """APIs that only return JSON objects get list schemas wrapped as ``{"items": [...]}``.

    Returns the schema to send and whether the reply needs unwrapping.
    """
    if schema.get("type") == "object":
        return schema, False
    return {"type": "object", "properties": {"items": schema}, "required": ["items"]}, True


def unwrap(data: Any, wrapped: bool) -> Any | None:
    if not wrapped:
        return data
    return data.get("items") if isinstance(data, dict) else None


class LLMProvider(ABC):
    @abstractmethod
    async def generate(self, prompt: str, temperature: float = 0.7) -> str:
        ...

    async def generate_structured(self, prompt: str, schema: dict, temperature: float = 0.3) -> Any | None:
        """Ask for JSON matching *schema*. Returns None if no JSON came back.

        Default: describe the schema in the prompt and parse the text reply.
        Providers with native structured output override this.
        """
        full_prompt = prompt + STRUCTURED_SUFFIX.format(schema=schema_to_json(schema))
        response = await self.generate(full_prompt, temperature=temperature)
        return extract_json(response)

    @abstractmethod
    def name(self) -> str:
        ...
