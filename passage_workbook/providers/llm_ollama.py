from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from passage_workbook.providers.base import LLMProvider, extract_json

log = logging.getLogger("passage_workbook.llm")


class OllamaProvider(LLMProvider):
    def __init__(self, base_url: str = "http://localhost:11434", model: str = "qwen3:8b", timeout: float = 180.0):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout

    async def _post_generate(self, body: dict) -> dict:
        log.debug("── PROMPT (%s) ──\n%s", self.model, body["prompt"])
        t0 = time.monotonic()
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.post(f"{self.base_url}/api/generate", json=body)
            resp.raise_for_status()
            data = resp.json()
        elapsed = time.monotonic() - t0
        log.info("%s responded in %.1fs (%s tokens)", self.model, elapsed, data.get("eval_count", "?"))
        log.debug("── RESPONSE ──\n%s", data.get("response", ""))
        return data

    async def generate(self, prompt: str, temperature: float = 0.7) -> str:
        data = await self._post_generate({
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "think": False,
            "options": {"temperature": temperature},
        })
        return data["response"]

    async def generate_structured(self, prompt: str, schema: dict, temperature: float = 0.3) -> Any | None:
        # Ollama constrains decoding to the schema when it is passed as `format`
        data = await self._post_generate({
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "think": False,
            "format": schema,
            "options": {"temperature": temperature},
        })
        return extract_json(data["response"])

    def name(self) -> str:
        return f"ollama/{self.model}"
