"""Completion backends: Anthropic Claude (SDK) and a local Ollama server (HTTP)."""

from __future__ import annotations

import logging

import anthropic
import httpx

from offerbot.config import Settings
from offerbot.errors import NLUError
from offerbot.nlu.base import NLUClient

log = logging.getLogger("offerbot.nlu.providers")


class AnthropicClient(NLUClient):
    """NLUClient backed by the Anthropic Messages API."""

    name = "claude"

    def __init__(self, api_key: str, model: str, timeout: float = 30.0) -> None:
        self._model = model
        self._client = anthropic.AsyncAnthropic(api_key=api_key, timeout=timeout)

    async def complete(
        self,
        system: str,
        prompt: str,
        *,
        max_tokens: int = 200,
        temperature: float = 0.2,
    ) -> str:
        try:
            response = await self._client.messages.create(
                model=self._model,
                system=system,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except anthropic.APIError as exc:
            raise NLUError(f"Anthropic request failed: {exc}") from exc

        text = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        ).strip()
        if not text:
            raise NLUError("Anthropic returned an empty completion")
        return text

    async def aclose(self) -> None:
        await self._client.close()


class OllamaClient(NLUClient):
    """NLUClient backed by a local Ollama server (``/api/chat``, non-streaming)."""

    name = "ollama"

    def __init__(self, base_url: str, model: str, timeout: float = 60.0) -> None:
        self._model = model
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def complete(
        self,
        system: str,
        prompt: str,
        *,
        max_tokens: int = 200,
        temperature: float = 0.2,
    ) -> str:
        payload = {
            "model": self._model,
            "stream": False,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            "options": {"temperature": temperature, "num_predict": max_tokens},
        }
        try:
            resp = await self._client.post("/api/chat", json=payload)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPError as exc:
            raise NLUError(f"Ollama request failed: {exc}") from exc
        except ValueError as exc:
            raise NLUError("Ollama returned a non-JSON body") from exc

        text = (data.get("message") or {}).get("content", "").strip()
        if not text:
            raise NLUError("Ollama returned an empty completion")
        return text

    async def aclose(self) -> None:
        await self._client.aclose()


def create_nlu_client(settings: Settings) -> NLUClient:
    """Build the completion backend selected by ``LLM_PROVIDER``."""
    if settings.llm_provider == "ollama":
        log.info("NLU provider: ollama (%s @ %s)", settings.ollama_model, settings.ollama_url)
        return OllamaClient(settings.ollama_url, settings.ollama_model)
    log.info("NLU provider: claude (%s)", settings.anthropic_model)
    return AnthropicClient(settings.anthropic_api_key, settings.anthropic_model)
