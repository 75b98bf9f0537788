"""
Perplexity Provider - raw HTTPS calls to the search-augmented chat API.

The endpoint is OpenAI-compatible; streaming arrives as server-sent
event lines ("data: {...}") terminated by "data: [DONE]".
"""
import json
import logging
from typing import Any, AsyncIterator, Dict, Optional

import httpx

from errors import StreamInterruptedError
from providers.base import ProviderClient

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.perplexity.ai"


class PerplexityProvider(ProviderClient):
    """Provider that calls the Perplexity chat completions endpoint."""

    def __init__(
        self,
        api_key: str = "",
        model: str = "",
        base_url: str = "",
        transport: Optional[httpx.AsyncBaseTransport] = None,
        **kwargs,
    ):
        super().__init__(api_key=api_key, model=model or "llama-3.1-sonar-small-128k-online", **kwargs)
        self._base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self._transport = transport
        logger.info("Perplexity provider initialized: %s", self._model_name)

    @property
    def provider_name(self) -> str:
        return "Perplexity"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self.timeout,
            transport=self._transport,
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Content-Type": "application/json",
            },
        )

    def _body(self, prompt: str, system_instruction: Optional[str], stream: bool) -> Dict[str, Any]:
        messages = []
        if system_instruction:
            messages.append({"role": "system", "content": system_instruction})
        messages.append({"role": "user", "content": prompt})
        return {
            "model": self._model_name,
            "messages": messages,
            "temperature": self.temperature,
            "top_p": 0.9,
            "max_tokens": self.max_output_tokens,
            "search_recency_filter": "month",
            "frequency_penalty": 1,
            "stream": stream,
        }

    async def _ask(self, prompt: str, system_instruction: Optional[str]) -> str:
        try:
            async with self._client() as client:
                resp = await client.post("/chat/completions", json=self._body(prompt, system_instruction, False))
        except httpx.TimeoutException as e:
            raise self._unavailable("request timed out", error_type="timeout") from e
        except httpx.HTTPError as e:
            raise self._unavailable(str(e) or type(e).__name__) from e

        if resp.status_code >= 400:
            raise self._from_status(resp.status_code, resp.text)

        try:
            data = resp.json()
            return data["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise self._unavailable("malformed response body", error_type="status") from e

    async def _stream(self, prompt: str, system_instruction: Optional[str]) -> AsyncIterator[str]:
        finished = False
        try:
            async with self._client() as client:
                async with client.stream(
                    "POST", "/chat/completions", json=self._body(prompt, system_instruction, True)
                ) as resp:
                    if resp.status_code >= 400:
                        body = (await resp.aread()).decode("utf-8", errors="replace")
                        raise self._from_status(resp.status_code, body)

                    async for line in resp.aiter_lines():
                        line = line.strip()
                        if not line.startswith("data:"):
                            continue
                        payload = line[5:].strip()
                        if payload == "[DONE]":
                            finished = True
                            break
                        try:
                            event = json.loads(payload)
                        except json.JSONDecodeError:
                            logger.debug(f"Perplexity: skipping unparseable event {payload[:80]!r}")
                            continue
                        for choice in event.get("choices") or []:
                            delta = (choice.get("delta") or {}).get("content")
                            if delta:
                                yield delta
                            if choice.get("finish_reason"):
                                finished = True
        except httpx.TimeoutException as e:
            raise self._unavailable("stream timed out", error_type="timeout") from e
        except httpx.HTTPError as e:
            raise self._unavailable(str(e) or type(e).__name__) from e

        if not finished:
            raise StreamInterruptedError(
                "Perplexity stream closed before completion",
                provider=self.provider_name,
            )
