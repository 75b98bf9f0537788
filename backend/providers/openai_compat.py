"""
OpenAI Provider - wraps the async OpenAI SDK.

The system instruction travels as a system-role message.
"""
import logging
from typing import AsyncIterator, Dict, List, Optional

from openai import (
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
    AsyncOpenAI,
    AuthenticationError,
    PermissionDeniedError,
)

from errors import ProviderAuthError
from providers.base import ProviderClient

logger = logging.getLogger(__name__)


class OpenAIProvider(ProviderClient):
    """Provider for the OpenAI chat completions API."""

    def __init__(self, api_key: str = "", model: str = "", base_url: str = "", **kwargs):
        super().__init__(api_key=api_key, model=model or "gpt-4o", **kwargs)
        self._base_url = base_url or None  # None = default OpenAI endpoint
        self._client: Optional[AsyncOpenAI] = None

    @property
    def provider_name(self) -> str:
        return "OpenAI"

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self._api_key,
                base_url=self._base_url,
                timeout=self.timeout,
                max_retries=0,
            )
            logger.info("OpenAI provider initialized: %s", self._model_name)
        return self._client

    def _messages(self, prompt: str, system_instruction: Optional[str]) -> List[Dict[str, str]]:
        messages = []
        if system_instruction:
            messages.append({"role": "system", "content": system_instruction})
        messages.append({"role": "user", "content": prompt})
        return messages

    def _translate(self, e: Exception) -> Exception:
        if isinstance(e, (AuthenticationError, PermissionDeniedError)):
            return ProviderAuthError(
                "OpenAI rejected credentials",
                provider=self.provider_name,
                status_code=e.status_code,
            )
        if isinstance(e, APITimeoutError):
            return self._unavailable("request timed out", error_type="timeout")
        if isinstance(e, APIStatusError):
            return self._unavailable(f"HTTP {e.status_code}", error_type="status", status_code=e.status_code)
        return self._unavailable(str(e))

    async def _ask(self, prompt: str, system_instruction: Optional[str]) -> str:
        try:
            response = await self._get_client().chat.completions.create(
                model=self._model_name,
                messages=self._messages(prompt, system_instruction),
                temperature=self.temperature,
                max_tokens=self.max_output_tokens,
            )
        except (APIStatusError, APIConnectionError) as e:
            raise self._translate(e) from e

        if not response.choices:
            raise self._unavailable("empty choices in response", error_type="status")
        return response.choices[0].message.content or ""

    async def _stream(self, prompt: str, system_instruction: Optional[str]) -> AsyncIterator[str]:
        try:
            stream = await self._get_client().chat.completions.create(
                model=self._model_name,
                messages=self._messages(prompt, system_instruction),
                temperature=self.temperature,
                max_tokens=self.max_output_tokens,
                stream=True,
            )
        except (APIStatusError, APIConnectionError) as e:
            raise self._translate(e) from e

        try:
            async for chunk in stream:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content
                if delta:
                    yield delta
        except (APIStatusError, APIConnectionError) as e:
            raise self._translate(e) from e
        finally:
            await stream.close()
