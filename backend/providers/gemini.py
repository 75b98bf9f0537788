"""
Gemini Provider - wraps Google's Generative AI SDK.

Gemini has no system role in a chat session, so the system instruction is
sent as a synthetic first turn that primes the session before the prompt.
"""
import logging
from typing import AsyncIterator, Optional

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from errors import ProviderAuthError
from providers.base import ProviderClient

logger = logging.getLogger(__name__)


class GeminiProvider(ProviderClient):
    """Provider that calls Google Gemini API."""

    def __init__(self, api_key: str = "", model: str = "", top_k: int = 40, **kwargs):
        super().__init__(api_key=api_key, model=model or "gemini-1.5-pro", **kwargs)
        self.top_k = top_k
        self._client = None

    @property
    def provider_name(self) -> str:
        return "Gemini"

    def _get_client(self):
        if self._client is None:
            genai.configure(api_key=self._api_key)
            self._client = genai.GenerativeModel(
                self._model_name,
                generation_config=genai.GenerationConfig(
                    temperature=self.temperature,
                    top_p=self.top_p,
                    top_k=self.top_k,
                    max_output_tokens=self.max_output_tokens,
                ),
            )
            logger.info("Gemini provider initialized: %s", self._model_name)
        return self._client

    def _translate(self, e: Exception) -> Exception:
        if isinstance(e, (google_exceptions.PermissionDenied, google_exceptions.Unauthenticated)):
            return ProviderAuthError("Gemini rejected credentials", provider=self.provider_name)
        if isinstance(e, google_exceptions.InvalidArgument) and "api key" in str(e).lower():
            return ProviderAuthError("Gemini API key not valid", provider=self.provider_name)
        if isinstance(e, google_exceptions.DeadlineExceeded):
            return self._unavailable("request timed out", error_type="timeout")
        if isinstance(e, google_exceptions.GoogleAPICallError):
            return self._unavailable(str(e), error_type="status", status_code=e.code)
        return self._unavailable(str(e) or type(e).__name__)

    async def _primed_chat(self, system_instruction: Optional[str]):
        chat = self._get_client().start_chat(history=[])
        if system_instruction:
            # The reply to the priming turn is discarded
            await chat.send_message_async(system_instruction, request_options={"timeout": self.timeout})
        return chat

    async def _ask(self, prompt: str, system_instruction: Optional[str]) -> str:
        try:
            chat = await self._primed_chat(system_instruction)
            response = await chat.send_message_async(prompt, request_options={"timeout": self.timeout})
            return response.text
        except (google_exceptions.GoogleAPIError, ValueError) as e:
            # ValueError: response.text on a safety-blocked candidate
            raise self._translate(e) from e

    async def _stream(self, prompt: str, system_instruction: Optional[str]) -> AsyncIterator[str]:
        try:
            chat = await self._primed_chat(system_instruction)
            response = await chat.send_message_async(
                prompt, stream=True, request_options={"timeout": self.timeout}
            )
            async for chunk in response:
                text = chunk.text
                if text:
                    yield text
        except (google_exceptions.GoogleAPIError, ValueError) as e:
            raise self._translate(e) from e
