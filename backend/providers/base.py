"""
Provider client - abstract base class for the AI answering backends.

Providers wrap different AI APIs behind a uniform interface so the
fallback orchestrator and the streaming relay can use any of them.
A provider never retries; fallback across providers is the orchestrator's job.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import AsyncIterator, Optional, Tuple

from errors import ProviderAuthError, ProviderUnavailableError, ValidationError

logger = logging.getLogger(__name__)


class ProviderClient(ABC):
    """Abstract provider interface.

    Credentials are checked eagerly at construction and again on every call,
    so a key cleared at runtime surfaces as ProviderAuthError, not a crash.
    """

    def __init__(
        self,
        api_key: str = "",
        model: str = "",
        timeout: float = 30.0,
        temperature: float = 0.2,
        top_p: float = 0.8,
        max_output_tokens: int = 1024,
    ):
        self._api_key = api_key
        self._model_name = model
        self.timeout = timeout
        self.temperature = temperature
        self.top_p = top_p
        self.max_output_tokens = max_output_tokens
        self._require_key()

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Canonical name ('OpenAI', 'Perplexity', 'Gemini')."""
        ...

    @property
    def model(self) -> str:
        return self._model_name

    def _require_key(self) -> None:
        if not self._api_key:
            raise ProviderAuthError(
                f"{self.provider_name} API key not configured",
                provider=self.provider_name,
            )

    def _check_prompt(self, prompt: str) -> None:
        if not prompt or not prompt.strip():
            raise ValidationError("Prompt must not be empty", parameter="prompt")

    def _unavailable(self, message: str, error_type: str = "network", **context) -> ProviderUnavailableError:
        return ProviderUnavailableError(
            f"{self.provider_name}: {message}",
            provider=self.provider_name,
            error_type=error_type,
            **context,
        )

    def _from_status(self, status_code: int, body: str = "") -> Exception:
        """Map a non-success HTTP status onto the provider error taxonomy."""
        if status_code in (401, 403):
            return ProviderAuthError(
                f"{self.provider_name} rejected credentials",
                details=body[:200] or None,
                provider=self.provider_name,
                status_code=status_code,
            )
        return self._unavailable(
            f"HTTP {status_code}",
            error_type="status",
            status_code=status_code,
        )

    async def ask(self, prompt: str, system_instruction: Optional[str] = None) -> str:
        """Send a prompt and return the complete answer.

        Args:
            prompt: Non-empty user prompt
            system_instruction: Optional priming instruction

        Raises:
            ValidationError: empty prompt
            ProviderAuthError: missing or rejected credentials
            ProviderUnavailableError: network failure or non-success status
        """
        self._check_prompt(prompt)
        self._require_key()
        return await self._ask(prompt, system_instruction)

    async def stream(self, prompt: str, system_instruction: Optional[str] = None) -> AsyncIterator[str]:
        """Yield answer text chunks as the backend produces them.

        Iteration ends normally only when the backend signalled completion.
        """
        self._check_prompt(prompt)
        self._require_key()
        chunks = self._stream(prompt, system_instruction)
        try:
            async for chunk in chunks:
                yield chunk
        finally:
            # Closing early must release the backend connection
            await chunks.aclose()

    @abstractmethod
    async def _ask(self, prompt: str, system_instruction: Optional[str]) -> str:
        ...

    @abstractmethod
    def _stream(self, prompt: str, system_instruction: Optional[str]) -> AsyncIterator[str]:
        ...

    async def test_connection(self) -> Tuple[bool, str]:
        """Test that the provider is reachable.

        Returns:
            (success, message) tuple.
        """
        try:
            result = await asyncio.wait_for(self.ask("Say OK"), self.timeout)
            if result:
                return True, f"{self.provider_name} responding"
            return False, f"Empty response from {self.provider_name}"
        except Exception as e:
            return False, str(e) or type(e).__name__
