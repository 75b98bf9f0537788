"""
EduConnect Fallback Orchestrator - multi-provider answer orchestration

Handles one question end to end:
1. Order providers (subject-preferred provider first, then the default order)
2. Try each provider under its own timeout until one answers
3. Attribute answers from any provider other than the primary one
4. Persist the (user, assistant) pair as one unit

If every provider fails the caller still gets a normal answer carrying the
fixed degraded message, with source "none". Provider errors never cross
this boundary; only a lost local write (StoreWriteError) does.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from errors import ErrorCode, ProviderAuthError, ProviderError, ValidationError, log_error
from logging_config import log_message_in, log_message_out, log_provider
from models import ChatTurn
from providers.base import ProviderClient
from services.conversation_store import ConversationStore

from .content_analysis import MIN_CONTENT_LENGTH, ContentAnalysis, segment_analysis
from .prompts import (
    CHAT_SYSTEM_INSTRUCTION,
    CONTENT_ANALYSIS_INSTRUCTION,
    DEGRADED_MESSAGE,
    HOMEWORK_USER_TURN,
    attribution_suffix,
    homework_instruction,
    homework_prompt,
)
from .subject_router import SubjectRouter

logger = logging.getLogger(__name__)

NO_PROVIDER = "none"


@dataclass
class ProviderAttempt:
    """Outcome of one provider call within a single orchestration."""

    provider_name: str
    succeeded: bool
    error_kind: Optional[str] = None
    latency: Optional[float] = None


@dataclass
class OrchestratedAnswer:
    """What ask() returns: attributed text plus the stored turns."""

    text: str
    source_provider: str
    user_turn: Optional[ChatTurn] = None
    assistant_turn: Optional[ChatTurn] = None
    attempts: List[ProviderAttempt] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return self.source_provider == NO_PROVIDER


class FallbackOrchestrator:
    """Tries providers in priority order and persists each exchange.

    Args:
        providers: Provider chain in the default priority order
        store: Conversation store receiving both turns of every exchange
        primary_provider: Configured primary; its answers carry no attribution
        router: Subject router used when a subject is supplied
    """

    def __init__(
        self,
        providers: Sequence[ProviderClient],
        store: ConversationStore,
        primary_provider: str,
        router: Optional[SubjectRouter] = None,
    ):
        self.providers = list(providers)
        self.store = store
        self.primary_provider = primary_provider
        self.router = router or SubjectRouter(primary_provider)

    def provider_order(self, subject: Optional[str] = None) -> List[ProviderClient]:
        """Providers in the order they will be tried for this question."""
        if not subject:
            return list(self.providers)
        preferred = self.router.preferred_provider(subject)
        first = [p for p in self.providers if p.provider_name == preferred]
        rest = [p for p in self.providers if p.provider_name != preferred]
        return first + rest

    async def _try_providers(
        self,
        prompt: str,
        system_instruction: Optional[str],
        subject: Optional[str] = None,
    ) -> Tuple[Optional[str], str, List[ProviderAttempt]]:
        """Walk the chain; returns (text or None, source provider, attempts)."""
        attempts: List[ProviderAttempt] = []

        for provider in self.provider_order(subject):
            name = provider.provider_name
            log_provider(logger, "start", name)
            start = time.perf_counter()
            try:
                text = await asyncio.wait_for(provider.ask(prompt, system_instruction), provider.timeout)
            except asyncio.TimeoutError:
                error_kind = ErrorCode.PROVIDER_TIMEOUT.value
            except ProviderAuthError as e:
                error_kind = e.code.value
                logger.error(f"[{name}] {error_kind}: {e} - check the provider credentials")
            except ProviderError as e:
                error_kind = e.code.value
            except Exception as e:
                error_kind = ErrorCode.INTERNAL_UNEXPECTED.value
                log_error(logger, e, context=name)
            else:
                latency = time.perf_counter() - start
                if text and text.strip():
                    attempts.append(ProviderAttempt(name, True, latency=latency))
                    log_provider(logger, "end", name, duration=latency)
                    return text, name, attempts
                error_kind = ErrorCode.PROVIDER_BAD_STATUS.value

            latency = time.perf_counter() - start
            attempts.append(ProviderAttempt(name, False, error_kind=error_kind, latency=latency))
            log_provider(logger, "fail", name, duration=latency, error=error_kind)

        logger.warning(f"All providers exhausted ({len(attempts)} attempts), returning degraded answer")
        return None, NO_PROVIDER, attempts

    def _attribute(self, text: str, source: str) -> str:
        if source == self.primary_provider:
            return text
        return text + attribution_suffix(source)

    async def ask(self, user_id: str, message: str, subject: Optional[str] = None) -> OrchestratedAnswer:
        """Answer a chat message, or a homework question when a subject is given.

        Raises:
            ValidationError: missing user id, empty message
            StoreWriteError: the exchange could not be saved locally
        """
        if not user_id:
            raise ValidationError("user_id is required", parameter="user_id")
        if not message or not message.strip():
            raise ValidationError("Message is required", parameter="message")

        subject = subject.strip() if subject else None
        log_message_in(logger, message, user=user_id, subject=subject or "-")

        if subject:
            prompt = homework_prompt(subject, message)
            system_instruction = homework_instruction(subject)
            user_content = HOMEWORK_USER_TURN.format(subject=subject, question=message)
        else:
            prompt = message
            system_instruction = CHAT_SYSTEM_INSTRUCTION
            user_content = message

        text, source, attempts = await self._try_providers(prompt, system_instruction, subject)
        if text is None:
            answer_text = DEGRADED_MESSAGE
        else:
            answer_text = self._attribute(text, source)

        user_turn, assistant_turn = await self.store.append_exchange(
            user_id,
            ChatTurn.user(user_id, user_content),
            ChatTurn.assistant(user_id, answer_text, None if source == NO_PROVIDER else source),
        )
        log_message_out(logger, source=source, chars=len(answer_text))

        return OrchestratedAnswer(
            text=answer_text,
            source_provider=source,
            user_turn=user_turn,
            assistant_turn=assistant_turn,
            attempts=attempts,
        )

    async def analyze_content(self, content: str) -> ContentAnalysis:
        """Ask the chain for a structured analysis of a piece of content.

        Nothing is persisted. When every provider fails the summary carries
        the degraded message and the other fields stay empty.
        """
        if not content or len(content.strip()) < MIN_CONTENT_LENGTH:
            raise ValidationError(
                "Content is required and must be at least 10 characters",
                parameter="content",
                expected=f">= {MIN_CONTENT_LENGTH} characters",
            )

        text, source, _ = await self._try_providers(content, CONTENT_ANALYSIS_INSTRUCTION)
        if text is None:
            return ContentAnalysis(summary=DEGRADED_MESSAGE, source_provider=NO_PROVIDER)
        return segment_analysis(text, source_provider=source)
