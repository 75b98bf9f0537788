"""
EduConnect Streaming Relay - forwards a provider's answer chunk by chunk

Flow for one streamed question:
1. Take the user's append lock and persist the user turn
2. Forward provider chunks as they arrive (no buffering)
3. On completion persist the assembled answer, then emit "done"

A failure before the first chunk yields one "error" event. A failure after
it just ends the stream: no "done", nothing more persisted, and the caller
treats the incomplete stream as failed. A caller abandoning the stream
closes the provider connection; the user turn stays in history.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional

from errors import StoreWriteError, StreamInterruptedError, ValidationError, log_error
from logging_config import log_message_in
from models import ChatTurn
from providers.base import ProviderClient
from services.conversation_store import ConversationStore

from .prompts import CHAT_SYSTEM_INSTRUCTION, DEGRADED_MESSAGE

logger = logging.getLogger(__name__)

EVENT_CHUNK = "chunk"
EVENT_ERROR = "error"
EVENT_DONE = "done"


@dataclass
class RelayEvent:
    """One event on the relay stream."""

    type: str
    data: Dict[str, Any]

    def to_sse(self) -> Dict[str, str]:
        """Shape expected by sse_starlette's EventSourceResponse."""
        return {"event": self.type, "data": json.dumps(self.data)}


class StreamingRelay:
    """Relays one provider's streaming answer and persists the exchange."""

    def __init__(self, provider: ProviderClient, store: ConversationStore, chunk_timeout_s: Optional[float] = None):
        self.provider = provider
        self.store = store
        # Longest wait for the next chunk
        self.chunk_timeout_s = chunk_timeout_s or provider.timeout

    async def stream(
        self, user_id: str, message: str, system_instruction: Optional[str] = None
    ) -> AsyncIterator[RelayEvent]:
        if not user_id:
            raise ValidationError("user_id is required", parameter="user_id")
        if not message or not message.strip():
            raise ValidationError("Message is required", parameter="message")

        name = self.provider.provider_name
        log_message_in(logger, message, user=user_id, stream=name)

        async with self.store.exchange(user_id) as writer:
            await writer.append(ChatTurn.user(user_id, message))

            chunks: List[str] = []
            start = time.perf_counter()
            provider_stream = self.provider.stream(message, system_instruction or CHAT_SYSTEM_INSTRUCTION)
            try:
                while True:
                    try:
                        chunk = await asyncio.wait_for(anext(provider_stream), self.chunk_timeout_s)
                    except StopAsyncIteration:
                        break
                    chunks.append(chunk)
                    yield RelayEvent(EVENT_CHUNK, {"content": chunk})
            except Exception as e:
                if not chunks:
                    logger.warning(f"[STREAM] {name} failed before first chunk: {str(e) or type(e).__name__}")
                    yield RelayEvent(EVENT_ERROR, {"message": DEGRADED_MESSAGE})
                else:
                    log_error(
                        logger,
                        StreamInterruptedError(
                            f"{name} stream interrupted after {len(chunks)} chunks",
                            details=str(e) or type(e).__name__,
                        ),
                        context="STREAM",
                        include_traceback=False,
                    )
                return
            finally:
                await provider_stream.aclose()

            if not chunks:
                logger.warning(f"[STREAM] {name} completed without content")
                yield RelayEvent(EVENT_ERROR, {"message": DEGRADED_MESSAGE})
                return

            answer = "".join(chunks)
            try:
                assistant_turn = await writer.append(ChatTurn.assistant(user_id, answer, name))
            except StoreWriteError as e:
                log_error(logger, e, context="STREAM")
                yield RelayEvent(EVENT_ERROR, {"message": e.message, "details": e.details})
                return

        elapsed = time.perf_counter() - start
        logger.info(f"[STREAM] {name}: {len(chunks)} chunks, {len(answer)} chars in {elapsed:.1f}s")
        yield RelayEvent(
            EVENT_DONE,
            {"id": assistant_turn.id, "sourceProvider": name, "content": answer},
        )
