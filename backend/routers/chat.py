"""
EduConnect Chat Router - AI assistant endpoints

Thin handlers over chat_orchestration/:
- /api/chat, /api/chat/homework-help: FallbackOrchestrator.ask
- /api/chat/stream: StreamingRelay over server-sent events
- /api/chat/history, /api/chat/clear: ConversationStore
- /api/content/analyze: FallbackOrchestrator.analyze_content

Collaborators live on app.state (built in main.lifespan) and are reached
through small dependency functions so tests can override them.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel
from sse_starlette.sse import EventSourceResponse

from config import runtime_config
from errors import ProviderUnavailableError, ValidationError, success_response
from services.auth import Principal, require_user
from services.conversation_store import ConversationStore

from .chat_orchestration import FallbackOrchestrator, StreamingRelay

logger = logging.getLogger(__name__)

router = APIRouter()


class ChatRequest(BaseModel):
    message: str


class HomeworkRequest(BaseModel):
    subject: str
    question: str


class StreamRequest(BaseModel):
    message: str
    systemInstruction: Optional[str] = None


class AnalyzeRequest(BaseModel):
    content: str


# =============================================================================
# Dependencies
# =============================================================================


def get_orchestrator(request: Request) -> FallbackOrchestrator:
    return request.app.state.orchestrator


def get_relay(request: Request) -> Optional[StreamingRelay]:
    return getattr(request.app.state, "relay", None)


def get_conversation_store(request: Request) -> ConversationStore:
    return request.app.state.conversation_store


def _require_text(value: Optional[str], parameter: str, message: str) -> str:
    if not value or not value.strip():
        raise ValidationError(message, parameter=parameter)
    return value.strip()


# =============================================================================
# Chat
# =============================================================================


@router.post("/api/chat")
async def chat(
    body: ChatRequest,
    user: Principal = Depends(require_user),
    orchestrator: FallbackOrchestrator = Depends(get_orchestrator),
):
    message = _require_text(body.message, "message", "Message is required")
    answer = await orchestrator.ask(user.user_id, message)
    return success_response(
        message=answer.assistant_turn.to_dict(),
        sourceProvider=answer.source_provider,
        degraded=answer.degraded,
    )


@router.post("/api/chat/homework-help")
async def homework_help(
    body: HomeworkRequest,
    user: Principal = Depends(require_user),
    orchestrator: FallbackOrchestrator = Depends(get_orchestrator),
):
    subject = _require_text(body.subject, "subject", "Subject and question are required")
    question = _require_text(body.question, "question", "Subject and question are required")
    answer = await orchestrator.ask(user.user_id, question, subject=subject)
    return success_response(
        message=answer.assistant_turn.to_dict(),
        sourceProvider=answer.source_provider,
        degraded=answer.degraded,
    )


@router.post("/api/chat/stream")
async def chat_stream(
    body: StreamRequest,
    user: Principal = Depends(require_user),
    relay: Optional[StreamingRelay] = Depends(get_relay),
):
    """Stream one answer as `chunk` events followed by `done` (or one `error`)."""
    message = _require_text(body.message, "message", "Message is required")
    if relay is None:
        raise ProviderUnavailableError(
            "Streaming is not available",
            details="No streaming-capable provider is configured",
            error_type="stream_unsupported",
        )

    async def event_generator():
        async for event in relay.stream(user.user_id, message, body.systemInstruction):
            yield event.to_sse()

    return EventSourceResponse(event_generator())


# =============================================================================
# History
# =============================================================================


@router.get("/api/chat/history")
async def chat_history(
    limit: Optional[int] = Query(None),
    user: Principal = Depends(require_user),
    store: ConversationStore = Depends(get_conversation_store),
):
    if limit is None:
        limit = runtime_config.chat_history_limit
    turns = await store.history(user.user_id, limit)
    return success_response(messages=[t.to_dict() for t in turns])


@router.post("/api/chat/clear")
async def clear_history(
    user: Principal = Depends(require_user),
    store: ConversationStore = Depends(get_conversation_store),
):
    removed = await store.clear(user.user_id)
    return success_response(message="Chat history cleared", removed=removed)


# =============================================================================
# Content analysis
# =============================================================================


@router.post("/api/content/analyze")
async def analyze_content(
    body: AnalyzeRequest,
    user: Principal = Depends(require_user),
    orchestrator: FallbackOrchestrator = Depends(get_orchestrator),
):
    analysis = await orchestrator.analyze_content(body.content)
    return success_response(analysis=analysis.to_dict())
