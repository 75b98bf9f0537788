"""
EduConnect Chat Orchestration - AI answering components

Components:
- FallbackOrchestrator: Tries providers in priority order, attributes and persists answers
- SubjectRouter: Static subject -> preferred provider table
- StreamingRelay: Chunk-by-chunk relay of one provider's answer
- ContentAnalysis / segment_analysis: Best-effort parsing of analyst output

FALLBACK LOGIC (important!):
    1. Subject supplied -> preferred provider first, then the default order
    2. Provider error or timeout -> next provider (logged as a ProviderAttempt)
    3. Every provider failed -> fixed degraded answer, source "none"

    The user always gets a turn to display and the exchange is always stored.
"""

from .content_analysis import ContentAnalysis, segment_analysis
from .orchestrator import FallbackOrchestrator, OrchestratedAnswer, ProviderAttempt
from .streaming import RelayEvent, StreamingRelay
from .subject_router import SubjectRouter

__all__ = [
    "ContentAnalysis",
    "segment_analysis",
    "FallbackOrchestrator",
    "OrchestratedAnswer",
    "ProviderAttempt",
    "RelayEvent",
    "StreamingRelay",
    "SubjectRouter",
]
