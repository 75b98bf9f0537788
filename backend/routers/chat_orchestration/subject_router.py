"""
Subject Router - maps a homework subject to the provider best suited for it.

Case-insensitive substring match against a fixed keyword table; first
matching rule wins. Subjects that match nothing go to the primary provider.
"""

import logging
from typing import Iterable, Tuple

logger = logging.getLogger(__name__)

# (provider, keywords) in match order
SUBJECT_RULES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("Gemini", ("math", "physics", "computer science")),
    ("Perplexity", ("current events", "history", "news", "politics")),
    ("OpenAI", ("literature", "writing", "philosophy")),
)


class SubjectRouter:
    """Static subject -> preferred provider table."""

    def __init__(self, primary_provider: str = "Gemini", rules: Iterable = SUBJECT_RULES):
        self.primary_provider = primary_provider
        self._rules = tuple(rules)

    def preferred_provider(self, subject: str) -> str:
        text = (subject or "").lower()
        for provider, keywords in self._rules:
            if any(keyword in text for keyword in keywords):
                return provider
        return self.primary_provider
