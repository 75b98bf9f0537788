"""
EduConnect Services - Shared infrastructure services.

- database: PostgreSQL connection manager with health checks and fallback
- conversation_store: Two-tier chat history (PostgreSQL + local SQLite cache)
- post_store: Posts, likes and saves with atomic counters
- engagement: Trending score and engagement rate
- auth: Bearer token verification
"""

from .database import DatabaseManager, get_database

__all__ = ["DatabaseManager", "get_database"]
