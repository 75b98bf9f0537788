"""
Shared pytest fixtures: conversation stores over temporary SQLite files
and a SQLite-backed post store.
"""

import pytest

from fakes import InMemoryRemote
from services.conversation_store import ConversationStore, LocalTurnCache
from services.post_store import PostStore


@pytest.fixture
def local_cache(tmp_path):
    return LocalTurnCache(tmp_path / "chat_cache.sqlite3")


@pytest.fixture
def store(local_cache):
    """Local-only conversation store."""
    return ConversationStore(local_cache)


@pytest.fixture
def memory_remote():
    return InMemoryRemote()


@pytest.fixture
def dual_store(local_cache, memory_remote):
    return ConversationStore(local_cache, remote=memory_remote, remote_timeout_s=1.0)


@pytest.fixture
def post_store(tmp_path):
    """SQLite-backed post store."""
    return PostStore(tmp_path / "posts.sqlite3")
