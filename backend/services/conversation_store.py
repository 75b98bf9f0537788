"""
Conversation Store - durable per-user chat log with two tiers.

Writes go to the remote store (PostgreSQL) first and to the local SQLite
cache unconditionally afterwards, even when the caller is cancelled while
the remote write is pending. A remote failure is logged and swallowed;
only a local failure escalates, because then the turn is lost for good.

Reads prefer the remote store and fall back to the local cache; a read
fails only when both tiers fail.

Usage:
    store = ConversationStore(LocalTurnCache(path), RemoteTurnStore(db))
    await store.append_exchange(user_id, ChatTurn.user(user_id, q), ChatTurn.assistant(user_id, a))
    turns = await store.history(user_id, limit=50)
"""

import asyncio
import logging
import secrets
import sqlite3
import threading
import time
import weakref
from contextlib import asynccontextmanager, closing
from dataclasses import replace
from pathlib import Path
from typing import AsyncIterator, List, Optional, Tuple

from errors import StoreReadError, StoreWriteError, ValidationError
from logging_config import log_store
from models import ChatTurn, utcnow
from services.database import DatabaseManager

logger = logging.getLogger(__name__)

_TS_FORMAT = "%Y-%m-%dT%H:%M:%S.%f+00:00"


class TurnIdGenerator:
    """Strictly increasing turn ids: zero-padded ns clock plus a random suffix."""

    def __init__(self):
        self._last = 0
        self._lock = threading.Lock()

    def next_id(self) -> str:
        with self._lock:
            now = time.time_ns()
            if now <= self._last:
                now = self._last + 1
            self._last = now
        return f"{now:020d}-{secrets.token_hex(4)}"


class LocalTurnCache:
    """Synchronous SQLite cache of chat turns."""

    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path)
        self._ensure_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_db(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with closing(self._connect()) as conn, conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS chat_turns (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    id TEXT NOT NULL UNIQUE,
                    user_id TEXT NOT NULL,
                    role TEXT NOT NULL,
                    content TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    source_provider TEXT
                )
            """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_turns_user ON chat_turns (user_id, created_at, seq)")

    def insert(self, turn: ChatTurn) -> None:
        with closing(self._connect()) as conn, conn:
            conn.execute(
                "INSERT INTO chat_turns (id, user_id, role, content, created_at, source_provider) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (
                    turn.id,
                    turn.user_id,
                    turn.role,
                    turn.content,
                    turn.created_at.strftime(_TS_FORMAT),
                    turn.source_provider,
                ),
            )

    def history(self, user_id: str, limit: Optional[int] = None) -> List[ChatTurn]:
        with closing(self._connect()) as conn:
            if limit is None:
                rows = conn.execute(
                    "SELECT * FROM chat_turns WHERE user_id = ? ORDER BY created_at, seq",
                    (user_id,),
                ).fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM (SELECT * FROM chat_turns WHERE user_id = ? "
                    "ORDER BY created_at DESC, seq DESC LIMIT ?) ORDER BY created_at, seq",
                    (user_id, limit),
                ).fetchall()
        return [ChatTurn.from_row(row) for row in rows]

    def clear(self, user_id: str) -> int:
        with closing(self._connect()) as conn, conn:
            cursor = conn.execute("DELETE FROM chat_turns WHERE user_id = ?", (user_id,))
            return cursor.rowcount


class RemoteTurnStore:
    """PostgreSQL-backed turn log; raises whenever the database is unreachable."""

    def __init__(self, db: DatabaseManager):
        self._db = db

    @property
    def available(self) -> bool:
        return self._db.available

    async def insert(self, turn: ChatTurn) -> None:
        await self._db.execute(
            "INSERT INTO chat_turns (id, user_id, role, content, created_at, source_provider) "
            "VALUES ($1, $2, $3, $4, $5, $6)",
            turn.id,
            turn.user_id,
            turn.role,
            turn.content,
            turn.created_at,
            turn.source_provider,
        )

    async def history(self, user_id: str, limit: Optional[int] = None) -> List[ChatTurn]:
        if limit is None:
            rows = await self._db.fetch(
                "SELECT * FROM chat_turns WHERE user_id = $1 ORDER BY created_at, seq",
                user_id,
            )
        else:
            rows = await self._db.fetch(
                "SELECT * FROM (SELECT * FROM chat_turns WHERE user_id = $1 "
                "ORDER BY created_at DESC, seq DESC LIMIT $2) recent ORDER BY created_at, seq",
                user_id,
                limit,
            )
        return [ChatTurn.from_row(row) for row in rows]

    async def clear(self, user_id: str) -> None:
        await self._db.execute("DELETE FROM chat_turns WHERE user_id = $1", user_id)


class ExchangeWriter:
    """Appends turns while the owning user's lock is already held."""

    def __init__(self, store: "ConversationStore", user_id: str):
        self._store = store
        self.user_id = user_id

    async def append(self, turn: ChatTurn) -> ChatTurn:
        return await self._store._write(self.user_id, turn)


class ConversationStore:
    """Two-tier chat log (remote authoritative, local cache secondary).

    Appends for one user are serialized by a per-user asyncio.Lock, so a
    (user, assistant) pair written through append_exchange() or exchange()
    is never interleaved with another append for that user.
    """

    def __init__(
        self,
        local: LocalTurnCache,
        remote: Optional[RemoteTurnStore] = None,
        remote_timeout_s: float = 5.0,
        id_generator: Optional[TurnIdGenerator] = None,
    ):
        self._local = local
        self._remote = remote
        self._remote_timeout_s = remote_timeout_s
        self._ids = id_generator or TurnIdGenerator()
        # An entry lives only while some task holds or waits on its lock
        self._user_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    @property
    def remote_enabled(self) -> bool:
        return self._remote is not None

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        lock = self._user_locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._user_locks[user_id] = lock
        return lock

    # === Writes ===

    async def append(self, user_id: str, turn: ChatTurn) -> ChatTurn:
        """Append a single turn and return it with id and created_at stamped."""
        async with self._lock_for(user_id):
            return await self._write(user_id, turn)

    async def append_exchange(
        self, user_id: str, user_turn: ChatTurn, assistant_turn: ChatTurn
    ) -> Tuple[ChatTurn, ChatTurn]:
        """Append a (user, assistant) pair as one non-interleaved unit."""
        async with self._lock_for(user_id):
            stored_user = await self._write(user_id, user_turn)
            stored_assistant = await self._write(user_id, assistant_turn)
        return stored_user, stored_assistant

    @asynccontextmanager
    async def exchange(self, user_id: str) -> AsyncIterator[ExchangeWriter]:
        """Hold the user's append lock for the duration of the block.

        Usage:
            async with store.exchange(user_id) as writer:
                await writer.append(ChatTurn.user(user_id, message))
                ...
                await writer.append(ChatTurn.assistant(user_id, answer, "Perplexity"))
        """
        async with self._lock_for(user_id):
            yield ExchangeWriter(self, user_id)

    async def _write(self, user_id: str, turn: ChatTurn) -> ChatTurn:
        if not user_id:
            raise ValidationError("user_id is required to append a chat turn", parameter="user_id")
        if turn.user_id and turn.user_id != user_id:
            raise ValidationError(
                "Chat turn belongs to a different user",
                parameter="user_id",
                expected=user_id,
                received=turn.user_id,
            )

        stored = replace(turn, user_id=user_id, id=self._ids.next_id(), created_at=utcnow())

        try:
            if self._remote is not None:
                try:
                    await asyncio.wait_for(self._remote.insert(stored), self._remote_timeout_s)
                    log_store(logger, "remote", "append", user=user_id, id=stored.id)
                except Exception as e:
                    logger.warning(
                        f"Remote write failed for turn {stored.id}, kept locally: {str(e) or type(e).__name__}"
                    )
        finally:
            # Runs even when the caller is cancelled mid remote write
            self._write_local(stored)
        return stored

    def _write_local(self, turn: ChatTurn) -> None:
        try:
            self._local.insert(turn)
        except sqlite3.Error as e:
            raise StoreWriteError(
                "Chat turn could not be saved",
                details="The message may not be recoverable after reload",
                tier="local",
                turn_id=turn.id,
            ) from e
        log_store(logger, "local", "append", user=turn.user_id, id=turn.id)

    # === Reads ===

    async def history(self, user_id: str, limit: Optional[int] = None) -> List[ChatTurn]:
        """Turns oldest first; with a limit, only the most recent `limit` turns."""
        if limit is not None and limit <= 0:
            return []

        if self._remote is not None:
            try:
                turns = await asyncio.wait_for(self._remote.history(user_id, limit), self._remote_timeout_s)
                log_store(logger, "remote", "history", user=user_id, count=len(turns))
                return turns
            except Exception as e:
                logger.info(f"Remote history unavailable, reading local cache: {str(e) or type(e).__name__}")

        try:
            turns = self._local.history(user_id, limit)
        except sqlite3.Error as e:
            raise StoreReadError(
                "Chat history could not be loaded",
                details="Neither the remote store nor the local cache answered",
                user_id=user_id,
            ) from e
        log_store(logger, "local", "history", user=user_id, count=len(turns))
        return turns

    async def clear(self, user_id: str) -> int:
        """Delete a user's conversation from both tiers; returns local rows removed."""
        async with self._lock_for(user_id):
            if self._remote is not None:
                try:
                    await asyncio.wait_for(self._remote.clear(user_id), self._remote_timeout_s)
                except Exception as e:
                    logger.warning(f"Remote clear failed for user {user_id}: {str(e) or type(e).__name__}")
            removed = self._local.clear(user_id)
        logger.info(f"Cleared chat history for user {user_id} ({removed} local turns)")
        return removed
