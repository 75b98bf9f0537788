"""
Post Store - posts, likes, saves, views and comments.

Backed by PostgreSQL when the remote store is available at startup,
otherwise by a local SQLite database. Both backends enforce one like/save
per (user, post) with a UNIQUE constraint and change counters with atomic
`SET likes = likes + 1` updates inside the same transaction, so concurrent
likes never lose an update and a double like is rejected, not double counted.
"""

import asyncio
import logging
import sqlite3
from contextlib import closing, contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

import asyncpg

from errors import ConflictError, NotFoundError, ValidationError
from models import Post, VISIBILITIES, utcnow
from services.database import DatabaseManager
from services.engagement import SCORE_SQL, EngagementRanker

logger = logging.getLogger(__name__)

_TS_FORMAT = "%Y-%m-%dT%H:%M:%S.%f+00:00"

# kind -> (interaction table, counter column)
_INTERACTIONS = {
    "like": ("post_likes", "likes"),
    "save": ("post_saves", "saves"),
}


def _interaction(kind: str) -> tuple:
    if kind not in _INTERACTIONS:
        raise ValidationError(f"Unknown interaction: {kind}", parameter="kind", expected="like|save")
    return _INTERACTIONS[kind]


def _not_found(post_id: int) -> NotFoundError:
    return NotFoundError("Post not found", resource_type="post", resource_id=post_id)


def _detail(row: Any) -> Dict[str, Any]:
    created = row["created_at"]
    return {
        "id": row["id"],
        "userId": row["user_id"],
        "createdAt": created.isoformat() if hasattr(created, "isoformat") else created,
    }


class SqlitePostBackend:
    """Synchronous SQLite backend; PostStore runs it in a worker thread."""

    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path)
        self._ensure_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=10.0, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _write_txn(self) -> Iterator[sqlite3.Connection]:
        """BEGIN IMMEDIATE takes the write lock up front, serializing writers."""
        with closing(self._connect()) as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")

    def _ensure_db(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with closing(self._connect()) as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS posts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    author_id TEXT NOT NULL,
                    title TEXT NOT NULL DEFAULT '',
                    subject TEXT NOT NULL DEFAULT '',
                    content TEXT NOT NULL DEFAULT '',
                    visibility TEXT NOT NULL DEFAULT 'public',
                    views INTEGER NOT NULL DEFAULT 0 CHECK (views >= 0),
                    likes INTEGER NOT NULL DEFAULT 0 CHECK (likes >= 0),
                    saves INTEGER NOT NULL DEFAULT 0 CHECK (saves >= 0),
                    comments INTEGER NOT NULL DEFAULT 0 CHECK (comments >= 0),
                    created_at TEXT NOT NULL
                );
                CREATE TABLE IF NOT EXISTS post_likes (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    post_id INTEGER NOT NULL REFERENCES posts (id) ON DELETE CASCADE,
                    created_at TEXT NOT NULL,
                    UNIQUE (user_id, post_id)
                );
                CREATE TABLE IF NOT EXISTS post_saves (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    post_id INTEGER NOT NULL REFERENCES posts (id) ON DELETE CASCADE,
                    created_at TEXT NOT NULL,
                    UNIQUE (user_id, post_id)
                );
                """
            )

    def insert_post(self, author_id: str, title: str, subject: str, content: str, visibility: str) -> Post:
        with self._write_txn() as conn:
            cursor = conn.execute(
                "INSERT INTO posts (author_id, title, subject, content, visibility, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (author_id, title, subject, content, visibility, utcnow().strftime(_TS_FORMAT)),
            )
            row = conn.execute("SELECT * FROM posts WHERE id = ?", (cursor.lastrowid,)).fetchone()
        return Post.from_row(row)

    def get_post(self, post_id: int) -> Optional[Post]:
        with closing(self._connect()) as conn:
            row = conn.execute("SELECT * FROM posts WHERE id = ?", (post_id,)).fetchone()
        return Post.from_row(row) if row else None

    def list_posts(self, author_id: Optional[str], public_only: bool, limit: int) -> List[Post]:
        clauses, params = [], []
        if author_id is not None:
            clauses.append("author_id = ?")
            params.append(author_id)
        if public_only:
            clauses.append("visibility = 'public'")
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        with closing(self._connect()) as conn:
            rows = conn.execute(
                f"SELECT * FROM posts {where} ORDER BY created_at DESC, id DESC LIMIT ?",
                (*params, limit),
            ).fetchall()
        return [Post.from_row(r) for r in rows]

    def delete_post(self, post_id: int) -> bool:
        with self._write_txn() as conn:
            cursor = conn.execute("DELETE FROM posts WHERE id = ?", (post_id,))
            return cursor.rowcount == 1

    def increment(self, post_id: int, column: str) -> Optional[Post]:
        with self._write_txn() as conn:
            conn.execute(f"UPDATE posts SET {column} = {column} + 1 WHERE id = ?", (post_id,))
            row = conn.execute("SELECT * FROM posts WHERE id = ?", (post_id,)).fetchone()
        return Post.from_row(row) if row else None

    def add_interaction(self, kind: str, user_id: str, post_id: int) -> bool:
        table, column = _interaction(kind)
        with self._write_txn() as conn:
            if conn.execute("SELECT 1 FROM posts WHERE id = ?", (post_id,)).fetchone() is None:
                raise _not_found(post_id)
            cursor = conn.execute(
                f"INSERT OR IGNORE INTO {table} (user_id, post_id, created_at) VALUES (?, ?, ?)",
                (user_id, post_id, utcnow().strftime(_TS_FORMAT)),
            )
            if cursor.rowcount != 1:
                return False
            conn.execute(f"UPDATE posts SET {column} = {column} + 1 WHERE id = ?", (post_id,))
            return True

    def remove_interaction(self, kind: str, user_id: str, post_id: int) -> bool:
        table, column = _interaction(kind)
        with self._write_txn() as conn:
            cursor = conn.execute(f"DELETE FROM {table} WHERE user_id = ? AND post_id = ?", (user_id, post_id))
            if cursor.rowcount != 1:
                return False
            conn.execute(
                f"UPDATE posts SET {column} = {column} - 1 WHERE id = ? AND {column} > 0",
                (post_id,),
            )
            return True

    def top_public(self, limit: int) -> List[Post]:
        with closing(self._connect()) as conn:
            rows = conn.execute(
                f"SELECT * FROM posts WHERE visibility = 'public' "
                f"ORDER BY {SCORE_SQL} DESC, created_at DESC, id DESC LIMIT ?",
                (limit,),
            ).fetchall()
        return [Post.from_row(r) for r in rows]

    def interaction_details(self, kind: str, post_id: int) -> List[Dict[str, Any]]:
        table, _ = _interaction(kind)
        with closing(self._connect()) as conn:
            rows = conn.execute(
                f"SELECT id, user_id, created_at FROM {table} WHERE post_id = ? ORDER BY created_at DESC, id DESC",
                (post_id,),
            ).fetchall()
        return [_detail(r) for r in rows]


class PostgresPostBackend:
    """Async backend over the shared DatabaseManager pool."""

    def __init__(self, db: DatabaseManager):
        self._db = db

    async def insert_post(self, author_id: str, title: str, subject: str, content: str, visibility: str) -> Post:
        row = await self._db.fetchrow(
            "INSERT INTO posts (author_id, title, subject, content, visibility) "
            "VALUES ($1, $2, $3, $4, $5) RETURNING *",
            author_id, title, subject, content, visibility,
        )
        return Post.from_row(row)

    async def get_post(self, post_id: int) -> Optional[Post]:
        row = await self._db.fetchrow("SELECT * FROM posts WHERE id = $1", post_id)
        return Post.from_row(row) if row else None

    async def list_posts(self, author_id: Optional[str], public_only: bool, limit: int) -> List[Post]:
        clauses, params = [], []
        if author_id is not None:
            params.append(author_id)
            clauses.append(f"author_id = ${len(params)}")
        if public_only:
            clauses.append("visibility = 'public'")
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        params.append(limit)
        rows = await self._db.fetch(
            f"SELECT * FROM posts {where} ORDER BY created_at DESC, id DESC LIMIT ${len(params)}",
            *params,
        )
        return [Post.from_row(r) for r in rows]

    async def delete_post(self, post_id: int) -> bool:
        row = await self._db.fetchrow("DELETE FROM posts WHERE id = $1 RETURNING id", post_id)
        return row is not None

    async def increment(self, post_id: int, column: str) -> Optional[Post]:
        row = await self._db.fetchrow(
            f"UPDATE posts SET {column} = {column} + 1 WHERE id = $1 RETURNING *", post_id
        )
        return Post.from_row(row) if row else None

    async def add_interaction(self, kind: str, user_id: str, post_id: int) -> bool:
        table, column = _interaction(kind)
        try:
            async with self._db.transaction() as conn:
                if await conn.fetchval("SELECT 1 FROM posts WHERE id = $1 FOR UPDATE", post_id) is None:
                    raise _not_found(post_id)
                inserted = await conn.fetchval(
                    f"INSERT INTO {table} (user_id, post_id) VALUES ($1, $2) "
                    "ON CONFLICT (user_id, post_id) DO NOTHING RETURNING id",
                    user_id, post_id,
                )
                if inserted is None:
                    return False
                await conn.execute(f"UPDATE posts SET {column} = {column} + 1 WHERE id = $1", post_id)
                return True
        except asyncpg.ForeignKeyViolationError as e:
            # Post deleted between the existence check and the insert
            raise _not_found(post_id) from e

    async def remove_interaction(self, kind: str, user_id: str, post_id: int) -> bool:
        table, column = _interaction(kind)
        async with self._db.transaction() as conn:
            deleted = await conn.fetchval(
                f"DELETE FROM {table} WHERE user_id = $1 AND post_id = $2 RETURNING id", user_id, post_id
            )
            if deleted is None:
                return False
            await conn.execute(
                f"UPDATE posts SET {column} = {column} - 1 WHERE id = $1 AND {column} > 0", post_id
            )
            return True

    async def top_public(self, limit: int) -> List[Post]:
        rows = await self._db.fetch(
            f"SELECT * FROM posts WHERE visibility = 'public' "
            f"ORDER BY {SCORE_SQL} DESC, created_at DESC, id DESC LIMIT $1",
            limit,
        )
        return [Post.from_row(r) for r in rows]

    async def interaction_details(self, kind: str, post_id: int) -> List[Dict[str, Any]]:
        table, _ = _interaction(kind)
        rows = await self._db.fetch(
            f"SELECT id, user_id, created_at FROM {table} WHERE post_id = $1 ORDER BY created_at DESC, id DESC",
            post_id,
        )
        return [_detail(r) for r in rows]


class PostStore:
    """Posts and their interaction counters.

    Args:
        db_path: SQLite file used when PostgreSQL is not available
        db: Database manager; its availability at construction picks the backend
        ranker: Engagement ranker used for trending and metrics
        trending_limit: Default size of the trending list
    """

    def __init__(
        self,
        db_path: Path | str,
        db: Optional[DatabaseManager] = None,
        ranker: Optional[EngagementRanker] = None,
        trending_limit: int = 10,
    ):
        self.ranker = ranker or EngagementRanker()
        self.trending_limit = trending_limit
        self._pg: Optional[PostgresPostBackend] = None
        self._sqlite: Optional[SqlitePostBackend] = None
        if db is not None and db.available:
            self._pg = PostgresPostBackend(db)
            logger.info("Post store using PostgreSQL")
        else:
            self._sqlite = SqlitePostBackend(db_path)
            logger.info(f"Post store using SQLite at {db_path}")

    @property
    def mode(self) -> str:
        return "postgresql" if self._pg else "sqlite"

    async def _call(self, method: str, *args) -> Any:
        if self._pg is not None:
            return await getattr(self._pg, method)(*args)
        return await asyncio.to_thread(getattr(self._sqlite, method), *args)

    # === Posts ===

    async def create_post(
        self,
        author_id: str,
        content: str,
        title: str = "",
        subject: str = "",
        visibility: str = "public",
    ) -> Post:
        if not content or not content.strip():
            raise ValidationError("Post content is required", parameter="content")
        if visibility not in VISIBILITIES:
            raise ValidationError(
                "Invalid visibility",
                parameter="visibility",
                expected="|".join(VISIBILITIES),
                received=visibility,
            )
        post = await self._call("insert_post", author_id, title, subject, content, visibility)
        logger.info(f"Post {post.id} created by {author_id} ({visibility})")
        return post

    async def get_post(self, post_id: int) -> Post:
        post = await self._call("get_post", post_id)
        if post is None:
            raise _not_found(post_id)
        return post

    async def list_posts(
        self, author_id: Optional[str] = None, public_only: bool = True, limit: int = 50
    ) -> List[Post]:
        return await self._call("list_posts", author_id, public_only, limit)

    async def delete_post(self, post_id: int) -> None:
        """Delete a post; its likes and saves cascade with it."""
        if not await self._call("delete_post", post_id):
            raise _not_found(post_id)
        logger.info(f"Post {post_id} deleted")

    # === Counters ===

    async def record_view(self, post_id: int) -> Post:
        return await self._increment(post_id, "views")

    async def record_comment(self, post_id: int) -> Post:
        return await self._increment(post_id, "comments")

    async def _increment(self, post_id: int, column: str) -> Post:
        post = await self._call("increment", post_id, column)
        if post is None:
            raise _not_found(post_id)
        return post

    # === Likes / saves ===

    async def like(self, user_id: str, post_id: int) -> Post:
        """Like a post once; a repeat raises ConflictError."""
        if not await self._call("add_interaction", "like", user_id, post_id):
            raise ConflictError("Post already liked", interaction="like", post_id=post_id)
        return await self.get_post(post_id)

    async def unlike(self, user_id: str, post_id: int) -> bool:
        return await self._call("remove_interaction", "like", user_id, post_id)

    async def save(self, user_id: str, post_id: int) -> Post:
        """Save a post once; a repeat raises ConflictError."""
        if not await self._call("add_interaction", "save", user_id, post_id):
            raise ConflictError("Post already saved", interaction="save", post_id=post_id)
        return await self.get_post(post_id)

    async def unsave(self, user_id: str, post_id: int) -> bool:
        return await self._call("remove_interaction", "save", user_id, post_id)

    # === Ranking ===

    async def trending(self, limit: Optional[int] = None) -> List[Post]:
        limit = self.trending_limit if limit is None else limit
        if limit <= 0:
            return []
        candidates = await self._call("top_public", limit)
        return self.ranker.rank_trending(candidates, limit)

    async def engagement_metrics(self, post_id: int) -> Dict[str, Any]:
        post = await self.get_post(post_id)
        return {
            "post": post.to_dict(),
            "likeDetails": await self._call("interaction_details", "like", post_id),
            "saveDetails": await self._call("interaction_details", "save", post_id),
            "engagementRate": self.ranker.engagement_rate(post),
            "trendingScore": self.ranker.trending_score(post),
            "interactionBreakdown": self.ranker.interaction_breakdown(post),
        }
