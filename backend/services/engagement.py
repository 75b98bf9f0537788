"""
Engagement ranking - trending score and engagement rate for posts.

Pure functions over a post's counters; nothing here reads or writes storage.
"""

from datetime import datetime, timezone
from typing import Iterable, List, Optional

from models import Post

# Fixed policy: a save signals more intent than a like, a like more than a view
VIEW_WEIGHT = 1
LIKE_WEIGHT = 2
SAVE_WEIGHT = 3

DEFAULT_TRENDING_LIMIT = 10

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)

# Same weights as trending_score(), for stores that pre-sort in SQL
SCORE_SQL = f"(views * {VIEW_WEIGHT} + likes * {LIKE_WEIGHT} + saves * {SAVE_WEIGHT})"


class EngagementRanker:
    """Scores and ranks posts for the trending feed."""

    @staticmethod
    def trending_score(post: Post) -> int:
        return post.views * VIEW_WEIGHT + post.likes * LIKE_WEIGHT + post.saves * SAVE_WEIGHT

    @staticmethod
    def engagement_rate(post: Post) -> float:
        """Interactions as a percentage of views (floored at one view), 2 dp."""
        interactions = post.likes + post.saves + post.comments
        return round(interactions / max(post.views, 1) * 100, 2)

    def rank_trending(self, posts: Iterable[Post], limit: Optional[int] = DEFAULT_TRENDING_LIMIT) -> List[Post]:
        """Public posts by score descending, newest first on ties."""
        public = [p for p in posts if p.is_public]
        public.sort(
            key=lambda p: (self.trending_score(p), p.created_at or _EPOCH),
            reverse=True,
        )
        if limit is None:
            return public
        return public[: max(limit, 0)]

    @staticmethod
    def interaction_breakdown(post: Post) -> dict:
        return {
            "likes": post.likes,
            "saves": post.saves,
            "comments": post.comments,
            "views": post.views,
        }
