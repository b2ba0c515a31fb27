"""
Per-category running aggregates ("bubbles").

Each classified item contributes its weight to ``total_weight`` and its
sentiment to an unweighted running mean. The update is a single upsert so
concurrent writers into the same category serialize on the bubble row inside
PostgreSQL.
"""

from datetime import datetime, timezone
from typing import List, Optional
import logging

from src.data_access.postgres_client import PostgresClient, Transaction
from src.models.schemas import CategoryBubble

logger = logging.getLogger(__name__)


UPSERT_BUBBLE_SQL = """
    INSERT INTO bubbles (category, total_weight, avg_sentiment, feedback_count, updated_at)
    VALUES (%s, %s, %s, 1, NOW())
    ON CONFLICT (category) DO UPDATE SET
        total_weight = bubbles.total_weight + EXCLUDED.total_weight,
        avg_sentiment = (bubbles.avg_sentiment * bubbles.feedback_count + EXCLUDED.avg_sentiment)
            / (bubbles.feedback_count + 1),
        feedback_count = bubbles.feedback_count + 1,
        updated_at = NOW()
"""

BUBBLE_COLUMNS = "category, total_weight, avg_sentiment, feedback_count, action_summary, build_ideas, updated_at"


def apply_bubble_update(
    bubble: Optional[CategoryBubble],
    category: str,
    weight: float,
    sentiment: float
) -> CategoryBubble:
    """
    Reference form of the UPSERT_BUBBLE_SQL recurrence for one classified item.

    Args:
        bubble: Current aggregate, or None when the category is new
        category: Category of the item
        weight: Source weight of the item
        sentiment: Sentiment of the item

    Returns:
        The updated aggregate
    """
    now = datetime.now(timezone.utc)
    if bubble is None:
        return CategoryBubble(
            category=category,
            total_weight=weight,
            avg_sentiment=sentiment,
            feedback_count=1,
            updated_at=now
        )

    count = bubble.feedback_count
    return bubble.model_copy(update={
        "total_weight": bubble.total_weight + weight,
        "avg_sentiment": (bubble.avg_sentiment * count + sentiment) / (count + 1),
        "feedback_count": count + 1,
        "updated_at": now,
    })


class BubbleAggregator:
    """Maintains and reads the per-category aggregates."""

    def __init__(self, client: PostgresClient):
        self.client = client

    def upsert(
        self,
        category: str,
        weight: float,
        sentiment: float,
        tx: Optional[Transaction] = None
    ) -> None:
        """Add one classified item to its category's bubble, creating it if needed."""
        params = (category, weight, sentiment)
        if tx is None:
            self.client.run(UPSERT_BUBBLE_SQL, params)
        else:
            tx.run(UPSERT_BUBBLE_SQL, params)
        logger.debug(f"Upserted bubble '{category}' (weight={weight}, sentiment={sentiment})")

    def list_bubbles(self) -> List[CategoryBubble]:
        """Return every bubble, heaviest first."""
        rows = self.client.all(
            f"SELECT {BUBBLE_COLUMNS} FROM bubbles ORDER BY total_weight DESC"
        )
        return [CategoryBubble(**row) for row in rows]

    def top_pain_points(self, limit: int = 5) -> List[CategoryBubble]:
        """Heaviest bubbles with negative average sentiment."""
        rows = self.client.all(
            f"""
            SELECT {BUBBLE_COLUMNS} FROM bubbles
            WHERE avg_sentiment < 0
            ORDER BY total_weight DESC
            LIMIT %s
            """,
            (limit,)
        )
        return [CategoryBubble(**row) for row in rows]

    def top_praise(self, limit: int = 5) -> List[CategoryBubble]:
        """Heaviest bubbles with positive average sentiment."""
        rows = self.client.all(
            f"""
            SELECT {BUBBLE_COLUMNS} FROM bubbles
            WHERE avg_sentiment > 0
            ORDER BY total_weight DESC
            LIMIT %s
            """,
            (limit,)
        )
        return [CategoryBubble(**row) for row in rows]

    def count_action_suggestions(self) -> int:
        """Number of bubbles that carry analyst build ideas."""
        row = self.client.first(
            "SELECT COUNT(*) AS count FROM bubbles WHERE build_ideas IS NOT NULL AND build_ideas <> ''"
        )
        return row["count"] if row else 0
