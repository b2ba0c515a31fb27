"""
Write-once store for classified feedback records.
"""

from typing import List, Optional
import logging

from src.data_access.postgres_client import PostgresClient, Transaction
from src.models.schemas import FeedbackRecord, SourceBreakdown
from src.pipelines.errors import StorageError

logger = logging.getLogger(__name__)


NEGATIVE_THRESHOLD = -0.2
POSITIVE_THRESHOLD = 0.2


class FeedbackSink:
    """Persists one immutable record per ingested feedback item."""

    def __init__(self, client: PostgresClient):
        self.client = client

    def insert(
        self,
        content: str,
        source_type: str,
        category: str,
        sentiment: float,
        weight: float,
        tx: Optional[Transaction] = None
    ) -> FeedbackRecord:
        """
        Insert a feedback record.

        Args:
            content: Original feedback text
            source_type: Channel the feedback came from
            category: Classified category
            sentiment: Classified sentiment in [-1, 1]
            weight: Source weight at ingestion time
            tx: Open transaction to join (a new one is used if None)

        Returns:
            The persisted record, including its id and timestamp
        """
        query = """
            INSERT INTO feedback (content, source_type, category, sentiment_score, weight)
            VALUES (%s, %s, %s, %s, %s)
            RETURNING id, content, source_type, category, sentiment_score, weight, created_at
        """
        params = (content, source_type, category, sentiment, weight)

        if tx is None:
            row = self.client.first(query, params)
        else:
            row = tx.first(query, params)

        if row is None:
            raise StorageError("Feedback insert returned no row")

        return FeedbackRecord(**row)

    def list_feedback(
        self,
        category: Optional[str] = None,
        source: Optional[str] = None,
        limit: int = 100
    ) -> List[FeedbackRecord]:
        """
        Retrieve the most recent feedback records, optionally filtered.

        Args:
            category: Optional filter by category
            source: Optional filter by source type
            limit: Maximum number of records

        Returns:
            Records ordered newest first
        """
        query = """
            SELECT id, content, source_type, category, sentiment_score, weight, created_at
            FROM feedback
            WHERE 1=1
        """
        params = []

        if category:
            query += " AND category = %s"
            params.append(category)

        if source:
            query += " AND source_type = %s"
            params.append(source)

        query += " ORDER BY created_at DESC, id DESC LIMIT %s"
        params.append(limit)

        rows = self.client.all(query, params)
        return [FeedbackRecord(**row) for row in rows]

    def count_feedback(self) -> int:
        row = self.client.first("SELECT COUNT(*) AS count FROM feedback")
        return row["count"] if row else 0

    def count_by_sentiment(self) -> dict:
        """Count clearly negative and clearly positive feedback items."""
        row = self.client.first(
            """
            SELECT
                COUNT(*) FILTER (WHERE sentiment_score < %s) AS negative,
                COUNT(*) FILTER (WHERE sentiment_score > %s) AS positive
            FROM feedback
            """,
            (NEGATIVE_THRESHOLD, POSITIVE_THRESHOLD)
        )
        if not row:
            return {"negative": 0, "positive": 0}
        return {"negative": row["negative"] or 0, "positive": row["positive"] or 0}

    def breakdown_by_source(self) -> List[SourceBreakdown]:
        rows = self.client.all(
            """
            SELECT source_type, COUNT(*) AS count, AVG(sentiment_score) AS avg_sentiment
            FROM feedback
            GROUP BY source_type
            ORDER BY count DESC
            """
        )
        return [SourceBreakdown(**row) for row in rows]
