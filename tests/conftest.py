"""Shared fixtures for the feedback pipeline tests."""
import threading
from datetime import datetime, timezone
from typing import Dict, List

import pytest

from src.aggregation.bubble_aggregator import apply_bubble_update
from src.config.settings import Settings
from src.models.schemas import CategoryBubble, FeedbackRecord


@pytest.fixture
def test_config():
    """Settings with dummy connection values and no .env lookup."""
    return Settings(
        _env_file=None,
        openai_api_key="test-api-key",
        openai_llm_model="gpt-4o-mini",
        openai_max_retries=3,
        postgres_host="localhost",
        postgres_database="feedback_test",
        postgres_username="test-user",
        postgres_password="test-pass",
        postgres_sslmode="disable",
    )


class RecordingSink:
    """Sink double that keeps inserted records in memory."""

    def __init__(self):
        self.records: List[FeedbackRecord] = []
        self._lock = threading.Lock()

    def insert(self, content, source_type, category, sentiment, weight, tx=None):
        with self._lock:
            record = FeedbackRecord(
                id=len(self.records) + 1,
                content=content,
                source_type=source_type,
                category=category,
                sentiment_score=sentiment,
                weight=weight,
                created_at=datetime.now(timezone.utc),
            )
            self.records.append(record)
            return record


class RecordingAggregator:
    """Aggregator double that applies each upsert atomically, like the database row lock."""

    def __init__(self):
        self.bubbles: Dict[str, CategoryBubble] = {}
        self.upserts = 0
        self._lock = threading.Lock()

    def upsert(self, category, weight, sentiment, tx=None):
        with self._lock:
            self.bubbles[category] = apply_bubble_update(
                self.bubbles.get(category), category, weight, sentiment
            )
            self.upserts += 1


@pytest.fixture
def recording_sink():
    return RecordingSink()


@pytest.fixture
def recording_aggregator():
    return RecordingAggregator()
