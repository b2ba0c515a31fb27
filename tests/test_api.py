"""Tests for the feedback REST API endpoints."""
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from src.api.app import create_app
from src.api.dependencies import get_pipeline
from src.models.schemas import (
    BatchItemSummary,
    BatchResult,
    CategoryBubble,
    Classification,
    FeedbackRecord,
    FeedbackStats,
    IngestResult,
    SourceBreakdown,
)
from src.pipelines.errors import InvalidFeedbackError, StorageError
from src.pipelines.ingest import IngestionPipeline


def _make_record(**kwargs) -> FeedbackRecord:
    """Helper to create a FeedbackRecord with sensible defaults."""
    return FeedbackRecord(
        id=kwargs.pop("id", 1),
        content=kwargs.pop("content", "crashes on save"),
        source_type=kwargs.pop("source_type", "github"),
        category=kwargs.pop("category", "Stability"),
        sentiment_score=kwargs.pop("sentiment_score", -0.8),
        weight=kwargs.pop("weight", 0.8),
        created_at=kwargs.pop("created_at", datetime(2026, 2, 5, 10, 0, 0, tzinfo=timezone.utc)),
    )


def _make_bubble(category="Stability", total_weight=1.3, avg_sentiment=-0.4, feedback_count=2) -> CategoryBubble:
    return CategoryBubble(
        category=category,
        total_weight=total_weight,
        avg_sentiment=avg_sentiment,
        feedback_count=feedback_count,
    )


@pytest.fixture
def mock_pipeline():
    """IngestionPipeline double with mocked collaborators."""
    pipeline = MagicMock(spec=IngestionPipeline)
    pipeline.sink = MagicMock()
    pipeline.aggregator = MagicMock()
    pipeline.client = MagicMock()
    return pipeline


@pytest.fixture
def client(test_config, mock_pipeline):
    """FastAPI TestClient with the pipeline dependency overridden."""
    with patch('src.api.app.get_settings', return_value=test_config):
        app = create_app()

    app.dependency_overrides[get_pipeline] = lambda: mock_pipeline

    with patch('src.api.app.cleanup_dependencies'):
        with TestClient(app) as c:
            yield c

    app.dependency_overrides.clear()


class TestHealth:

    def test_health(self, client):
        resp = client.get("/api/health")

        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"


class TestSubmitFeedback:
    """Tests for POST /api/feedback."""

    def test_submit_success(self, client, mock_pipeline):
        mock_pipeline.ingest.return_value = IngestResult(
            feedback=_make_record(),
            classification=Classification(category="Stability", sentiment=-0.8),
            weight=0.8,
        )

        resp = client.post("/api/feedback", json={"content": "crashes on save", "source_type": "github"})

        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert data["feedback"]["id"] == 1
        assert data["feedback"]["category"] == "Stability"
        assert data["analysis"] == {"category": "Stability", "sentiment": -0.8, "weight": 0.8}
        mock_pipeline.ingest.assert_called_once_with("crashes on save", "github")

    def test_submit_missing_fields(self, client, mock_pipeline):
        mock_pipeline.ingest.side_effect = InvalidFeedbackError("Missing content or source_type")

        resp = client.post("/api/feedback", json={"source_type": "github"})

        assert resp.status_code == 400
        assert resp.json() == {"success": False, "error": "Missing content or source_type"}

    def test_submit_malformed_body(self, client, mock_pipeline):
        resp = client.post("/api/feedback", json=["not", "an", "object"])

        assert resp.status_code == 400
        assert resp.json()["success"] is False
        mock_pipeline.ingest.assert_not_called()

    def test_submit_storage_failure(self, client, mock_pipeline):
        mock_pipeline.ingest.side_effect = StorageError("connection refused")

        resp = client.post("/api/feedback", json={"content": "crashes on save", "source_type": "github"})

        assert resp.status_code == 500
        assert resp.json() == {"success": False, "error": "Failed to process feedback"}


class TestSubmitBatch:
    """Tests for POST /api/feedback/batch."""

    def test_batch_success(self, client, mock_pipeline):
        mock_pipeline.ingest_batch.return_value = BatchResult(
            processed=2,
            skipped=1,
            results=[
                BatchItemSummary(content="crashes on save", category="Stability", sentiment=-0.8, weight=0.8),
                BatchItemSummary(content="love it", category="Praise", sentiment=0.9, weight=0.6),
            ],
        )
        items = [
            {"content": "crashes on save", "source_type": "github"},
            {"source_type": "ticket"},
            {"content": "love it", "source_type": "twitter"},
        ]

        resp = client.post("/api/feedback/batch", json=items)

        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert data["processed"] == 2
        assert [r["category"] for r in data["results"]] == ["Stability", "Praise"]
        mock_pipeline.ingest_batch.assert_called_once_with(items)

    def test_batch_requires_array(self, client, mock_pipeline):
        resp = client.post("/api/feedback/batch", json={"content": "x", "source_type": "github"})

        assert resp.status_code == 400
        assert resp.json() == {"success": False, "error": "Expected array of feedback items"}
        mock_pipeline.ingest_batch.assert_not_called()


class TestReadEndpoints:
    """Tests for bubbles, feedback listing and stats."""

    def test_list_bubbles(self, client, mock_pipeline):
        mock_pipeline.aggregator.list_bubbles.return_value = [_make_bubble(), _make_bubble("Docs", 0.4, 0.2, 1)]

        resp = client.get("/api/bubbles")

        assert resp.status_code == 200
        assert [b["category"] for b in resp.json()["bubbles"]] == ["Stability", "Docs"]

    def test_list_bubbles_failure(self, client, mock_pipeline):
        mock_pipeline.aggregator.list_bubbles.side_effect = StorageError("timeout")

        resp = client.get("/api/bubbles")

        assert resp.status_code == 500
        assert resp.json() == {"success": False, "error": "Failed to fetch bubbles"}

    def test_list_feedback_with_filters(self, client, mock_pipeline):
        mock_pipeline.sink.list_feedback.return_value = [_make_record()]

        resp = client.get("/api/feedback", params={"category": "Stability", "source": "github"})

        assert resp.status_code == 200
        assert resp.json()["feedback"][0]["content"] == "crashes on save"
        mock_pipeline.sink.list_feedback.assert_called_once_with(category="Stability", source="github")

    @patch('src.api.routes.build_stats')
    def test_stats(self, mock_build_stats, client, mock_pipeline):
        mock_build_stats.return_value = FeedbackStats(
            total_feedback=3,
            negative_feedback_count=2,
            positive_feedback_count=1,
            action_suggestions=0,
            by_source=[SourceBreakdown(source_type="github", count=3, avg_sentiment=-0.2)],
            top_pain_points=[_make_bubble()],
            top_praise=[],
        )

        resp = client.get("/api/stats")

        assert resp.status_code == 200
        stats = resp.json()["stats"]
        assert stats["totalFeedback"] == 3
        assert stats["negativeFeedbackCount"] == 2
        assert stats["bySource"][0] == {"source_type": "github", "count": 3, "avg_sentiment": -0.2}
        assert stats["topPainPoints"][0]["category"] == "Stability"
        assert stats["topPainPoints"][0]["total_weight"] == 1.3
        assert stats["topPraise"] == []
        assert "total_feedback" not in stats
        mock_build_stats.assert_called_once_with(mock_pipeline.sink, mock_pipeline.aggregator)

    def test_reset(self, client, mock_pipeline):
        resp = client.delete("/api/reset")

        assert resp.status_code == 200
        assert resp.json()["success"] is True
        mock_pipeline.client.reset.assert_called_once()
