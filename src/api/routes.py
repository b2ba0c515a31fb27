"""Feedback ingestion and dashboard endpoints."""

from datetime import datetime, timezone
from typing import Any, Optional
import logging

from fastapi import APIRouter, Body, Depends, Query, status
from fastapi.responses import JSONResponse

from src.api.dependencies import get_pipeline
from src.models.schemas import FeedbackInput
from src.pipelines.errors import InvalidFeedbackError
from src.pipelines.ingest import IngestionPipeline
from src.reporting.stats import build_stats

logger = logging.getLogger(__name__)
router = APIRouter()


def error_response(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


@router.get("/health", tags=["health"])
def health() -> dict:
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.post("/feedback", tags=["feedback"])
def submit_feedback(
    request: FeedbackInput,
    pipeline: IngestionPipeline = Depends(get_pipeline),
):
    """Classify one feedback item and fold it into its category bubble."""
    try:
        result = pipeline.ingest(request.content, request.source_type)
    except InvalidFeedbackError as e:
        return error_response(str(e), status.HTTP_400_BAD_REQUEST)
    except Exception as e:
        logger.error(f"Error processing feedback: {e}", exc_info=True)
        return error_response("Failed to process feedback", status.HTTP_500_INTERNAL_SERVER_ERROR)

    return {
        "success": True,
        "feedback": result.feedback.model_dump(mode="json"),
        "analysis": {
            "category": result.classification.category,
            "sentiment": result.classification.sentiment,
            "weight": result.weight,
        },
    }


@router.post("/feedback/batch", tags=["feedback"])
def submit_feedback_batch(
    items: Any = Body(...),
    pipeline: IngestionPipeline = Depends(get_pipeline),
):
    """Process a list of feedback items in order, skipping bad items."""
    if not isinstance(items, list):
        return error_response("Expected array of feedback items", status.HTTP_400_BAD_REQUEST)

    try:
        result = pipeline.ingest_batch(items)
    except Exception as e:
        logger.error(f"Batch error: {e}", exc_info=True)
        return error_response("Failed to process batch", status.HTTP_500_INTERNAL_SERVER_ERROR)

    return {
        "success": True,
        "processed": result.processed,
        "results": [summary.model_dump() for summary in result.results],
    }


@router.get("/bubbles", tags=["bubbles"])
def list_bubbles(pipeline: IngestionPipeline = Depends(get_pipeline)):
    """All category bubbles, heaviest first."""
    try:
        bubbles = pipeline.aggregator.list_bubbles()
    except Exception as e:
        logger.error(f"Error fetching bubbles: {e}", exc_info=True)
        return error_response("Failed to fetch bubbles", status.HTTP_500_INTERNAL_SERVER_ERROR)

    return {"success": True, "bubbles": [b.model_dump(mode="json") for b in bubbles]}


@router.get("/feedback", tags=["feedback"])
def list_feedback(
    category: Optional[str] = Query(default=None),
    source: Optional[str] = Query(default=None),
    pipeline: IngestionPipeline = Depends(get_pipeline),
):
    """The 100 most recent feedback records, optionally filtered."""
    try:
        records = pipeline.sink.list_feedback(category=category, source=source)
    except Exception as e:
        logger.error(f"Error fetching feedback: {e}", exc_info=True)
        return error_response("Failed to fetch feedback", status.HTTP_500_INTERNAL_SERVER_ERROR)

    return {"success": True, "feedback": [r.model_dump(mode="json") for r in records]}


@router.get("/stats", tags=["stats"])
def get_stats(pipeline: IngestionPipeline = Depends(get_pipeline)):
    try:
        stats = build_stats(pipeline.sink, pipeline.aggregator)
    except Exception as e:
        logger.error(f"Error fetching stats: {e}", exc_info=True)
        return error_response("Failed to fetch stats", status.HTTP_500_INTERNAL_SERVER_ERROR)

    return {"success": True, "stats": stats.model_dump(mode="json", by_alias=True)}


@router.delete("/reset", tags=["admin"])
def reset(pipeline: IngestionPipeline = Depends(get_pipeline)):
    try:
        pipeline.client.reset()
    except Exception as e:
        logger.error(f"Error resetting database: {e}", exc_info=True)
        return error_response("Failed to reset", status.HTTP_500_INTERNAL_SERVER_ERROR)

    return {"success": True, "message": "Database reset"}
