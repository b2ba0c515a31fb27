"""
Dependency injection for FastAPI endpoints.
"""

from functools import lru_cache
from typing import Optional

from src.config.settings import Settings
from src.pipelines.ingest import IngestionPipeline

# Shared pipeline instance (initialized on first request)
_pipeline: Optional[IngestionPipeline] = None


@lru_cache
def get_settings() -> Settings:
    return Settings()


def get_pipeline() -> IngestionPipeline:
    """Get the ingestion pipeline, creating it on first use."""
    global _pipeline

    if _pipeline is None:
        _pipeline = IngestionPipeline(get_settings())

    return _pipeline


def cleanup_dependencies() -> None:
    """Close the database pool held by the shared pipeline."""
    global _pipeline

    if _pipeline is not None:
        _pipeline.client.close()
        _pipeline = None
