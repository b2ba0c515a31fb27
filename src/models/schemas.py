from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import Optional, List
from enum import Enum


UNCATEGORIZED = "Uncategorized"


class SourceType(str, Enum):
    """Known feedback channels."""
    TICKET = "ticket"
    GITHUB = "github"
    DISCORD = "discord"
    FORUM = "forum"
    TWITTER = "twitter"
    EMAIL = "email"


class FeedbackInput(BaseModel):
    """A submitted feedback item, before validation."""
    content: Optional[str] = None
    source_type: Optional[str] = None


class FeedbackRecord(BaseModel):
    """Classified feedback item as persisted."""
    model_config = ConfigDict(frozen=True)

    id: int
    content: str
    source_type: str
    category: str
    sentiment_score: float = Field(..., ge=-1.0, le=1.0)
    weight: float = Field(..., ge=0.0, le=1.0)
    created_at: datetime


class CategoryBubble(BaseModel):
    """Running aggregate for one category."""
    category: str
    total_weight: float
    avg_sentiment: float = Field(..., ge=-1.0, le=1.0)
    feedback_count: int
    action_summary: Optional[str] = None
    build_ideas: Optional[str] = None
    updated_at: Optional[datetime] = None


class Classification(BaseModel):
    """Category and sentiment derived from feedback text.

    ``is_fallback`` marks results substituted because the model output could
    not be used.
    """
    model_config = ConfigDict(frozen=True)

    category: str
    sentiment: float = Field(..., ge=-1.0, le=1.0)
    is_fallback: bool = False

    @classmethod
    def fallback(cls) -> "Classification":
        return cls(category=UNCATEGORIZED, sentiment=0.0, is_fallback=True)


class IngestResult(BaseModel):
    """Outcome of ingesting a single feedback item."""
    feedback: FeedbackRecord
    classification: Classification
    weight: float


class BatchItemSummary(BaseModel):
    content: str
    category: str
    sentiment: float
    weight: float


class BatchResult(BaseModel):
    """Outcome of a batch submission."""
    processed: int = 0
    skipped: int = 0
    failed: int = 0
    results: List[BatchItemSummary] = Field(default_factory=list)


class SourceBreakdown(BaseModel):
    source_type: str
    count: int
    avg_sentiment: Optional[float] = None


class FeedbackStats(BaseModel):
    """Dashboard overview numbers.

    Serialized with camelCase keys (``totalFeedback``, ``topPainPoints``, ...)
    for the dashboard; nested bubble and source rows keep their column names.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total_feedback: int
    negative_feedback_count: int
    positive_feedback_count: int
    action_suggestions: int
    by_source: List[SourceBreakdown]
    top_pain_points: List[CategoryBubble]
    top_praise: List[CategoryBubble]
