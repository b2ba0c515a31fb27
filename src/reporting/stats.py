"""Dashboard overview built from the feedback and bubble tables."""

from src.aggregation.bubble_aggregator import BubbleAggregator
from src.data_access.feedback_sink import FeedbackSink
from src.models.schemas import FeedbackStats


TOP_BUBBLES = 5


def build_stats(sink: FeedbackSink, aggregator: BubbleAggregator) -> FeedbackStats:
    """
    Collect overview statistics for the dashboard.

    Returns:
        Totals, sentiment counts, per-source breakdown and the heaviest
        negative and positive bubbles.
    """
    sentiment_counts = sink.count_by_sentiment()

    return FeedbackStats(
        total_feedback=sink.count_feedback(),
        negative_feedback_count=sentiment_counts["negative"],
        positive_feedback_count=sentiment_counts["positive"],
        action_suggestions=aggregator.count_action_suggestions(),
        by_source=sink.breakdown_by_source(),
        top_pain_points=aggregator.top_pain_points(limit=TOP_BUBBLES),
        top_praise=aggregator.top_praise(limit=TOP_BUBBLES)
    )
