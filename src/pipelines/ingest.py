"""
Ingestion pipeline for customer feedback.
Weights each item by its source, classifies it with the LLM, stores the record
and folds it into its category bubble. Batches run item by item in input order.
"""

from enum import Enum
from typing import Any, Iterable, NamedTuple, Optional, Tuple
import json
import logging
import argparse

from src.config.settings import Settings
from src.config.logging_config import configure_logging
from src.data_access.postgres_client import PostgresClient
from src.data_access.feedback_sink import FeedbackSink
from src.aggregation.bubble_aggregator import BubbleAggregator
from src.agents.llm_agent import FeedbackClassifier
from src.weighting.source_weights import SourceWeightTable
from src.models.schemas import BatchItemSummary, BatchResult, IngestResult
from src.pipelines.errors import InvalidFeedbackError


logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 50


class BatchItemOutcome(str, Enum):
    PROCESSED = "processed"
    SKIPPED = "skipped"
    FAILED = "failed"


class BatchItemResult(NamedTuple):
    outcome: BatchItemOutcome
    summary: Optional[BatchItemSummary] = None


def validate_feedback(content: Any, source_type: Any) -> Tuple[str, str]:
    """
    Check that both fields are present, non-empty strings.

    Raises:
        InvalidFeedbackError: if either field is missing or malformed
    """
    if not isinstance(content, str) or not content.strip():
        raise InvalidFeedbackError("Missing content or source_type")
    if not isinstance(source_type, str) or not source_type.strip():
        raise InvalidFeedbackError("Missing content or source_type")
    return content, source_type


def preview(content: str, length: int = PREVIEW_LENGTH) -> str:
    """Shorten content for batch summaries."""
    if len(content) <= length:
        return content
    return content[:length] + "..."


def apply_item_outcome(result: BatchResult, item_result: BatchItemResult) -> BatchResult:
    """Record one item's outcome in the running batch result."""
    if item_result.outcome is BatchItemOutcome.PROCESSED:
        result.processed += 1
        result.results.append(item_result.summary)
    elif item_result.outcome is BatchItemOutcome.SKIPPED:
        result.skipped += 1
    else:
        result.failed += 1
    return result


class IngestionPipeline:
    """Pipeline for classifying feedback and maintaining category bubbles."""

    def __init__(
        self,
        config: Settings,
        client: Optional[PostgresClient] = None,
        classifier: Optional[FeedbackClassifier] = None,
        weights: Optional[SourceWeightTable] = None
    ):
        """
        Initialize the ingestion pipeline.

        Args:
            config: Application settings
            client: Database client (created from config if None)
            classifier: Feedback classifier (created from config if None)
            weights: Source weight table (built from config if None)
        """
        self.config = config
        self.client = client if client is not None else PostgresClient(config)
        self.sink = FeedbackSink(self.client)
        self.aggregator = BubbleAggregator(self.client)
        self.classifier = classifier if classifier is not None else FeedbackClassifier(config)
        self.weights = weights if weights is not None else SourceWeightTable.from_settings(config)

    def ingest(self, content: Any, source_type: Any) -> IngestResult:
        """
        Classify and store a single feedback item.

        Args:
            content: Feedback text
            source_type: Channel the feedback came from

        Returns:
            The stored record with its classification and weight

        Raises:
            InvalidFeedbackError: if content or source_type is missing
            StorageError: if the record or bubble could not be written
        """
        content, source_type = validate_feedback(content, source_type)

        weight = self.weights.weight_of(source_type)
        classification = self.classifier.classify(content)

        # Record and bubble are written together or not at all
        with self.client.transaction() as tx:
            record = self.sink.insert(
                content,
                source_type,
                classification.category,
                classification.sentiment,
                weight,
                tx=tx
            )
            self.aggregator.upsert(
                classification.category,
                weight,
                classification.sentiment,
                tx=tx
            )

        logger.info(
            f"Ingested feedback {record.id} from {source_type}: "
            f"category='{classification.category}', sentiment={classification.sentiment}, weight={weight}"
        )

        return IngestResult(feedback=record, classification=classification, weight=weight)

    def process_batch_item(self, item: Any) -> BatchItemResult:
        """
        Ingest one batch item and report what happened to it.

        Items without content or source_type are skipped. Any other failure is
        logged and reported as FAILED so the batch can continue.
        """
        if not isinstance(item, dict):
            return BatchItemResult(BatchItemOutcome.SKIPPED)

        try:
            result = self.ingest(item.get("content"), item.get("source_type"))
        except InvalidFeedbackError:
            return BatchItemResult(BatchItemOutcome.SKIPPED)
        except Exception as e:
            logger.error(f"Error processing batch item: {e}", exc_info=True)
            return BatchItemResult(BatchItemOutcome.FAILED)

        return BatchItemResult(
            BatchItemOutcome.PROCESSED,
            BatchItemSummary(
                content=preview(result.feedback.content),
                category=result.classification.category,
                sentiment=result.classification.sentiment,
                weight=result.weight
            )
        )

    def ingest_batch(self, items: Iterable[Any]) -> BatchResult:
        """
        Ingest feedback items one at a time, in order.

        Args:
            items: Feedback items as dicts with content and source_type

        Returns:
            BatchResult with the processed count and a summary per processed item
        """
        result = BatchResult()

        for index, item in enumerate(items):
            item_result = self.process_batch_item(item)
            if item_result.outcome is BatchItemOutcome.FAILED:
                logger.warning(f"Batch item {index} failed; continuing")
            apply_item_outcome(result, item_result)

        logger.info(
            f"Batch complete: {result.processed} processed, "
            f"{result.skipped} skipped, {result.failed} failed"
        )
        return result


def main():
    """Main entry point for running the ingestion pipeline with CLI arguments."""
    parser = argparse.ArgumentParser(
        description='Classify customer feedback and update category bubbles.'
    )
    parser.add_argument(
        '--file',
        type=str,
        help='Path to a JSON array of {"content": ..., "source_type": ...} items'
    )
    parser.add_argument(
        '--content',
        type=str,
        help='Text of a single feedback item'
    )
    parser.add_argument(
        '--source',
        type=str,
        help='Source type of the single feedback item (ticket, github, discord, forum, twitter, email)'
    )
    parser.add_argument(
        '--init-schema',
        action='store_true',
        help='Create the feedback and bubbles tables before ingesting'
    )

    args = parser.parse_args()

    if args.file and (args.content or args.source):
        parser.error("Cannot specify both --file and --content/--source")
    if not args.file and not args.init_schema and not (args.content and args.source):
        parser.error("Specify --file, or both --content and --source")

    items = None
    if args.file:
        try:
            with open(args.file, encoding='utf-8') as f:
                items = json.load(f)
        except (OSError, ValueError) as e:
            parser.error(f"Could not read {args.file}: {e}")
        if not isinstance(items, list):
            parser.error(f"{args.file} must contain a JSON array of feedback items")

    # Load configuration
    config = Settings()
    configure_logging(config.log_level)

    pipeline = IngestionPipeline(config)

    try:
        if args.init_schema:
            pipeline.client.initialize_schema()

        if items is not None:
            stats = pipeline.ingest_batch(items)

            print("\n" + "="*60)
            print("FEEDBACK BATCH RESULTS")
            print("="*60)
            print(f"Items submitted: {len(items)}")
            print(f"Processed: {stats.processed}")
            print(f"Skipped: {stats.skipped}")
            print(f"Failed: {stats.failed}")
            for summary in stats.results:
                print(f"  [{summary.category}] sentiment={summary.sentiment:+.2f} weight={summary.weight:.1f}  {summary.content}")
            print("="*60)
        elif args.content:
            result = pipeline.ingest(args.content, args.source)

            print("\n" + "="*60)
            print("FEEDBACK RESULT")
            print("="*60)
            print(f"Record id: {result.feedback.id}")
            print(f"Category: {result.classification.category}")
            print(f"Sentiment: {result.classification.sentiment:+.2f}")
            print(f"Weight: {result.weight}")
            print("="*60)
    finally:
        pipeline.client.close()


if __name__ == "__main__":
    main()
