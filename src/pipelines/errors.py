"""Errors raised across the ingestion pipeline boundary."""


class InvalidFeedbackError(ValueError):
    """Submitted feedback is missing required fields or has the wrong shape."""


class StorageError(RuntimeError):
    """A read or write against the feedback database failed.

    The operation had no durable effect and may be retried by the caller.
    """
    retryable = True
