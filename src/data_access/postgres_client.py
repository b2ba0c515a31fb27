"""
PostgreSQL client for feedback records and category bubbles.
"""

from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence
import logging
import threading

import psycopg2
from psycopg2.extras import RealDictCursor
from psycopg2.pool import ThreadedConnectionPool

from src.config.settings import Settings
from src.pipelines.errors import StorageError

logger = logging.getLogger(__name__)


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS feedback (
    id BIGSERIAL PRIMARY KEY,
    content TEXT NOT NULL,
    source_type VARCHAR(50) NOT NULL,
    category TEXT NOT NULL DEFAULT 'Uncategorized',
    sentiment_score DOUBLE PRECISION NOT NULL DEFAULT 0
        CHECK (sentiment_score BETWEEN -1 AND 1),
    weight DOUBLE PRECISION NOT NULL
        CHECK (weight BETWEEN 0 AND 1),
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS feedback_category_idx ON feedback(category);
CREATE INDEX IF NOT EXISTS feedback_source_idx ON feedback(source_type);
CREATE INDEX IF NOT EXISTS feedback_created_at_idx ON feedback(created_at DESC);

CREATE TABLE IF NOT EXISTS bubbles (
    id BIGSERIAL PRIMARY KEY,
    category TEXT NOT NULL UNIQUE,
    total_weight DOUBLE PRECISION NOT NULL DEFAULT 0,
    avg_sentiment DOUBLE PRECISION NOT NULL DEFAULT 0,
    feedback_count INTEGER NOT NULL DEFAULT 0,
    action_summary TEXT,
    build_ideas TEXT,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""


class Transaction:
    """Statement runner bound to one open cursor.

    Mirrors the three execution modes the storage layer exposes: ``run`` for
    statements without rows, ``first`` for a single row and ``all`` for every
    row. Parameters are bound positionally with ``%s`` placeholders.
    """

    def __init__(self, cursor):
        self.cursor = cursor

    def run(self, query: str, params: Sequence[Any] = ()) -> None:
        self.cursor.execute(query, tuple(params) or None)

    def first(self, query: str, params: Sequence[Any] = ()) -> Optional[Dict[str, Any]]:
        self.cursor.execute(query, tuple(params) or None)
        row = self.cursor.fetchone()
        return dict(row) if row is not None else None

    def all(self, query: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        self.cursor.execute(query, tuple(params) or None)
        return [dict(row) for row in self.cursor.fetchall()]


class PostgresClient:
    """Pooled PostgreSQL client. Each transaction checks out its own connection.

    ``ThreadedConnectionPool.getconn`` raises instead of waiting when every
    connection is in use, so checkouts are gated by a semaphore sized to the
    pool. Callers beyond ``postgres_pool_size`` block until a connection is
    returned.
    """

    def __init__(self, config: Settings):
        self.config = config
        self.pool = None
        self._pool_lock = threading.Lock()
        self._slots = threading.BoundedSemaphore(config.postgres_pool_size)

    def connect(self) -> None:
        """Create the connection pool if it does not exist yet."""
        with self._pool_lock:
            if self.pool is not None:
                return
            try:
                self.pool = ThreadedConnectionPool(
                    1,
                    self.config.postgres_pool_size,
                    host=self.config.postgres_host,
                    port=self.config.postgres_port,
                    database=self.config.postgres_database,
                    user=self.config.postgres_username,
                    password=self.config.postgres_password,
                    sslmode=self.config.postgres_sslmode
                )
            except psycopg2.Error as e:
                raise StorageError(f"Could not connect to PostgreSQL: {e}") from e

    def close(self) -> None:
        """Close all pooled connections."""
        with self._pool_lock:
            if self.pool:
                self.pool.closeall()
                self.pool = None

    @contextmanager
    def transaction(self) -> Iterator[Transaction]:
        """
        Run statements in a single transaction.

        Commits when the block exits cleanly and rolls back otherwise.
        Database errors are re-raised as StorageError.
        """
        if self.pool is None:
            self.connect()
        pool = self.pool

        self._slots.acquire()
        try:
            try:
                conn = pool.getconn()
            except psycopg2.Error as e:
                raise StorageError(f"Could not acquire a database connection: {e}") from e

            try:
                with conn.cursor(cursor_factory=RealDictCursor) as cursor:
                    yield Transaction(cursor)
                conn.commit()
            except psycopg2.Error as e:
                self._rollback_quietly(conn)
                logger.error(f"Database transaction failed: {e}")
                raise StorageError(f"Database operation failed: {e}") from e
            except BaseException:
                self._rollback_quietly(conn)
                raise
            finally:
                # A broken connection is discarded instead of reused
                pool.putconn(conn, close=bool(conn.closed))
        finally:
            self._slots.release()

    @staticmethod
    def _rollback_quietly(conn) -> None:
        """Roll back if the connection is still open; a dropped connection has nothing to undo."""
        if conn.closed:
            return
        try:
            conn.rollback()
        except psycopg2.Error as e:
            logger.warning(f"Rollback failed: {e}")

    def run(self, query: str, params: Sequence[Any] = ()) -> None:
        with self.transaction() as tx:
            tx.run(query, params)

    def first(self, query: str, params: Sequence[Any] = ()) -> Optional[Dict[str, Any]]:
        with self.transaction() as tx:
            return tx.first(query, params)

    def all(self, query: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        with self.transaction() as tx:
            return tx.all(query, params)

    def initialize_schema(self) -> None:
        """Create tables and indexes if they don't exist."""
        logger.info("Initializing feedback schema")
        self.run(SCHEMA_SQL)

    def reset(self) -> None:
        """Delete every feedback record and bubble."""
        logger.warning("Resetting feedback and bubbles tables")
        with self.transaction() as tx:
            tx.run("DELETE FROM feedback")
            tx.run("DELETE FROM bubbles")
