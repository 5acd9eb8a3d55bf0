# backend/core/query_logger.py

import logging
import time
from contextlib import contextmanager
from typing import Any, Dict

from sqlalchemy import event
from sqlalchemy.engine import Engine

from core.config import get_settings

logger = logging.getLogger("sqlalchemy.engine")
query_logger = logging.getLogger("query_performance")

settings = get_settings()


class QueryLogger:
    """SQL query statistics for development and debugging"""

    def __init__(self, slow_query_threshold: float = 1.0):
        self.enabled = settings.is_development or settings.debug
        self.slow_query_threshold = slow_query_threshold
        self.query_stats: Dict[str, Any] = {}
        self.reset_stats()

    def record(self, elapsed: float, statement: str) -> None:
        self.query_stats["total_queries"] += 1
        self.query_stats["total_time"] += elapsed

        if elapsed > self.slow_query_threshold:
            self.query_stats["slow_queries"] += 1
            query_logger.warning(f"SLOW QUERY ({elapsed:.3f}s): {statement[:200]}...")

    def reset_stats(self):
        """Reset query statistics"""
        self.query_stats = {
            "total_queries": 0,
            "slow_queries": 0,
            "total_time": 0.0,
        }


# Singleton instance
query_logger_instance = QueryLogger()


def setup_query_logging(engine: Engine):
    """
    Attach timing listeners to an SQLAlchemy engine

    Args:
        engine: SQLAlchemy engine instance
    """
    if not query_logger_instance.enabled:
        return

    @event.listens_for(engine, "before_cursor_execute")
    def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        conn.info.setdefault("query_start_time", []).append(time.perf_counter())
        if settings.log_sql_queries:
            logger.debug("Start Query: %s", statement)

    @event.listens_for(engine, "after_cursor_execute")
    def after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        elapsed = time.perf_counter() - conn.info["query_start_time"].pop(-1)
        query_logger_instance.record(elapsed, statement)
        if settings.log_sql_queries:
            logger.debug("Query Complete in %.3fs", elapsed)


@contextmanager
def log_query_performance(operation_name: str):
    """
    Log the number of queries and time spent in a block.

    Example:
        with log_query_performance("reconcile_batch"):
            service.process_records(...)
    """
    if not query_logger_instance.enabled:
        yield
        return

    start_queries = query_logger_instance.query_stats["total_queries"]
    start_time = time.perf_counter()

    try:
        yield
    finally:
        elapsed_time = time.perf_counter() - start_time
        query_count = query_logger_instance.query_stats["total_queries"] - start_queries
        query_logger.info(
            f"Operation '{operation_name}': {query_count} queries in {elapsed_time:.3f}s"
        )
