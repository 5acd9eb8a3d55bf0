# backend/core/logging_config.py

import logging

from .config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = None) -> None:
    """Configure the root logger from settings."""
    logging.basicConfig(
        level=getattr(logging, (level or settings.log_level).upper(), logging.INFO),
        format=LOG_FORMAT,
    )
    # SQL echo is handled by the engine's own flag
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.log_sql_queries else logging.WARNING
    )
