"""
Application startup validation.

Checks configuration and the database before the API starts serving
requests.
"""

import logging
import sys
from typing import List, Tuple

import sqlalchemy as sa
from sqlalchemy import text

from core.config import settings, DEFAULT_JWT_SECRET
from core.database import engine, import_models

logger = logging.getLogger(__name__)

REQUIRED_TABLES = [
    "users",
    "restaurants",
    "branches",
    "points_balances",
    "transactions",
    "voucher_types",
    "vouchers",
]


class StartupValidator:
    """Validates application startup requirements"""

    def __init__(self):
        self.errors: List[str] = []
        self.warnings: List[str] = []

    def check_environment_config(self) -> bool:
        if settings.jwt_secret_key == DEFAULT_JWT_SECRET:
            self.warnings.append("Using development JWT secret - change for production")
        if settings.allow_voucher_code_redemption:
            self.warnings.append(
                "Long-lived voucher codes are accepted at redemption alongside presented codes"
            )
        return True

    def check_database_connection(self) -> bool:
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1")).fetchone()
            logger.info("Database connection successful")
            return True
        except sa.exc.SQLAlchemyError as e:
            self.errors.append(f"Database connection failed: {str(e)}")
            return False

    def check_required_tables(self) -> bool:
        try:
            existing_tables = sa.inspect(engine).get_table_names()
        except sa.exc.SQLAlchemyError as e:
            self.warnings.append(f"Could not check database tables: {str(e)}")
            return True

        missing_tables = [t for t in REQUIRED_TABLES if t not in existing_tables]
        if missing_tables:
            self.warnings.append(f"Missing database tables: {', '.join(missing_tables)}")
        return True

    def validate_all(self) -> Tuple[bool, List[str], List[str]]:
        checks = [
            ("Environment Configuration", self.check_environment_config),
            ("Database Connection", self.check_database_connection),
            ("Database Tables", self.check_required_tables),
        ]

        all_passed = True
        for check_name, check_func in checks:
            logger.info(f"Running check: {check_name}")
            if not check_func():
                all_passed = False

        return all_passed, self.errors, self.warnings


def create_development_tables() -> None:
    """Create tables directly on a local SQLite database."""
    if settings.is_development and settings.is_sqlite:
        import_models().create_all(bind=engine)
        logger.info("Created database tables for local development")


def run_startup_checks() -> Tuple[bool, List[str]]:
    logger.info(f"Starting loyalty backend ({settings.environment})")

    create_development_tables()
    passed, errors, warnings = StartupValidator().validate_all()

    for warning in warnings:
        logger.warning(f"Startup warning: {warning}")
    for error in errors:
        logger.error(f"Startup error: {error}")

    if not passed and settings.is_production:
        logger.error("Cannot start in production with errors!")
        sys.exit(1)
    elif not passed:
        logger.warning("Starting in development mode despite errors")
    else:
        logger.info("All startup checks passed")

    return passed, warnings
