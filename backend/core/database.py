# backend/core/database.py

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import settings
from .query_logger import setup_query_logging

DATABASE_URL = settings.database_url


def build_engine_kwargs(url: str) -> dict:
    engine_kwargs = {
        "echo": settings.log_sql_queries,
        "pool_pre_ping": True,
    }

    if url.startswith("sqlite"):
        engine_kwargs["connect_args"] = {"check_same_thread": False}
        if url in {"sqlite://", "sqlite:///:memory:"}:
            engine_kwargs["poolclass"] = StaticPool
    else:
        engine_kwargs["pool_size"] = settings.db_pool_size
        engine_kwargs["max_overflow"] = settings.db_max_overflow
    return engine_kwargs


engine = create_engine(DATABASE_URL, **build_engine_kwargs(DATABASE_URL))

# Setup query logging in development
setup_query_logging(engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def import_models():
    """Import every model module so Base.metadata knows all tables."""
    from modules.auth import models as auth_models  # noqa: F401
    from modules.restaurants import models as restaurant_models  # noqa: F401
    from modules.loyalty import models as loyalty_models  # noqa: F401
    from modules.reconciliation import models as reconciliation_models  # noqa: F401
    from modules.invitations import models as invitation_models  # noqa: F401

    return Base.metadata


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
