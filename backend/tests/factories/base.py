# backend/tests/factories/base.py

from factory.alchemy import SQLAlchemyModelFactory

_session = None


def set_session(session):
    """Bind every factory to the session of the running test."""
    global _session
    _session = session


def current_session():
    return _session


class BaseFactory(SQLAlchemyModelFactory):
    """Base factory with session management for all test factories."""

    class Meta:
        abstract = True
        sqlalchemy_session_factory = current_session
        sqlalchemy_session_persistence = "commit"
