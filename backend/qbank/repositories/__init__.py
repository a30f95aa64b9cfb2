"""
SQLAlchemy storage adapters for the practice engine.
"""
from .attempts import SqlAlchemyAttemptRepository
from .bookmarks import SqlAlchemyBookmarkRepository
from .idempotency_keys import SqlAlchemyIdempotencyKeyStore
from .practice_sessions import SqlAlchemyPracticeSessionStore
from .questions import SqlAlchemyQuestionRepository

__all__ = [
    "SqlAlchemyAttemptRepository",
    "SqlAlchemyBookmarkRepository",
    "SqlAlchemyIdempotencyKeyStore",
    "SqlAlchemyPracticeSessionStore",
    "SqlAlchemyQuestionRepository",
]
