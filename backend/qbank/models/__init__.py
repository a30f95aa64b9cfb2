"""
Models package for the qbank practice backend.
"""
from .base import AsyncSessionLocal, Base, async_engine, get_db
from .models import (
    Attempt,
    Bookmark,
    Choice,
    IdempotencyKey,
    PracticeSession,
    Question,
    QuestionStatus,
    Tag,
    TagKind,
    question_tags,
)

__all__ = [
    "AsyncSessionLocal",
    "Base",
    "async_engine",
    "get_db",
    "Attempt",
    "Bookmark",
    "Choice",
    "IdempotencyKey",
    "PracticeSession",
    "Question",
    "QuestionStatus",
    "Tag",
    "TagKind",
    "question_tags",
]
