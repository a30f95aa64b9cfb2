"""
Database models for the practice engine.

Question content (questions, choices, tags) is owned by the content pipeline
and only read here. Practice sessions, attempts, bookmarks and idempotency
keys are written by the engine.
"""
from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    PrimaryKeyConstraint,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
import enum
import uuid

from qbank.core.practice.session_state import PracticeMode, QuestionDifficulty

from .base import Base
from .types import StringList


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


def _enum_values(enum_cls):
    # Persist the lowercase values, not the member names
    return [member.value for member in enum_cls]


class QuestionStatus(str, enum.Enum):
    """Question publication status."""

    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class TagKind(str, enum.Enum):
    """Tag taxonomy kind."""

    DOMAIN = "domain"
    TOPIC = "topic"
    SUBSTAGE = "substage"
    SYSTEM = "system"


question_tags = Table(
    "question_tags",
    Base.metadata,
    Column(
        "question_id",
        String(36),
        ForeignKey("questions.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "tag_id",
        String(36),
        ForeignKey("tags.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Index("ix_question_tags_tag_id", "tag_id"),
)


class Tag(Base):
    """Tag used to filter practice questions."""

    __tablename__ = "tags"

    id = Column(String(36), primary_key=True, default=_new_id)
    slug = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    kind = Column(
        Enum(TagKind, values_callable=_enum_values),
        nullable=False,
        default=TagKind.TOPIC,
    )

    questions = relationship("Question", secondary=question_tags, back_populates="tags")


class Question(Base):
    """Multiple-choice practice question."""

    __tablename__ = "questions"

    id = Column(String(36), primary_key=True, default=_new_id)
    slug = Column(String(255), unique=True, nullable=False, index=True)
    stem_md = Column(Text, nullable=False)
    explanation_md = Column(Text, nullable=False)
    difficulty = Column(
        Enum(QuestionDifficulty, values_callable=_enum_values), nullable=False
    )
    status = Column(
        Enum(QuestionStatus, values_callable=_enum_values),
        nullable=False,
        default=QuestionStatus.DRAFT,
    )
    created_at = Column(DateTime(timezone=True), default=_utc_now, nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=_utc_now, onupdate=_utc_now, nullable=False
    )

    # Relationships
    choices = relationship(
        "Choice",
        back_populates="question",
        cascade="all, delete-orphan",
        order_by="Choice.sort_order",
    )
    tags = relationship("Tag", secondary=question_tags, back_populates="questions")

    __table_args__ = (
        # Candidate listing: published questions, newest first
        Index("ix_questions_status_created_at", "status", "created_at"),
    )


class Choice(Base):
    """Answer choice of a question. Exactly one per question is correct."""

    __tablename__ = "choices"

    id = Column(String(36), primary_key=True, default=_new_id)
    question_id = Column(
        String(36),
        ForeignKey("questions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    label = Column(String(1), nullable=False)
    text_md = Column(Text, nullable=False)
    is_correct = Column(Boolean, nullable=False, default=False)
    explanation_md = Column(Text, nullable=True)
    sort_order = Column(Integer, nullable=False)

    question = relationship("Question", back_populates="choices")

    __table_args__ = (
        UniqueConstraint("question_id", "label", name="uq_choices_question_label"),
        CheckConstraint(
            "label IN ('A', 'B', 'C', 'D', 'E')", name="ck_choices_label_range"
        ),
    )


class PracticeSession(Base):
    """
    Practice session with its embedded per-question state.

    ``question_ids`` is fixed at creation. ``question_states`` holds one JSON
    object per question id and is replaced wholesale on every write, guarded
    by ``version`` (compare-and-swap).
    """

    __tablename__ = "practice_sessions"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(255), nullable=False)
    mode = Column(Enum(PracticeMode, values_callable=_enum_values), nullable=False)
    question_ids = Column(StringList(), nullable=False)
    tag_filters = Column(StringList(), nullable=False, default=list)
    difficulty_filters = Column(StringList(), nullable=False, default=list)
    question_states = Column(JSON, nullable=False, default=list)
    version = Column(Integer, nullable=False, default=0)
    started_at = Column(DateTime(timezone=True), default=_utc_now, nullable=False)
    ended_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_practice_sessions_user_started", "user_id", "started_at"),
        Index("ix_practice_sessions_user_ended", "user_id", "ended_at"),
    )


class Attempt(Base):
    """Append-only audit record of a submitted answer."""

    __tablename__ = "attempts"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(255), nullable=False)
    question_id = Column(
        String(36), ForeignKey("questions.id", ondelete="CASCADE"), nullable=False
    )
    practice_session_id = Column(
        String(36),
        ForeignKey("practice_sessions.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    selected_choice_id = Column(
        String(36), ForeignKey("choices.id", ondelete="CASCADE"), nullable=False
    )
    is_correct = Column(Boolean, nullable=False)
    time_spent_seconds = Column(Integer, nullable=False, default=0)
    answered_at = Column(DateTime(timezone=True), default=_utc_now, nullable=False)

    __table_args__ = (
        Index("ix_attempts_user_question_answered", "user_id", "question_id", "answered_at"),
        Index("ix_attempts_user_answered", "user_id", "answered_at"),
    )


class IdempotencyKey(Base):
    """
    Claimed idempotency key and its stored outcome.

    A row with neither ``result_json`` nor ``error_code`` is claimed but
    unresolved. Rows past ``expires_at`` are ignored and may be reclaimed.
    """

    __tablename__ = "idempotency_keys"

    user_id = Column(String(255), nullable=False)
    action = Column(String(100), nullable=False)
    key = Column(String(255), nullable=False)
    result_json = Column(JSON(none_as_null=True), nullable=True)
    error_code = Column(String(50), nullable=True)
    error_message = Column(Text, nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utc_now, nullable=False)

    __table_args__ = (
        PrimaryKeyConstraint("user_id", "action", "key", name="pk_idempotency_keys"),
        Index("ix_idempotency_keys_expires_at", "expires_at"),
    )


class Bookmark(Base):
    """A question the user saved for later. At most one per (user, question)."""

    __tablename__ = "bookmarks"

    user_id = Column(String(255), nullable=False)
    question_id = Column(
        String(36), ForeignKey("questions.id", ondelete="CASCADE"), nullable=False
    )
    created_at = Column(DateTime(timezone=True), default=_utc_now, nullable=False)

    __table_args__ = (
        PrimaryKeyConstraint("user_id", "question_id", name="pk_bookmarks"),
        Index("ix_bookmarks_user_created", "user_id", "created_at"),
    )
