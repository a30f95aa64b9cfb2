"""
Read access to published question content.
"""
from typing import List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from qbank.core.db_error_handling import handle_db_error
from qbank.core.practice.session_state import QuestionDifficulty
from qbank.models import Question, QuestionStatus, Tag, question_tags


class SqlAlchemyQuestionRepository:
    """Question lookups restricted to published content."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _published(self):
        return (
            select(Question)
            .options(selectinload(Question.choices))
            .where(Question.status == QuestionStatus.PUBLISHED)
        )

    async def find_published_by_id(self, question_id: str) -> Optional[Question]:
        async with handle_db_error(self.db, "load question"):
            result = await self.db.execute(
                self._published().where(Question.id == question_id)
            )
            return result.scalar_one_or_none()

    async def find_published_by_ids(self, question_ids: Sequence[str]) -> List[Question]:
        if not question_ids:
            return []

        async with handle_db_error(self.db, "load questions"):
            result = await self.db.execute(
                self._published().where(Question.id.in_(list(question_ids)))
            )
            return list(result.scalars().all())

    async def list_published_candidate_ids(
        self,
        tag_slugs: Sequence[str],
        difficulties: Sequence[QuestionDifficulty],
    ) -> List[str]:
        """
        Published question ids matching the filters, newest first then by id.

        A question matches the tag filter if it has any of the tags. Empty
        filters do not restrict.
        """
        stmt = select(Question.id).where(Question.status == QuestionStatus.PUBLISHED)

        if difficulties:
            stmt = stmt.where(
                Question.difficulty.in_([QuestionDifficulty(d) for d in difficulties])
            )

        if tag_slugs:
            tagged = (
                select(question_tags.c.question_id)
                .join(Tag, Tag.id == question_tags.c.tag_id)
                .where(Tag.slug.in_(list(tag_slugs)))
            )
            stmt = stmt.where(Question.id.in_(tagged))

        stmt = stmt.order_by(Question.created_at.desc(), Question.id.asc())

        async with handle_db_error(self.db, "list candidate questions"):
            result = await self.db.execute(stmt)
            return list(result.scalars().all())
