"""
Per-user question bookmarks.
"""
from typing import List

from sqlalchemy import and_, delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from qbank.core.datetime_utils import ensure_timezone_aware, utc_now
from qbank.core.db_error_handling import handle_db_error
from qbank.models import Bookmark
from qbank.repositories.dialect import conflict_aware_insert
from qbank.services.ports import BookmarkRecord


def _to_record(row) -> BookmarkRecord:
    return BookmarkRecord(
        user_id=row.user_id,
        question_id=row.question_id,
        created_at=ensure_timezone_aware(row.created_at),
    )


class SqlAlchemyBookmarkRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    def _matches(self, user_id: str, question_id: str):
        return and_(Bookmark.user_id == user_id, Bookmark.question_id == question_id)

    async def exists(self, user_id: str, question_id: str) -> bool:
        async with handle_db_error(self.db, "load bookmark"):
            result = await self.db.execute(
                select(Bookmark.user_id).where(self._matches(user_id, question_id))
            )
            return result.first() is not None

    async def add(self, user_id: str, question_id: str) -> BookmarkRecord:
        """
        Bookmark a question. Adding an existing bookmark keeps its original
        ``created_at``.
        """
        context = {"user_id": user_id, "question_id": question_id}
        async with handle_db_error(self.db, "add bookmark", context=context):
            await self.db.execute(
                conflict_aware_insert(self.db, Bookmark.__table__)
                .values(user_id=user_id, question_id=question_id, created_at=utc_now())
                .on_conflict_do_nothing(index_elements=["user_id", "question_id"])
            )
            result = await self.db.execute(
                select(
                    Bookmark.user_id, Bookmark.question_id, Bookmark.created_at
                ).where(self._matches(user_id, question_id))
            )
            row = result.one()
            await self.db.commit()
        return _to_record(row)

    async def remove(self, user_id: str, question_id: str) -> bool:
        context = {"user_id": user_id, "question_id": question_id}
        async with handle_db_error(self.db, "remove bookmark", context=context):
            result = await self.db.execute(
                delete(Bookmark)
                .where(self._matches(user_id, question_id))
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
        return result.rowcount > 0

    async def list_by_user_id(self, user_id: str) -> List[BookmarkRecord]:
        stmt = (
            select(Bookmark.user_id, Bookmark.question_id, Bookmark.created_at)
            .where(Bookmark.user_id == user_id)
            .order_by(Bookmark.created_at.desc(), Bookmark.question_id.desc())
        )
        async with handle_db_error(self.db, "list bookmarks"):
            result = await self.db.execute(stmt)
            rows = result.all()
        return [_to_record(row) for row in rows]
