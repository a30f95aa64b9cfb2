"""
Bookmark a question for later, and list bookmarks.
"""
import logging

from qbank.core.error_responses import ErrorMessages, raise_not_found
from qbank.schemas.practice import BookmarkRow, BookmarksResponse, ToggleBookmarkResponse
from qbank.services.ports import BookmarkRepository, QuestionRepository

logger = logging.getLogger(__name__)


class ToggleBookmark:
    """
    Remove the bookmark if there is one; otherwise bookmark the question.

    Removing never checks the question, so bookmarks on questions that were
    unpublished since can still be cleared. Adding requires a published
    question.
    """

    def __init__(self, bookmarks: BookmarkRepository, questions: QuestionRepository):
        self.bookmarks = bookmarks
        self.questions = questions

    async def execute(self, *, user_id: str, question_id: str) -> ToggleBookmarkResponse:
        if await self.bookmarks.remove(user_id, question_id):
            return ToggleBookmarkResponse(question_id=question_id, bookmarked=False)

        question = await self.questions.find_published_by_id(question_id)
        if question is None:
            raise_not_found(ErrorMessages.QUESTION_NOT_FOUND)

        await self.bookmarks.add(user_id, question_id)
        return ToggleBookmarkResponse(question_id=question_id, bookmarked=True)


class GetBookmarks:
    """Newest bookmark first; unpublished questions become unavailable rows."""

    def __init__(self, bookmarks: BookmarkRepository, questions: QuestionRepository):
        self.bookmarks = bookmarks
        self.questions = questions

    async def execute(self, *, user_id: str) -> BookmarksResponse:
        bookmarks = await self.bookmarks.list_by_user_id(user_id)
        if not bookmarks:
            return BookmarksResponse(rows=[])

        question_ids = list(dict.fromkeys(b.question_id for b in bookmarks))
        questions = await self.questions.find_published_by_ids(question_ids)
        question_by_id = {question.id: question for question in questions}

        rows = []
        for bookmark in bookmarks:
            question = question_by_id.get(bookmark.question_id)
            if question is None:
                logger.warning(
                    "Bookmark references missing question",
                    extra={"user_id": user_id, "question_id": bookmark.question_id},
                )
                rows.append(
                    BookmarkRow(
                        is_available=False,
                        question_id=bookmark.question_id,
                        bookmarked_at=bookmark.created_at,
                    )
                )
                continue

            rows.append(
                BookmarkRow(
                    is_available=True,
                    question_id=question.id,
                    bookmarked_at=bookmark.created_at,
                    slug=question.slug,
                    stem_md=question.stem_md,
                    difficulty=question.difficulty,
                )
            )

        return BookmarksResponse(rows=rows)
