"""
Question bookmark endpoints.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Path

from qbank.api.v1.deps import (
    get_bookmarks,
    get_current_user_id,
    get_idempotency_coordinator,
    get_idempotency_key,
    get_toggle_bookmark,
)
from qbank.schemas.practice import BookmarksResponse, ToggleBookmarkResponse
from qbank.services.idempotency import IdempotencyCoordinator, run_idempotent
from qbank.services.practice import GetBookmarks, ToggleBookmark

router = APIRouter()

TOGGLE_BOOKMARK_ACTION = "toggle_bookmark"


@router.get("", response_model=BookmarksResponse)
async def list_bookmarks(
    user_id: str = Depends(get_current_user_id),
    use_case: GetBookmarks = Depends(get_bookmarks),
):
    """The user's bookmarks, newest first."""
    return await use_case.execute(user_id=user_id)


@router.post("/{question_id}/toggle", response_model=ToggleBookmarkResponse)
async def toggle_bookmark(
    question_id: str = Path(..., description="Question to bookmark or unbookmark"),
    user_id: str = Depends(get_current_user_id),
    idempotency_key: Optional[str] = Depends(get_idempotency_key),
    coordinator: IdempotencyCoordinator = Depends(get_idempotency_coordinator),
    use_case: ToggleBookmark = Depends(get_toggle_bookmark),
):
    """
    Flip the bookmark on a question. Send an ``Idempotency-Key`` so a retried
    toggle does not flip it back.
    """

    async def execute() -> ToggleBookmarkResponse:
        return await use_case.execute(user_id=user_id, question_id=question_id)

    return await run_idempotent(
        coordinator,
        user_id=user_id,
        action=TOGGLE_BOOKMARK_ACTION,
        key=idempotency_key,
        result_type=ToggleBookmarkResponse,
        execute=execute,
    )
