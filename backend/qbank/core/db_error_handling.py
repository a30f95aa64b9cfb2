"""
Storage error handling for the async repositories.

Centralizes the pattern every repository write follows:
1. Roll back the session on error
2. Log the error with context
3. Re-raise typed PracticeErrors unchanged, wrap anything else as
   INTERNAL_ERROR with a message that does not expose storage details

Usage:
    from qbank.core.db_error_handling import handle_db_error

    async with handle_db_error(db, "create practice session"):
        db.add(row)
        await db.commit()
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from qbank.core.error_responses import (
    ErrorCode,
    ErrorMessages,
    PracticeError,
)


logger = logging.getLogger(__name__)


@asynccontextmanager
async def handle_db_error(
    db: AsyncSession,
    operation_name: str,
    *,
    context: Optional[dict[str, Any]] = None,
    log_level: int = logging.ERROR,
) -> AsyncGenerator[None, None]:
    """Async context manager for handling storage errors consistently.

    Args:
        db: The async session to roll back on error.
        operation_name: Human-readable name of the operation for messages and
            logging (e.g., "record question answer").
        context: Optional structured fields attached to the log record
            (e.g., {"session_id": ..., "user_id": ...}).
        log_level: Logging level for unexpected errors. Defaults to ERROR.

    Raises:
        PracticeError: The original error if it was already typed, otherwise
            INTERNAL_ERROR with a generic message.
    """
    try:
        yield
    except PracticeError:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()

        logger.log(
            log_level,
            f"Storage error during {operation_name}: {e}",
            exc_info=True,
            extra={**(context or {}), "error_code": ErrorCode.INTERNAL_ERROR.value},
        )

        raise PracticeError(
            ErrorCode.INTERNAL_ERROR,
            ErrorMessages.storage_operation_failed(operation_name),
        ) from e
