"""
Idempotency key storage.

Each operation is a single-row atomic statement, so correctness holds across
independent processes without in-process locks. ``claim`` relies on the
primary key (user_id, action, key): exactly one concurrent insert wins.
"""
import logging
from datetime import datetime
from typing import Any, Callable, Optional

from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from qbank.core.datetime_utils import ensure_timezone_aware, utc_now
from qbank.core.db_error_handling import handle_db_error
from qbank.core.error_responses import ErrorCode, ErrorMessages, raise_not_found
from qbank.models import IdempotencyKey
from qbank.repositories.dialect import conflict_aware_insert
from qbank.services.ports import IdempotencyRecord

logger = logging.getLogger(__name__)


class SqlAlchemyIdempotencyKeyStore:
    def __init__(
        self, db: AsyncSession, now: Callable[[], datetime] = utc_now
    ):
        self.db = db
        self.now = now

    def _key_matches(self, user_id: str, action: str, key: str):
        return and_(
            IdempotencyKey.user_id == user_id,
            IdempotencyKey.action == action,
            IdempotencyKey.key == key,
        )

    async def claim(
        self, user_id: str, action: str, key: str, expires_at: datetime
    ) -> bool:
        """
        Reserve a key for execution.

        Returns True if the caller must execute the action and store its
        outcome: either the key was new, or its previous record had expired
        and was reset. Returns False if a live record exists.
        """
        now = self.now()
        async with handle_db_error(
            self.db, "claim idempotency key", context={"user_id": user_id, "action": action}
        ):
            inserted = await self.db.execute(
                conflict_aware_insert(self.db, IdempotencyKey.__table__)
                .values(
                    user_id=user_id,
                    action=action,
                    key=key,
                    expires_at=expires_at,
                    created_at=now,
                )
                .on_conflict_do_nothing(index_elements=["user_id", "action", "key"])
            )
            if inserted.rowcount == 1:
                await self.db.commit()
                return True

            reclaimed = await self.db.execute(
                update(IdempotencyKey)
                .where(
                    self._key_matches(user_id, action, key),
                    IdempotencyKey.expires_at < now,
                )
                .values(
                    result_json=None,
                    error_code=None,
                    error_message=None,
                    expires_at=expires_at,
                    created_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()

        if reclaimed.rowcount == 1:
            logger.info(
                f"Reclaimed expired idempotency key for action {action}",
                extra={"user_id": user_id, "action": action},
            )
            return True
        return False

    async def find(
        self, user_id: str, action: str, key: str
    ) -> Optional[IdempotencyRecord]:
        """Return the live record for a key, or None if absent or expired."""
        async with handle_db_error(self.db, "load idempotency key"):
            result = await self.db.execute(
                select(
                    IdempotencyKey.result_json,
                    IdempotencyKey.error_code,
                    IdempotencyKey.error_message,
                    IdempotencyKey.expires_at,
                ).where(self._key_matches(user_id, action, key))
            )
            row = result.first()
            # End the read transaction so the next poll sees fresh data
            await self.db.commit()

        if row is None:
            return None

        expires_at = ensure_timezone_aware(row.expires_at)
        if expires_at < self.now():
            return None

        return IdempotencyRecord(
            user_id=user_id,
            action=action,
            key=key,
            result_json=row.result_json,
            error_code=ErrorCode(row.error_code) if row.error_code else None,
            error_message=(
                (row.error_message or row.error_code) if row.error_code else None
            ),
            expires_at=expires_at,
        )

    async def _resolve(
        self, user_id: str, action: str, key: str, values: dict, operation: str
    ) -> None:
        async with handle_db_error(
            self.db, operation, context={"user_id": user_id, "action": action}
        ):
            result = await self.db.execute(
                update(IdempotencyKey)
                .where(self._key_matches(user_id, action, key))
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise_not_found(ErrorMessages.IDEMPOTENCY_KEY_NOT_FOUND)
            await self.db.commit()

    async def store_result(
        self, user_id: str, action: str, key: str, result_json: Any
    ) -> None:
        await self._resolve(
            user_id,
            action,
            key,
            {"result_json": result_json, "error_code": None, "error_message": None},
            "store idempotent result",
        )

    async def store_error(
        self,
        user_id: str,
        action: str,
        key: str,
        error_code: ErrorCode,
        error_message: str,
    ) -> None:
        await self._resolve(
            user_id,
            action,
            key,
            {
                "result_json": None,
                "error_code": ErrorCode(error_code).value,
                "error_message": error_message,
            },
            "store idempotent error",
        )

    async def prune_expired_before(self, cutoff: datetime, limit: int) -> int:
        """
        Delete up to ``limit`` records that expired before ``cutoff``, oldest
        first. Returns the number deleted.
        """
        if limit <= 0:
            return 0

        async with handle_db_error(self.db, "prune idempotency keys"):
            expired = (
                await self.db.execute(
                    select(
                        IdempotencyKey.user_id,
                        IdempotencyKey.action,
                        IdempotencyKey.key,
                    )
                    .where(IdempotencyKey.expires_at < cutoff)
                    .order_by(IdempotencyKey.expires_at.asc())
                    .limit(limit)
                )
            ).all()

            if not expired:
                await self.db.commit()
                return 0

            result = await self.db.execute(
                delete(IdempotencyKey)
                .where(
                    or_(
                        *(
                            self._key_matches(row.user_id, row.action, row.key)
                            for row in expired
                        )
                    ),
                    IdempotencyKey.expires_at < cutoff,
                )
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()

        return result.rowcount
