"""
Idempotency coordinator for retried client mutations.

For a given (user, action, key) inside the expiry window the wrapped action
runs at most once. Concurrent duplicates poll for the executor's stored
outcome and replay it; if none appears within ``max_wait_seconds`` they fail
with CONFLICT so the client can retry later.

Expired records can be claimed again, so a request that crashed between
claiming and storing its outcome cannot block retries forever. Expired rows
are pruned by ``scripts/prune_idempotency_keys.py``, not here.
"""
import asyncio
import logging
import time
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, ValidationError

from qbank.core.datetime_utils import utc_now
from qbank.core.error_responses import (
    ErrorCode,
    ErrorMessages,
    PracticeError,
    raise_conflict,
    raise_internal_error,
)
from qbank.services.ports import IdempotencyKeyStore

logger = logging.getLogger(__name__)

ResultT = TypeVar("ResultT", bound=BaseModel)

DEFAULT_TTL_SECONDS = 86_400
DEFAULT_MAX_WAIT_SECONDS = 2.0
DEFAULT_POLL_INTERVAL_SECONDS = 0.05
ERROR_MESSAGE_LIMIT = 1000


def truncate_error_message(message: str, limit: int = ERROR_MESSAGE_LIMIT) -> str:
    if len(message) > limit:
        return f"{message[:limit]}…"
    return message


class IdempotencyCoordinator:
    """Runs an action once per idempotency key and replays its outcome."""

    def __init__(
        self,
        store: IdempotencyKeyStore,
        *,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        max_wait_seconds: float = DEFAULT_MAX_WAIT_SECONDS,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        now: Callable[[], datetime] = utc_now,
        monotonic: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.store = store
        self.ttl = timedelta(seconds=ttl_seconds)
        self.max_wait_seconds = max_wait_seconds
        self.poll_interval_seconds = poll_interval_seconds
        self.now = now
        self.monotonic = monotonic
        self.sleep = sleep

    async def run(
        self,
        *,
        user_id: str,
        action: str,
        key: str,
        result_type: Type[ResultT],
        execute: Callable[[], Awaitable[ResultT]],
    ) -> ResultT:
        """
        Execute ``execute`` once for this key, or replay the stored outcome.

        Raises:
            PracticeError: The executor's typed error (replayed for duplicates);
                CONFLICT if a duplicate times out waiting; INTERNAL_ERROR if a
                stored result no longer parses as ``result_type``.
        """
        claimed = await self.store.claim(
            user_id, action, key, expires_at=self.now() + self.ttl
        )

        if claimed:
            return await self._execute_and_store(user_id, action, key, execute)

        logger.info(
            f"Idempotency key already claimed for {action}, waiting for outcome",
            extra={"user_id": user_id, "action": action},
        )
        return await self._wait_for_outcome(user_id, action, key, result_type)

    async def _execute_and_store(
        self,
        user_id: str,
        action: str,
        key: str,
        execute: Callable[[], Awaitable[ResultT]],
    ) -> ResultT:
        try:
            result = await execute()
            # A failed result write is stored as an error like any other failure
            await self.store.store_result(
                user_id, action, key, result.model_dump(mode="json")
            )
        except Exception as error:
            code, message = self._error_record(error, action)
            try:
                await self.store.store_error(user_id, action, key, code, message)
            except PracticeError as store_error:
                logger.warning(
                    f"Could not store idempotent error for {action}: {store_error.message}",
                    extra={"user_id": user_id, "action": action},
                )
            raise

        return result

    def _error_record(
        self, error: Exception, action: str
    ) -> Tuple[ErrorCode, str]:
        if isinstance(error, PracticeError):
            return error.code, truncate_error_message(error.message)

        # Raw exception text may carry internals; replay a generic message
        logger.error(
            f"Unexpected error while executing idempotent {action}: {error}",
            exc_info=error,
            extra={"action": action, "error_code": ErrorCode.INTERNAL_ERROR.value},
        )
        return ErrorCode.INTERNAL_ERROR, ErrorMessages.UNEXPECTED_ERROR

    async def _wait_for_outcome(
        self,
        user_id: str,
        action: str,
        key: str,
        result_type: Type[ResultT],
    ) -> ResultT:
        started = self.monotonic()

        while self.monotonic() - started <= self.max_wait_seconds:
            record = await self.store.find(user_id, action, key)
            if record is None:
                # Vanished or expired: nothing left to wait for
                break

            if record.error_code is not None:
                raise PracticeError(
                    record.error_code, record.error_message or record.error_code.value
                )

            if record.result_json is not None:
                return self._parse(record.result_json, result_type, action)

            await self.sleep(self.poll_interval_seconds)

        logger.warning(
            f"Timed out waiting for idempotent {action} outcome",
            extra={"user_id": user_id, "action": action},
        )
        raise_conflict(ErrorMessages.IDEMPOTENCY_WAIT_TIMED_OUT)

    def _parse(
        self, value: object, result_type: Type[ResultT], action: str
    ) -> ResultT:
        try:
            return result_type.model_validate(value)
        except ValidationError:
            logger.error(
                f"Stored idempotent result for {action} does not match "
                f"{result_type.__name__}",
                extra={"action": action, "error_code": ErrorCode.INTERNAL_ERROR.value},
            )
            raise_internal_error(ErrorMessages.CACHED_RESULT_INVALID)


async def run_idempotent(
    coordinator: Optional[IdempotencyCoordinator],
    *,
    user_id: str,
    action: str,
    key: Optional[str],
    result_type: Type[ResultT],
    execute: Callable[[], Awaitable[ResultT]],
) -> ResultT:
    """Run through the coordinator when a key was supplied, directly otherwise."""
    if coordinator is None or not key:
        return await execute()
    return await coordinator.run(
        user_id=user_id,
        action=action,
        key=key,
        result_type=result_type,
        execute=execute,
    )
