"""
Cron job: delete expired idempotency records.

Deletes in batches of ``IDEMPOTENCY_PRUNE_BATCH_LIMIT`` (oldest expiry first)
until nothing older than now remains or ``--max-batches`` is reached.
Request handling never prunes; expired records are only reclaimed in place.

Exit codes:
    0 - Success
    1 - Database error
    3 - Configuration/import error
"""
import argparse
import asyncio
import json
import logging
import sys
from typing import Optional, Sequence

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger("prune_idempotency_keys")


def positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {value}")
    return number


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument(
        "--batch-limit",
        type=positive_int,
        default=None,
        help="Rows deleted per batch (defaults to IDEMPOTENCY_PRUNE_BATCH_LIMIT)",
    )
    parser.add_argument(
        "--max-batches",
        type=positive_int,
        default=1000,
        help="Stop after this many batches",
    )
    return parser.parse_args(argv)


async def prune(batch_limit: int, max_batches: int) -> int:
    """Run batches until one deletes nothing. Returns total rows deleted."""
    from qbank.core.datetime_utils import utc_now
    from qbank.models import AsyncSessionLocal
    from qbank.repositories import SqlAlchemyIdempotencyKeyStore

    total = 0
    cutoff = utc_now()
    async with AsyncSessionLocal() as db:
        store = SqlAlchemyIdempotencyKeyStore(db)
        for _ in range(max_batches):
            deleted = await store.prune_expired_before(cutoff, batch_limit)
            total += deleted
            if deleted < batch_limit:
                break
    return total


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)

    # Defer imports so config/import failures produce exit code 3
    try:
        from qbank.core.config import settings
        from qbank.core.logging_config import setup_logging
        from qbank.core.error_responses import PracticeError
        from qbank.models import async_engine
    except Exception as exc:
        logging.basicConfig(level=logging.INFO)
        logger.error("Failed to import required modules: %s", exc)
        return 3

    setup_logging()
    batch_limit = args.batch_limit or settings.IDEMPOTENCY_PRUNE_BATCH_LIMIT

    async def run() -> int:
        try:
            return await prune(batch_limit, args.max_batches)
        finally:
            await async_engine.dispose()

    try:
        deleted = asyncio.run(run())
    except PracticeError as exc:
        logger.error("Pruning idempotency keys failed: %s", exc.message)
        return 1

    logger.info("Pruned %d expired idempotency keys", deleted)
    print(
        json.dumps(
            {
                "type": "HEARTBEAT",
                "service": "prune_idempotency_keys",
                "deleted": deleted,
            }
        ),
        flush=True,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
