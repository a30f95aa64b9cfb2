"""
Tests for the expired idempotency key pruning job.
"""
import json
from unittest.mock import AsyncMock, patch

import pytest

from scripts import prune_idempotency_keys
from qbank.core.error_responses import ErrorCode, PracticeError


class TestPruneIdempotencyKeysScript:
    """Tests for the cron entry point."""

    def test_success_prints_heartbeat(self, capsys):
        with patch.object(
            prune_idempotency_keys, "prune", new=AsyncMock(return_value=7)
        ) as mock_prune:
            exit_code = prune_idempotency_keys.main(["--batch-limit", "50"])

        assert exit_code == 0
        mock_prune.assert_awaited_once_with(50, 1000)
        heartbeat = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert heartbeat == {
            "type": "HEARTBEAT",
            "service": "prune_idempotency_keys",
            "deleted": 7,
        }

    def test_database_error_exit_code(self):
        failure = PracticeError(ErrorCode.INTERNAL_ERROR, "database unavailable")
        with patch.object(
            prune_idempotency_keys, "prune", new=AsyncMock(side_effect=failure)
        ):
            exit_code = prune_idempotency_keys.main([])

        assert exit_code == 1

    def test_default_batch_limit_from_settings(self):
        from qbank.core.config import settings

        with patch.object(
            prune_idempotency_keys, "prune", new=AsyncMock(return_value=0)
        ) as mock_prune:
            prune_idempotency_keys.main(["--max-batches", "3"])

        mock_prune.assert_awaited_once_with(settings.IDEMPOTENCY_PRUNE_BATCH_LIMIT, 3)

    @pytest.mark.parametrize(
        "argv",
        [
            ["--batch-limit", "0"],
            ["--batch-limit", "-5"],
            ["--max-batches", "0"],
        ],
    )
    def test_rejects_non_positive_batch_arguments(self, argv):
        with patch.object(
            prune_idempotency_keys, "prune", new=AsyncMock(return_value=0)
        ) as mock_prune:
            with pytest.raises(SystemExit) as exc_info:
                prune_idempotency_keys.main(argv)

        assert exc_info.value.code == 2
        mock_prune.assert_not_awaited()


class TestPrune:
    """Tests for the batch loop against the test database."""

    async def test_deletes_until_short_batch(self, async_db_session):
        from datetime import timedelta

        from qbank.core.datetime_utils import utc_now
        from qbank.models import IdempotencyKey
        from tests.conftest import AsyncTestingSessionLocal

        expired_at = utc_now() - timedelta(minutes=1)
        for index in range(5):
            async_db_session.add(
                IdempotencyKey(
                    user_id="user-1",
                    action="submit_answer",
                    key=f"k-{index}",
                    created_at=expired_at - timedelta(hours=1),
                    expires_at=expired_at,
                )
            )
        await async_db_session.commit()

        with patch("qbank.models.AsyncSessionLocal", AsyncTestingSessionLocal):
            deleted = await prune_idempotency_keys.prune(batch_limit=2, max_batches=10)

        assert deleted == 5
