"""
Tests for BatchSubmitter and PoolLockRegistry.
"""

import asyncio

import pytest
from unittest.mock import MagicMock, patch

from conftest import FakeGateway, ok_outcome
from deepbook_janitor.core.errors import FetchError
from deepbook_janitor.core.types import BalanceChange, PoolConfig, SubmitOutcome
from deepbook_janitor.execution.batch_builder import CleanupBatchBuilder, VectorRenderer
from deepbook_janitor.execution.submitter import BatchSubmitter, PoolLockRegistry

POOL = PoolConfig("SUI_USDC", "0xpool", "0x2::sui::SUI", "0xdba::usdc::USDC")


def make_batches(count: int, size: int = 50):
    return CleanupBatchBuilder.build(POOL, list(range(count)), size)


class TestPoolLockRegistry:
    @pytest.mark.asyncio
    async def test_shared_lock_per_pool(self):
        locks = PoolLockRegistry()
        a1 = await locks.get_lock("0xa")
        a2 = await locks.get_lock("0xa")
        b = await locks.get_lock("0xb")
        assert a1 is a2
        assert a1 is not b

    @pytest.mark.asyncio
    async def test_submissions_for_one_pool_do_not_interleave(self, gateway, signer):
        locks = PoolLockRegistry()
        submitter = BatchSubmitter(gateway, signer, VectorRenderer("0xdee").render, locks)
        await asyncio.gather(
            submitter.submit_all("SUI_USDC", make_batches(100)),
            submitter.submit_all("SUI_USDC", make_batches(100)),
        )
        firsts = [d.calls[0].arguments[1][0] for d in gateway.submitted]
        assert firsts == [0, 50, 0, 50]


class TestBatchSubmitter:
    @pytest.fixture
    def submitter(self, gateway, signer):
        return BatchSubmitter(gateway, signer, VectorRenderer("0xdee").render)

    @pytest.mark.asyncio
    async def test_reports_costs_per_batch(self, gateway, signer, submitter):
        outcome = ok_outcome("d1", rebate=9_000_000, computation=1_000_000, storage=2_000_000)
        outcome.balance_changes = [BalanceChange(signer.address, "0x2::sui::SUI", 6_000_000)]
        gateway.submit_results = [outcome]
        report = await submitter.submit_all("SUI_USDC", make_batches(10))
        result = report.results[0]
        assert result.success
        assert result.digest == "d1"
        assert result.gas_used == -6_000_000
        assert result.storage_rebate == 9_000_000
        assert result.net_profit == 15_000_000
        assert result.received == 6_000_000
        assert report.orders_cleaned == 10

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_later_batches(self, gateway, submitter):
        gateway.submit_results = [
            ok_outcome("d1"),
            FetchError("node unavailable"),
            SubmitOutcome(digest="d3", status="failure", error="MoveAbort"),
            ok_outcome("d4"),
        ]
        report = await submitter.submit_all("SUI_USDC", make_batches(200))
        assert [r.success for r in report.results] == [True, False, False, True]
        assert len(gateway.submitted) == 4
        assert report.results[1].error == "node unavailable"
        assert report.results[1].digest is None
        assert report.results[2].error == "MoveAbort"
        assert report.results[2].digest == "d3"
        assert report.failed == 2
        assert report.orders_cleaned == 100

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_failed_batch(self, gateway, submitter):
        gateway.submit_results = [RuntimeError("stream consumed")]
        with patch("deepbook_janitor.execution.submitter.log") as log:
            report = await submitter.submit_all("SUI_USDC", make_batches(150))
        assert len(gateway.submitted) == 3
        assert [r.success for r in report.results] == [False, True, True]
        assert report.results[0].error == "RuntimeError('stream consumed')"
        log.error.assert_called_once()
        assert "batch_failed" in log.error.call_args[0][0]

    @pytest.mark.asyncio
    async def test_signer_failure_is_reported(self):
        class BrokenSigner:
            address = "0x" + "cd" * 32

            def sign_transaction(self, tx_bytes_b64):
                raise ValueError("bad tx bytes")

        class SigningGateway(FakeGateway):
            async def submit(self, signer, descriptor):
                signer.sign_transaction("AAAA")

        submitter = BatchSubmitter(SigningGateway(), BrokenSigner(), VectorRenderer("0xdee").render)
        report = await submitter.submit_all("SUI_USDC", make_batches(60))
        assert report.failed == 2
        assert "bad tx bytes" in report.results[1].error

    @pytest.mark.asyncio
    async def test_failures_are_logged_not_retried(self, gateway, signer):
        log_event = MagicMock()
        submitter = BatchSubmitter(gateway, signer, VectorRenderer("0xdee").render, log_event=log_event)
        gateway.submit_results = [FetchError("timeout")]
        report = await submitter.submit_all("SUI_USDC", make_batches(5))
        assert len(gateway.submitted) == 1
        assert not report.results[0].success
        log_event.assert_not_called()

    @pytest.mark.asyncio
    async def test_success_goes_through_log_callback(self, gateway, signer):
        log_event = MagicMock()
        submitter = BatchSubmitter(gateway, signer, VectorRenderer("0xdee").render, log_event=log_event)
        await submitter.submit_all("SUI_USDC", make_batches(5))
        log_event.assert_called_once()
        assert log_event.call_args[0][0] == "batch_submitted"

    @pytest.mark.asyncio
    async def test_no_batches(self, gateway, submitter):
        report = await submitter.submit_all("SUI_USDC", [])
        assert report.results == []
        assert gateway.submitted == []
