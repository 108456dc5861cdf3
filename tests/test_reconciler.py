"""Tests for the reconciliation runner."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from chainvault.gateway.base import FineStatus
from chainvault.services.reconciler import ReconciliationRunner
from chainvault.store.base import TransactionStatus


class TestReconciliationRunner:
    """Tests for ReconciliationRunner."""

    @pytest.mark.asyncio
    async def test_run_once(self, orchestrator, eth_wallet, gateway, memory_store):
        tx = await orchestrator.create_swap(eth_wallet.id, "ETH", "BTC", "1", "1Dest", "0xrefund")
        gateway.set_order_status(tx.external_hash, FineStatus.FINISHED)
        runner = ReconciliationRunner(orchestrator, interval=60)

        assert await runner.run_once() == 1
        assert await runner.run_once() == 0
        assert runner.passes == 2

        stored = await memory_store.get_transaction_by_external_hash(tx.external_hash)
        assert stored.status == TransactionStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_run_until_stopped(self):
        orchestrator = AsyncMock()
        orchestrator.reconcile_pending.return_value = 0
        runner = ReconciliationRunner(orchestrator, interval=0.01)

        task = asyncio.create_task(runner.run())
        while runner.passes < 3:
            await asyncio.sleep(0.01)

        assert runner.is_running
        runner.stop()
        await asyncio.wait_for(task, timeout=1)

        assert not runner.is_running
        assert orchestrator.reconcile_pending.await_count >= 3

    @pytest.mark.asyncio
    async def test_failed_pass_does_not_stop_loop(self):
        orchestrator = AsyncMock()
        orchestrator.reconcile_pending.side_effect = [RuntimeError("store down"), 0, 0, 0, 0, 0, 0, 0, 0, 0]
        runner = ReconciliationRunner(orchestrator, interval=0.01)

        task = asyncio.create_task(runner.run())
        while runner.passes < 2:
            await asyncio.sleep(0.01)
        runner.stop()
        await asyncio.wait_for(task, timeout=1)

        assert orchestrator.reconcile_pending.await_count >= 3

    @pytest.mark.asyncio
    async def test_stop_before_run(self):
        orchestrator = AsyncMock()
        orchestrator.reconcile_pending.return_value = 0
        runner = ReconciliationRunner(orchestrator, interval=60)

        runner.stop()
        await asyncio.wait_for(runner.run(), timeout=1)

        orchestrator.reconcile_pending.assert_not_called()

    @pytest.mark.asyncio
    async def test_restart_after_stop(self):
        orchestrator = AsyncMock()
        orchestrator.reconcile_pending.return_value = 0
        runner = ReconciliationRunner(orchestrator, interval=0.01)

        task = asyncio.create_task(runner.run())
        while runner.passes < 1:
            await asyncio.sleep(0.01)
        runner.stop()
        await asyncio.wait_for(task, timeout=1)
        first_run_passes = runner.passes

        task = asyncio.create_task(runner.run())
        while runner.passes < first_run_passes + 2:
            await asyncio.sleep(0.01)

        assert runner.is_running
        runner.stop()
        await asyncio.wait_for(task, timeout=1)
        assert not runner.is_running
