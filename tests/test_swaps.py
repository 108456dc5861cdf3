"""Tests for swap creation and reconciliation."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from chainvault.exceptions import (
    ExternalGatewayError,
    InvalidStatusTransition,
    PartialSwapCreationFailure,
    WalletNotFound,
)
from chainvault.gateway.base import FineStatus, OrderStatus, SwapOrder, SwapRate
from chainvault.gateway.dryrun import DryRunGateway
from chainvault.services.swaps import COARSE_STATUS, SwapOrchestrator, coarse_status
from chainvault.store.base import NewTransaction, TransactionKind, TransactionStatus
from chainvault.utils.locks import registered_lock_count, try_record_lock

DESTINATION = "1BoatSLRHtKNngkdXEeobR76b53LETtpyT"


async def create(orchestrator: SwapOrchestrator, wallet, **kwargs):
    params = dict(
        wallet_id=wallet.id,
        from_currency="ETH",
        to_currency="BTC",
        amount="1",
        destination_address=DESTINATION,
        refund_address=wallet.public_address,
    )
    params.update(kwargs)
    return await orchestrator.create_swap(**params)


def mock_gateway() -> AsyncMock:
    gateway = AsyncMock()
    gateway.name = "mock"
    gateway.create_order.return_value = SwapOrder(
        external_id="ext-1",
        deposit_address="0xdeposit",
        payout_address=DESTINATION,
        from_currency="ETH",
        to_currency="BTC",
        amount_in="1",
        expected_amount_out="0.065",
    )
    gateway.get_rate.return_value = SwapRate(
        estimated_amount="0.065", rate="0.065", fee="0.01", network_fee="0.0005"
    )
    return gateway


class TestStatusMapping:
    """Tests for provider status to local status mapping."""

    @pytest.mark.parametrize(
        "fine, coarse",
        [
            (FineStatus.WAITING, TransactionStatus.PENDING),
            (FineStatus.CONFIRMING, TransactionStatus.PENDING),
            (FineStatus.EXCHANGING, TransactionStatus.PENDING),
            (FineStatus.SENDING, TransactionStatus.PENDING),
            (FineStatus.FINISHED, TransactionStatus.COMPLETED),
            (FineStatus.FAILED, TransactionStatus.FAILED),
            (FineStatus.REFUNDED, TransactionStatus.FAILED),
        ],
    )
    def test_mapping(self, fine, coarse):
        assert coarse_status(fine) == coarse

    def test_every_status_mapped(self):
        assert set(COARSE_STATUS) == set(FineStatus)


class TestCreateSwap:
    """Tests for swap creation."""

    @pytest.mark.asyncio
    async def test_records_pending_swap(self, orchestrator, eth_wallet, gateway: DryRunGateway):
        tx = await create(orchestrator, eth_wallet, from_evm_chain_id=1, to_evm_chain_id=137)

        assert tx.kind == TransactionKind.SWAP
        assert tx.status == TransactionStatus.PENDING
        assert tx.external_hash.startswith("dryrun-")
        assert tx.from_address == eth_wallet.public_address
        assert tx.to_address == DESTINATION
        assert tx.amount == "1"
        assert tx.currency_symbol == "ETH"
        assert tx.fee == "0.01"
        assert tx.evm_chain_id == 1
        assert tx.source_evm_chain_id == 1
        assert tx.destination_evm_chain_id == 137

        status = await gateway.get_order_status(tx.external_hash)
        assert status.fine_status == FineStatus.WAITING

    @pytest.mark.asyncio
    async def test_missing_wallet(self, orchestrator):
        with pytest.raises(WalletNotFound):
            await orchestrator.create_swap(999, "ETH", "BTC", "1", DESTINATION, "0xrefund")

    @pytest.mark.asyncio
    async def test_invalid_amount_never_reaches_gateway(self, memory_store, eth_wallet):
        gateway = mock_gateway()
        orchestrator = SwapOrchestrator(memory_store, gateway)

        with pytest.raises(TypeError):
            await create(orchestrator, eth_wallet, amount=1.0)
        gateway.create_order.assert_not_called()

    @pytest.mark.asyncio
    async def test_order_failure_propagates(self, memory_store, eth_wallet):
        gateway = mock_gateway()
        gateway.create_order.side_effect = ExternalGatewayError("down", status_code=503)
        orchestrator = SwapOrchestrator(memory_store, gateway)

        with pytest.raises(ExternalGatewayError):
            await create(orchestrator, eth_wallet)
        assert await memory_store.get_transactions_by_wallet(eth_wallet.id) == []

    @pytest.mark.asyncio
    async def test_fee_quote_failure_is_partial(self, memory_store, eth_wallet):
        """The order exists remotely but nothing was recorded."""
        gateway = mock_gateway()
        gateway.get_rate.side_effect = ExternalGatewayError("rate limit", status_code=429)
        orchestrator = SwapOrchestrator(memory_store, gateway)

        with pytest.raises(PartialSwapCreationFailure) as exc_info:
            await create(orchestrator, eth_wallet)

        assert exc_info.value.external_id == "ext-1"
        assert exc_info.value.wallet_id == eth_wallet.id
        assert isinstance(exc_info.value.__cause__, ExternalGatewayError)

    @pytest.mark.asyncio
    async def test_store_failure_is_partial(self, memory_store, eth_wallet, gateway):
        orchestrator = SwapOrchestrator(memory_store, gateway)
        memory_store.record_transaction = AsyncMock(side_effect=RuntimeError("disk full"))

        with pytest.raises(PartialSwapCreationFailure) as exc_info:
            await create(orchestrator, eth_wallet)

        assert exc_info.value.external_id.startswith("dryrun-")
        assert "disk full" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_gateway_timeout(self, memory_store, eth_wallet):
        gateway = mock_gateway()

        async def slow_order(*args, **kwargs):
            await asyncio.sleep(1)

        gateway.create_order.side_effect = slow_order
        orchestrator = SwapOrchestrator(memory_store, gateway, call_timeout=0.01)

        with pytest.raises(ExternalGatewayError, match="timed out"):
            await create(orchestrator, eth_wallet)

    @pytest.mark.asyncio
    async def test_concurrent_swaps_on_one_wallet(self, orchestrator, eth_wallet):
        first, second = await asyncio.gather(
            create(orchestrator, eth_wallet), create(orchestrator, eth_wallet)
        )

        assert first.id != second.id
        assert first.external_hash != second.external_hash

    @pytest.mark.asyncio
    async def test_quote(self, orchestrator):
        rate = await orchestrator.quote("BTC", "ETH", "1")
        assert rate.estimated_amount == "15.5"


class TestReconcile:
    """Tests for reconciling pending swaps."""

    @pytest.mark.asyncio
    async def test_finished_swap_written_once(self, orchestrator, eth_wallet, gateway, memory_store):
        tx = await create(orchestrator, eth_wallet)
        gateway.set_order_status(tx.external_hash, FineStatus.FINISHED)

        assert await orchestrator.reconcile_pending() == 1
        stored = await memory_store.get_transaction_by_external_hash(tx.external_hash)
        assert stored.status == TransactionStatus.COMPLETED

        assert await orchestrator.reconcile_pending() == 0

    @pytest.mark.parametrize("fine", [FineStatus.FAILED, FineStatus.REFUNDED])
    @pytest.mark.asyncio
    async def test_failed_and_refunded(self, orchestrator, eth_wallet, gateway, memory_store, fine):
        tx = await create(orchestrator, eth_wallet)
        gateway.set_order_status(tx.external_hash, fine)

        assert await orchestrator.reconcile_pending() == 1
        stored = await memory_store.get_transaction_by_external_hash(tx.external_hash)
        assert stored.status == TransactionStatus.FAILED

    @pytest.mark.parametrize(
        "fine", [FineStatus.WAITING, FineStatus.CONFIRMING, FineStatus.EXCHANGING, FineStatus.SENDING]
    )
    @pytest.mark.asyncio
    async def test_in_progress_not_written(self, orchestrator, eth_wallet, gateway, memory_store, fine):
        tx = await create(orchestrator, eth_wallet)
        gateway.set_order_status(tx.external_hash, fine)

        assert await orchestrator.reconcile_pending() == 0
        stored = await memory_store.get_transaction_by_external_hash(tx.external_hash)
        assert stored.status == TransactionStatus.PENDING

    @pytest.mark.asyncio
    async def test_ignores_non_swaps(self, memory_store, eth_wallet):
        gateway = mock_gateway()
        orchestrator = SwapOrchestrator(memory_store, gateway)
        await memory_store.record_transaction(
            NewTransaction(
                wallet_id=eth_wallet.id,
                kind=TransactionKind.SEND,
                from_address=eth_wallet.public_address,
                to_address="0xdead",
                amount="1",
                currency_symbol="ETH",
                fee="0",
                status=TransactionStatus.PENDING,
                external_hash="0xsend",
            )
        )

        assert await orchestrator.reconcile_pending() == 0
        gateway.get_order_status.assert_not_called()

    @pytest.mark.asyncio
    async def test_one_failure_does_not_stop_pass(self, memory_store, eth_wallet, gateway):
        good_orchestrator = SwapOrchestrator(memory_store, gateway)
        bad = await create(good_orchestrator, eth_wallet)
        good = await create(good_orchestrator, eth_wallet)

        async def order_status(external_id):
            if external_id == bad.external_hash:
                raise ExternalGatewayError("boom", status_code=500)
            return OrderStatus(fine_status=FineStatus.FINISHED)

        flaky = mock_gateway()
        flaky.get_order_status.side_effect = order_status
        orchestrator = SwapOrchestrator(memory_store, flaky)

        assert await orchestrator.reconcile_pending() == 1
        assert (await memory_store.get_transaction_by_external_hash(good.external_hash)).status == TransactionStatus.COMPLETED
        assert (await memory_store.get_transaction_by_external_hash(bad.external_hash)).status == TransactionStatus.PENDING

    @pytest.mark.asyncio
    async def test_skips_record_held_by_another_pass(self, orchestrator, eth_wallet, gateway):
        tx = await create(orchestrator, eth_wallet)
        gateway.set_order_status(tx.external_hash, FineStatus.FINISHED)

        async with try_record_lock(f"swap:{tx.id}") as acquired:
            assert acquired
            assert await orchestrator.reconcile_pending() == 0

        assert await orchestrator.reconcile_pending() == 1

    @pytest.mark.asyncio
    async def test_overlapping_passes_write_once(self, orchestrator, eth_wallet, gateway):
        tx = await create(orchestrator, eth_wallet)
        gateway.set_order_status(tx.external_hash, FineStatus.FINISHED)

        results = await asyncio.gather(orchestrator.reconcile_pending(), orchestrator.reconcile_pending())
        assert sum(results) == 1

    @pytest.mark.asyncio
    async def test_lock_registry_empty_after_passes(self, orchestrator, eth_wallet, gateway):
        swaps = [await create(orchestrator, eth_wallet) for _ in range(20)]
        for tx in swaps[:15]:
            gateway.set_order_status(tx.external_hash, FineStatus.FINISHED)

        assert await orchestrator.reconcile_pending() == 15
        assert registered_lock_count() == 0

        assert await orchestrator.reconcile_pending() == 0
        assert registered_lock_count() == 0

    @pytest.mark.asyncio
    async def test_recheck_reads_single_record(self, orchestrator, eth_wallet, gateway, memory_store, monkeypatch):
        tx = await create(orchestrator, eth_wallet)
        gateway.set_order_status(tx.external_hash, FineStatus.FINISHED)
        history = AsyncMock(side_effect=AssertionError("wallet history should not be loaded"))
        monkeypatch.setattr(memory_store, "get_transactions_by_wallet", history)

        assert await orchestrator.reconcile_pending() == 1
        history.assert_not_called()


class TestSwapQueries:
    """Tests for swap lookups and manual status updates."""

    @pytest.mark.asyncio
    async def test_get_swap_status(self, orchestrator, eth_wallet, gateway):
        tx = await create(orchestrator, eth_wallet)
        gateway.set_order_status(tx.external_hash, FineStatus.EXCHANGING)

        status = await orchestrator.get_swap_status(tx.external_hash)
        assert status.fine_status == FineStatus.EXCHANGING

    @pytest.mark.asyncio
    async def test_update_swap_status(self, orchestrator, eth_wallet, memory_store):
        tx = await create(orchestrator, eth_wallet)

        assert await orchestrator.update_swap_status(tx.id, TransactionStatus.FAILED)
        with pytest.raises(InvalidStatusTransition):
            await orchestrator.update_swap_status(tx.id, TransactionStatus.PENDING)

    @pytest.mark.asyncio
    async def test_swaps_by_wallet_and_owner(self, orchestrator, eth_wallet, memory_store):
        swap = await create(orchestrator, eth_wallet)
        await memory_store.record_transaction(
            NewTransaction(
                wallet_id=eth_wallet.id,
                kind=TransactionKind.RECEIVE,
                from_address="0xother",
                to_address=eth_wallet.public_address,
                amount="2",
                currency_symbol="ETH",
                fee="0",
                status=TransactionStatus.COMPLETED,
                external_hash="0xreceive",
            )
        )

        assert [t.id for t in await orchestrator.get_swaps_by_wallet(eth_wallet.id)] == [swap.id]
        assert [t.id for t in await orchestrator.get_swaps_by_owner("user-1")] == [swap.id]
        assert await orchestrator.get_swaps_by_owner("user-2") == []
