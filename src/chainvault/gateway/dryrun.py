"""Dry-run exchange gateway for development and tests (no network)."""

import uuid
from decimal import Decimal, InvalidOperation
from typing import Optional

from chainvault.exceptions import ExternalGatewayError
from chainvault.gateway.base import ExchangeGateway, FineStatus, OrderStatus, SwapOrder, SwapRate

# Simulated rates for demonstration purposes only
SIMULATED_RATES: dict[tuple[str, str], Decimal] = {
    ("BTC", "ETH"): Decimal("15.5"),
    ("ETH", "BTC"): Decimal("0.065"),
    ("ETH", "MATIC"): Decimal("500"),
    ("USDT", "BTC"): Decimal("0.000035"),
}
DEFAULT_RATE = Decimal("0.05")
FEE_PERCENT = Decimal("0.01")  # 1%
NETWORK_FEE = Decimal("0.0005")


def _parse_amount(amount: str) -> Decimal:
    try:
        value = Decimal(str(amount))
    except InvalidOperation:
        raise ExternalGatewayError(f"Invalid amount: {amount!r}", status_code=400) from None
    if not value.is_finite() or value <= 0:
        raise ExternalGatewayError(f"Invalid amount: {amount!r}", status_code=400)
    return value


def _fmt(value: Decimal) -> str:
    return format(value.normalize(), "f")


class DryRunGateway(ExchangeGateway):
    """Simulated exchange with fixed rates and in-memory orders.

    Orders start as waiting. Tests and demos move them along with
    set_order_status().
    """

    def __init__(self):
        self._orders: dict[str, SwapOrder] = {}
        self._statuses: dict[str, FineStatus] = {}

    @property
    def name(self) -> str:
        return "dryrun"

    async def get_rate(
        self,
        from_currency: str,
        to_currency: str,
        amount: str,
        from_evm_chain_id: Optional[int] = None,
        to_evm_chain_id: Optional[int] = None,
    ) -> SwapRate:
        value = _parse_amount(amount)
        rate = SIMULATED_RATES.get((from_currency.upper(), to_currency.upper()), DEFAULT_RATE)

        return SwapRate(
            estimated_amount=_fmt(value * rate),
            rate=_fmt(rate),
            fee=_fmt(value * FEE_PERCENT),
            network_fee=_fmt(NETWORK_FEE),
            from_evm_chain_id=from_evm_chain_id,
            to_evm_chain_id=to_evm_chain_id,
        )

    async def create_order(
        self,
        from_currency: str,
        to_currency: str,
        amount: str,
        destination_address: str,
        refund_address: str,
        from_evm_chain_id: Optional[int] = None,
        to_evm_chain_id: Optional[int] = None,
    ) -> SwapOrder:
        estimate = await self.get_rate(
            from_currency, to_currency, amount, from_evm_chain_id, to_evm_chain_id
        )

        external_id = f"dryrun-{uuid.uuid4().hex}"
        order = SwapOrder(
            external_id=external_id,
            deposit_address=f"sim:{from_currency.lower()}:{external_id[-12:]}",
            payout_address=destination_address,
            from_currency=from_currency,
            to_currency=to_currency,
            amount_in=amount,
            expected_amount_out=estimate.estimated_amount,
            refund_address=refund_address,
            from_evm_chain_id=from_evm_chain_id,
            to_evm_chain_id=to_evm_chain_id,
        )
        self._orders[external_id] = order
        self._statuses[external_id] = FineStatus.WAITING
        return order

    async def get_order_status(self, external_id: str) -> OrderStatus:
        order = self._orders.get(external_id)
        if order is None:
            raise ExternalGatewayError(f"Unknown order: {external_id}", status_code=404)

        status = self._statuses[external_id]
        finished = status == FineStatus.FINISHED
        return OrderStatus(
            fine_status=status,
            payin_hash=f"sim-payin-{external_id[-12:]}" if status != FineStatus.WAITING else None,
            payout_hash=f"sim-payout-{external_id[-12:]}" if finished else None,
            from_amount=order.amount_in,
            to_amount=order.expected_amount_out if finished else None,
            expected_amount_out=order.expected_amount_out,
        )

    def set_order_status(self, external_id: str, status: FineStatus) -> None:
        """Move a simulated order to another status."""
        if external_id not in self._orders:
            raise KeyError(external_id)
        self._statuses[external_id] = FineStatus(status)
