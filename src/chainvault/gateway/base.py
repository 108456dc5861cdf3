"""Exchange gateway base interface.

A gateway talks to a third-party swap service. Every amount crossing this
interface is a decimal string.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class FineStatus(str, Enum):
    """Order status as reported by the exchange provider."""

    WAITING = "waiting"
    CONFIRMING = "confirming"
    EXCHANGING = "exchanging"
    SENDING = "sending"
    FINISHED = "finished"
    FAILED = "failed"
    REFUNDED = "refunded"


@dataclass
class SwapRate:
    """Estimated outcome of a swap."""

    estimated_amount: str
    rate: str
    fee: str
    network_fee: str
    from_evm_chain_id: Optional[int] = None
    to_evm_chain_id: Optional[int] = None


@dataclass
class SwapOrder:
    """Order created at the exchange provider."""

    external_id: str
    deposit_address: str
    payout_address: str
    from_currency: str
    to_currency: str
    amount_in: str
    expected_amount_out: str
    refund_address: Optional[str] = None
    from_evm_chain_id: Optional[int] = None
    to_evm_chain_id: Optional[int] = None


@dataclass
class OrderStatus:
    """Current state of an exchange order."""

    fine_status: FineStatus
    payin_hash: Optional[str] = None
    payout_hash: Optional[str] = None
    from_amount: Optional[str] = None
    to_amount: Optional[str] = None
    expected_amount_out: Optional[str] = None


def network_name_for(chain_id: Optional[int], network_names: dict[int, str]) -> Optional[str]:
    """Map an EVM chain id to the provider's network name.

    Unknown or missing ids give no network hint.
    """
    if not chain_id:
        return None
    return network_names.get(chain_id)


class ExchangeGateway(ABC):
    """Abstract base class for exchange providers."""

    @abstractmethod
    async def get_rate(
        self,
        from_currency: str,
        to_currency: str,
        amount: str,
        from_evm_chain_id: Optional[int] = None,
        to_evm_chain_id: Optional[int] = None,
    ) -> SwapRate:
        """Get estimated exchange rate for a swap.

        Args:
            from_currency: Source currency ticker (e.g., "ETH", "BTC")
            to_currency: Target currency ticker
            amount: Amount in source currency, as a decimal string
            from_evm_chain_id: EVM chain id of the source network
            to_evm_chain_id: EVM chain id of the target network

        Raises:
            ExternalGatewayError: On any provider failure
        """
        raise NotImplementedError()

    @abstractmethod
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
        """Create a swap order.

        Raises:
            ExternalGatewayError: On any provider failure
        """
        raise NotImplementedError()

    @abstractmethod
    async def get_order_status(self, external_id: str) -> OrderStatus:
        """Get current status of an order.

        Raises:
            ExternalGatewayError: On any provider failure or unknown status
        """
        raise NotImplementedError()

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name."""
        raise NotImplementedError()
