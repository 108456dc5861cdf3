"""Exchange provider integrations."""

from chainvault.gateway.base import (
    ExchangeGateway,
    FineStatus,
    OrderStatus,
    SwapOrder,
    SwapRate,
)
from chainvault.gateway.changenow import ChangeNowGateway
from chainvault.gateway.dryrun import DryRunGateway
from chainvault.gateway.factory import create_gateway

__all__ = [
    "ChangeNowGateway",
    "DryRunGateway",
    "ExchangeGateway",
    "FineStatus",
    "OrderStatus",
    "SwapOrder",
    "SwapRate",
    "create_gateway",
]
