"""Exchange gateway factory."""

import logging
from typing import Optional

from chainvault.config import Settings, get_settings
from chainvault.gateway.base import ExchangeGateway
from chainvault.gateway.changenow import ChangeNowGateway
from chainvault.gateway.dryrun import DryRunGateway

logger = logging.getLogger(__name__)


def create_gateway(settings: Optional[Settings] = None) -> ExchangeGateway:
    """Create the exchange gateway selected by settings.exchange_provider.

    Providers:
    - dryrun (default): simulated rates and orders
    - changenow: ChangeNOW v2 API

    Raises:
        ValueError: If the provider is unknown or ChangeNOW has no API key
    """
    settings = settings or get_settings()
    provider = settings.exchange_provider.lower()

    if provider == "changenow":
        if not settings.changenow_api_key:
            raise ValueError("CHANGENOW_API_KEY is required for the changenow provider")
        gateway: ExchangeGateway = ChangeNowGateway(
            api_key=settings.changenow_api_key,
            api_url=settings.changenow_api_url,
            timeout=settings.gateway_timeout,
            network_names=settings.evm_network_names,
        )
    elif provider == "dryrun":
        gateway = DryRunGateway()
    else:
        raise ValueError(f"Unknown exchange provider: {settings.exchange_provider}")

    logger.info(f"Using {gateway.name} exchange gateway")
    return gateway
