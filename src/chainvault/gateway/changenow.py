"""ChangeNOW exchange integration.

API docs: https://documenter.getpostman.com/view/8180765/SVfTPnM8
"""

import json
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import httpx

from chainvault.chains import DEFAULT_EVM_NETWORK_NAMES
from chainvault.exceptions import ExternalGatewayError
from chainvault.gateway.base import (
    ExchangeGateway,
    FineStatus,
    OrderStatus,
    SwapOrder,
    SwapRate,
    network_name_for,
)

logger = logging.getLogger(__name__)

CHANGENOW_API_URL = "https://api.changenow.io/v2"


def _amount(value: Any, default: Optional[str] = None) -> Optional[str]:
    if value is None or value == "":
        return default
    return str(value)


class ChangeNowGateway(ExchangeGateway):
    """ChangeNOW v2 API client.

    Requests are authenticated with the x-changenow-api-key header.
    """

    def __init__(
        self,
        api_key: str,
        api_url: str = CHANGENOW_API_URL,
        timeout: float = 30.0,
        network_names: Optional[dict[int, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize ChangeNOW client.

        Args:
            api_key: ChangeNOW API key
            api_url: API base URL
            timeout: HTTP timeout in seconds
            network_names: EVM chain id to ChangeNOW network name
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        self.api_key = api_key
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.network_names = (
            dict(network_names) if network_names is not None else dict(DEFAULT_EVM_NETWORK_NAMES)
        )
        self._transport = transport

    @property
    def name(self) -> str:
        return "ChangeNOW"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.api_url,
            timeout=self.timeout,
            headers={"x-changenow-api-key": self.api_key},
            transport=self._transport,
        )

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        payload: Optional[dict] = None,
    ) -> dict:
        """Send a request and return the decoded JSON body.

        Numbers are decoded as Decimal so amounts keep their exact value.
        """
        try:
            async with self._client() as client:
                response = await client.request(method, path, params=params, json=payload)
        except httpx.TimeoutException as e:
            raise ExternalGatewayError(f"ChangeNOW request timed out: {path}") from e
        except httpx.HTTPError as e:
            raise ExternalGatewayError(f"ChangeNOW request failed: {type(e).__name__}") from e

        if response.status_code == 429:
            raise ExternalGatewayError("ChangeNOW rate limit exceeded", status_code=429)
        if response.status_code >= 400:
            logger.warning(f"ChangeNOW API error {response.status_code} on {path}")
            raise ExternalGatewayError(
                f"ChangeNOW API error: {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data = json.loads(response.content, parse_float=Decimal)
        except ValueError as e:
            raise ExternalGatewayError(
                "ChangeNOW returned invalid JSON", status_code=response.status_code
            ) from e

        if not isinstance(data, dict):
            raise ExternalGatewayError(
                "ChangeNOW returned an unexpected response", status_code=response.status_code
            )
        return data

    @staticmethod
    def _without_none(params: dict) -> dict:
        return {k: v for k, v in params.items() if v is not None}

    async def get_rate(
        self,
        from_currency: str,
        to_currency: str,
        amount: str,
        from_evm_chain_id: Optional[int] = None,
        to_evm_chain_id: Optional[int] = None,
    ) -> SwapRate:
        params = self._without_none({
            "fromCurrency": from_currency.lower(),
            "toCurrency": to_currency.lower(),
            "fromAmount": amount,
            "fromNetwork": network_name_for(from_evm_chain_id, self.network_names),
            "toNetwork": network_name_for(to_evm_chain_id, self.network_names),
        })
        data = await self._request("GET", "/exchange/estimated-amount", params=params)

        estimated = _amount(data.get("toAmount"))
        if estimated is None:
            raise ExternalGatewayError("ChangeNOW estimate is missing toAmount")

        rate = _amount(data.get("rate"))
        if rate is None:
            try:
                rate = str(Decimal(estimated) / Decimal(amount))
            except (InvalidOperation, ArithmeticError):
                rate = "0"

        return SwapRate(
            estimated_amount=estimated,
            rate=rate,
            fee=_amount(data.get("fee"), "0"),
            network_fee=_amount(data.get("networkFee"), "0"),
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
        payload = self._without_none({
            "fromCurrency": from_currency.lower(),
            "toCurrency": to_currency.lower(),
            "fromAmount": amount,
            "address": destination_address,
            "refundAddress": refund_address,
            "fromNetwork": network_name_for(from_evm_chain_id, self.network_names),
            "toNetwork": network_name_for(to_evm_chain_id, self.network_names),
        })
        data = await self._request("POST", "/exchange", payload=payload)

        external_id = data.get("id")
        deposit_address = data.get("payinAddress")
        if not external_id or not deposit_address:
            raise ExternalGatewayError("ChangeNOW order response is missing id or payinAddress")

        logger.info(f"ChangeNOW order {external_id} created: {amount} {from_currency} -> {to_currency}")

        return SwapOrder(
            external_id=str(external_id),
            deposit_address=deposit_address,
            payout_address=destination_address,
            from_currency=from_currency,
            to_currency=to_currency,
            amount_in=amount,
            expected_amount_out=_amount(data.get("toAmount") or data.get("expectedAmountTo"), "0"),
            refund_address=refund_address,
            from_evm_chain_id=from_evm_chain_id,
            to_evm_chain_id=to_evm_chain_id,
        )

    async def get_order_status(self, external_id: str) -> OrderStatus:
        data = await self._request("GET", "/exchange/by-id", params={"id": external_id})

        raw_status = data.get("status")
        try:
            fine_status = FineStatus(str(raw_status).lower())
        except ValueError:
            raise ExternalGatewayError(
                f"ChangeNOW returned unknown status {raw_status!r} for order {external_id}"
            ) from None

        return OrderStatus(
            fine_status=fine_status,
            payin_hash=data.get("payinHash"),
            payout_hash=data.get("payoutHash"),
            from_amount=_amount(data.get("amountFrom") or data.get("fromAmount")),
            to_amount=_amount(data.get("amountTo") or data.get("toAmount")),
            expected_amount_out=_amount(
                data.get("expectedAmountTo") or data.get("expectedToAmount")
            ),
        )
