"""Binance spot order client — signed MARKET orders sized in quote currency."""

import hashlib
import hmac
import logging
import time
from datetime import datetime, timezone
from urllib.parse import urlencode

from autotrade.broker.models import OrderResponse, OrderSide
from autotrade.config import Config
from autotrade.data.http import request_json
from autotrade.errors import ConfigurationError, ExecutionError, ProviderError

logger = logging.getLogger("autotrade.broker")

_PROVIDER = "binance"


class BinanceBroker:
    """Live (or testnet) execution sink.

    Orders are submitted exactly once; a failure is reported as
    ``ExecutionError`` and never retried here.
    """

    def __init__(self, config: Config, recv_window: int = 5000) -> None:
        self._base_url = config.exchange_base_url
        self._api_key = config.exchange_api_key
        self._api_secret = config.exchange_api_secret
        self._recv_window = recv_window

    def _sign(self, params: dict) -> str:
        query = urlencode(params)
        signature = hmac.new(
            self._api_secret.encode("utf-8"),
            query.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()
        return f"{query}&signature={signature}"

    async def submit_order(
        self,
        symbol: str,
        side: OrderSide,
        quantity: float,
        price: float,
    ) -> OrderResponse:
        """Place a MARKET order spending/receiving *quantity* quote currency.

        *price* is the snapshot price, used only when the exchange reports
        no executed quantity to average over.
        """
        if not self._api_key or not self._api_secret:
            raise ConfigurationError(_PROVIDER, "exchange API key/secret not configured")

        side = OrderSide(side)
        params = {
            "symbol": symbol,
            "side": side.value.upper(),
            "type": "MARKET",
            "quoteOrderQty": f"{quantity:.2f}",
            "recvWindow": self._recv_window,
            "timestamp": int(time.time() * 1000),
        }
        url = f"{self._base_url}/api/v3/order?{self._sign(params)}"
        try:
            data = await request_json(
                "post", url, _PROVIDER, headers={"X-MBX-APIKEY": self._api_key},
            )
        except ProviderError as exc:
            raise ExecutionError(_PROVIDER, f"order rejected: {exc}") from exc

        try:
            executed = float(data["executedQty"])
            quote = float(data["cummulativeQuoteQty"])
            order_id = str(data["orderId"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ExecutionError(_PROVIDER, f"unexpected order response: {data!r}") from exc
        if data.get("status") not in ("FILLED", "PARTIALLY_FILLED") or executed <= 0:
            raise ExecutionError(
                _PROVIDER, f"order {order_id} not filled (status={data.get('status')})",
            )

        transact = data.get("transactTime")
        fill_time = (
            datetime.fromtimestamp(transact / 1000, tz=timezone.utc).isoformat()
            if transact
            else datetime.now(timezone.utc).isoformat()
        )
        response = OrderResponse(
            order_id=order_id,
            symbol=symbol,
            side=side,
            quote_quantity=quote,
            base_quantity=executed,
            price=quote / executed if executed else price,
            time=fill_time,
        )
        logger.info(
            "Binance %s %s filled %.6f units for %.2f (order %s)",
            side.value.upper(), symbol, executed, quote, order_id,
        )
        return response
