"""Paper execution sink — fills every order immediately at the quoted price."""

import itertools
import logging
from datetime import datetime, timezone

from autotrade.broker.models import OrderResponse, OrderSide
from autotrade.errors import ExecutionError

logger = logging.getLogger("autotrade.broker")


class PaperBroker:
    """Simulated broker used in ``paper`` mode and in tests."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self.orders: list[OrderResponse] = []

    async def submit_order(
        self,
        symbol: str,
        side: OrderSide,
        quantity: float,
        price: float,
    ) -> OrderResponse:
        """Fill *quantity* (quote notional) of *symbol* at *price*."""
        if quantity <= 0 or price <= 0:
            raise ExecutionError(
                "paper", f"invalid order: quantity={quantity} price={price}",
            )
        response = OrderResponse(
            order_id=f"paper-{next(self._ids)}",
            symbol=symbol,
            side=OrderSide(side),
            quote_quantity=quantity,
            base_quantity=quantity / price,
            price=price,
            time=datetime.now(timezone.utc).isoformat(),
        )
        self.orders.append(response)
        logger.info(
            "Paper %s %s %.2f @ %.6f (%s)",
            response.side.value.upper(), symbol, quantity, price, response.order_id,
        )
        return response
