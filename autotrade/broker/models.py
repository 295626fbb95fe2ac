"""Broker data models — what the execution sink hands back."""

from dataclasses import dataclass
from enum import Enum


class OrderSide(str, Enum):
    BUY = "buy"
    SELL = "sell"


@dataclass(frozen=True)
class OrderResponse:
    """Result of a filled market order.

    ``quote_quantity`` is the notional actually spent or received,
    ``base_quantity`` the units of the traded asset and ``price`` the
    average fill price.
    """

    order_id: str
    symbol: str
    side: OrderSide
    quote_quantity: float
    base_quantity: float
    price: float
    time: str
