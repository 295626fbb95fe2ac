"""Trade records written by the execution step."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class TradeStatus(str, Enum):
    PENDING = "pending"
    EXECUTED = "executed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class TradeRecord:
    """A trade as stored by ``TradeRepo``.

    ``quantity`` is the quote-currency notional; ``pnl`` is only non-zero
    on sells that realised a profit or loss.
    """

    id: int
    bot_id: str
    symbol: str
    action: str
    quantity: float
    price: float
    status: TradeStatus
    pnl: float = 0.0
    confidence: Optional[float] = None
    exchange_order_id: Optional[str] = None
    owner_id: str = ""
    notes: str = ""
    created_at: str = ""
    executed_at: Optional[str] = None
    trading_day: str = ""

    @property
    def total_value(self) -> float:
        return self.quantity

    @classmethod
    def from_row(cls, row: dict) -> "TradeRecord":
        return cls(
            id=row["id"],
            bot_id=row["bot_id"],
            symbol=row["symbol"],
            action=row["action"],
            quantity=row["quantity"],
            price=row["price"],
            status=TradeStatus(row["status"]),
            pnl=row.get("pnl") or 0.0,
            confidence=row.get("confidence"),
            exchange_order_id=row.get("exchange_order_id"),
            owner_id=row.get("owner_id") or "",
            notes=row.get("notes") or "",
            created_at=row.get("created_at", ""),
            executed_at=row.get("executed_at"),
            trading_day=row.get("trading_day") or "",
        )
