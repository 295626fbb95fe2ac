"""Bot configuration and state.

Each bot trades one symbol for one owner.  Status transitions
(start / pause / stop) come from outside the engine; the engine only
reads ``status`` as a gate and mutates the balance, position and counters.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Optional


class BotStatus(str, Enum):
    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"


# Composite-risk ceiling per risk level (1 = very conservative).
RISK_LEVEL_THRESHOLDS: dict[int, float] = {
    1: 20.0,
    2: 35.0,
    3: 50.0,
    4: 70.0,
    5: 85.0,
}


@dataclass(frozen=True)
class RiskSettings:
    """Per-bot risk preferences.

    ``max_trade_fraction`` is the share of equity a single trade may use
    (0.05 = 5 %).  ``stop_loss`` / ``take_profit`` are fractions of entry
    price and are passed to the reasoning source as context.
    """

    risk_level: int = 3
    max_trade_fraction: float = 0.05
    stop_loss: float = 0.02
    take_profit: float = 0.04

    def __post_init__(self) -> None:
        if self.risk_level not in RISK_LEVEL_THRESHOLDS:
            raise ValueError(f"risk_level must be 1..5, got {self.risk_level}")
        if not 0 < self.max_trade_fraction <= 1:
            raise ValueError(
                f"max_trade_fraction must be in (0, 1], got {self.max_trade_fraction}"
            )

    @property
    def max_risk_score(self) -> float:
        return RISK_LEVEL_THRESHOLDS[self.risk_level]

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "RiskSettings":
        data = data or {}
        return cls(
            risk_level=int(data.get("risk_level", data.get("riskLevel", 3))),
            max_trade_fraction=float(
                data.get("max_trade_fraction", data.get("maxTradeAmount", 0.05))
            ),
            stop_loss=float(data.get("stop_loss", data.get("stopLoss", 0.02))),
            take_profit=float(data.get("take_profit", data.get("takeProfit", 0.04))),
        )


@dataclass
class Bot:
    """A trading bot and its running state."""

    id: str
    owner_id: str
    symbol: str
    initial_balance: float
    current_balance: float
    name: str = ""
    status: BotStatus = BotStatus.STOPPED
    risk_settings: RiskSettings = field(default_factory=RiskSettings)
    daily_trade_count: int = 0
    total_trades: int = 0
    winning_trades: int = 0
    win_rate: float = 0.0
    max_drawdown: float = 0.0
    daily_pnl: float = 0.0
    total_pnl: float = 0.0
    position_units: float = 0.0
    position_avg_price: float = 0.0
    peak_equity: float = 0.0
    trading_day: str = ""

    def __post_init__(self) -> None:
        # Accept raw strings from storage / config, reject unknown values.
        self.status = BotStatus(self.status)
        if self.peak_equity <= 0:
            self.peak_equity = max(self.initial_balance, self.current_balance)

    @property
    def is_running(self) -> bool:
        return self.status is BotStatus.RUNNING

    @property
    def has_position(self) -> bool:
        return self.position_units > 0

    def equity(self, price: Optional[float] = None) -> float:
        """Cash plus the open position marked at *price* (or its entry price)."""
        mark = price if price is not None else self.position_avg_price
        return self.current_balance + self.position_units * mark

    def to_dict(self) -> dict:
        data = asdict(self)
        data["status"] = self.status.value
        return data
