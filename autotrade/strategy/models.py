"""Strategy data models — indicator bundles and trade signals."""

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Optional


class Action(str, Enum):
    BUY = "buy"
    SELL = "sell"
    HOLD = "hold"


class SignalSource(str, Enum):
    LLM = "llm"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class MacdValues:
    """MACD line, signal (EMA-9 of the line) and histogram.

    ``signal`` and ``histogram`` are ``None`` until enough points exist
    to seed the signal EMA.
    """

    line: float
    signal: Optional[float] = None
    histogram: Optional[float] = None


@dataclass(frozen=True)
class BollingerBands:
    upper: float
    middle: float
    lower: float


@dataclass(frozen=True)
class SupportResistance:
    support: float
    resistance: float


@dataclass(frozen=True)
class Indicators:
    """Indicators derived from one price series.  ``None`` = unavailable."""

    sma20: Optional[float] = None
    sma50: Optional[float] = None
    ema12: Optional[float] = None
    ema26: Optional[float] = None
    rsi: Optional[float] = None
    macd: Optional[MacdValues] = None
    bollinger: Optional[BollingerBands] = None
    support_resistance: Optional[SupportResistance] = None
    volume_avg: Optional[float] = None
    price_change_pct: Optional[float] = None
    volume_change_pct: Optional[float] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class TradeSignal:
    """One recommendation per bot per cycle.

    ``quantity`` is a quote-currency notional (e.g. USDT).
    """

    symbol: str
    action: Action
    quantity: float
    confidence: float
    reasoning: str
    question: str = ""
    source: SignalSource = SignalSource.FALLBACK

    def __post_init__(self) -> None:
        object.__setattr__(self, "action", Action(self.action))
        object.__setattr__(self, "source", SignalSource(self.source))
        if not 0 <= self.confidence <= 100:
            raise ValueError(f"confidence must be 0..100, got {self.confidence}")
        if self.quantity < 0:
            raise ValueError(f"quantity must be non-negative, got {self.quantity}")
