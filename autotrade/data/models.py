"""Market data models — typed representations of provider payloads."""

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class PricePoint:
    """A single OHLCV bar.  Series are ordered oldest-first."""

    timestamp: str
    open: float
    high: float
    low: float
    close: float
    volume: float


@dataclass(frozen=True)
class MarketSnapshot:
    """24h rolling ticker for one symbol."""

    symbol: str
    price: float
    change_24h: float
    change_percent_24h: float
    volume_24h: float  # base-asset volume
    high_24h: float
    low_24h: float
    timestamp: str

    @property
    def quote_volume_24h(self) -> float:
        return self.volume_24h * self.price


@dataclass(frozen=True)
class SentimentReading:
    """Sentiment score (0 very bearish … 100 very bullish) for one symbol."""

    symbol: str
    score: float
    label: str = "Neutral"
    key_factors: tuple[str, ...] = ()


@dataclass(frozen=True)
class SentimentReport:
    """Sentiment for a batch of symbols plus an overall description."""

    overall: str
    readings: dict[str, SentimentReading] = field(default_factory=dict)
    analysed_at: Optional[str] = None

    def for_symbol(self, symbol: str) -> Optional[SentimentReading]:
        return self.readings.get(symbol)


@dataclass(frozen=True)
class NewsItem:
    """A headline used as reasoning context."""

    title: str
    source: str
    published_at: str
    url: str = ""
