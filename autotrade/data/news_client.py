"""Crypto news headlines from the CryptoCompare public news API."""

import logging
from datetime import datetime, timezone

from autotrade.data.http import request_json
from autotrade.data.models import NewsItem

logger = logging.getLogger("autotrade.news")

_PROVIDER = "cryptocompare-news"
_NEWS_URL = "https://min-api.cryptocompare.com/data/v2/news/"


def base_asset(symbol: str) -> str:
    """``"BTCUSDT"`` → ``"BTC"`` (strips common quote currencies)."""
    for quote in ("USDT", "USDC", "BUSD", "FDUSD", "USD", "BTC", "ETH"):
        if symbol.endswith(quote) and len(symbol) > len(quote):
            return symbol[: -len(quote)]
    return symbol


class NewsClient:
    """Fetches recent English headlines for a set of symbols."""

    def __init__(self, url: str = _NEWS_URL) -> None:
        self._url = url

    async def fetch_headlines(self, symbols: list[str], limit: int = 10) -> list[NewsItem]:
        categories = ",".join(sorted({base_asset(s) for s in symbols}))
        params = {"lang": "EN", "categories": categories}
        data = await request_json("get", self._url, _PROVIDER, params=params)

        items: list[NewsItem] = []
        for raw in (data.get("Data") or [])[:limit]:
            published = raw.get("published_on")
            items.append(
                NewsItem(
                    title=raw.get("title", ""),
                    source=raw.get("source", ""),
                    published_at=(
                        datetime.fromtimestamp(published, tz=timezone.utc).isoformat()
                        if isinstance(published, (int, float)) else ""
                    ),
                    url=raw.get("url", ""),
                )
            )
        return items
