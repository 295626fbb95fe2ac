"""Binance public market-data client (24h tickers and klines)."""

import logging
from datetime import datetime, timezone

from autotrade.config import Config
from autotrade.data.http import request_json
from autotrade.data.models import MarketSnapshot, PricePoint
from autotrade.errors import ProviderError

logger = logging.getLogger("autotrade.market")

_PROVIDER = "binance-market"


class BinanceMarketClient:
    """Async client for the unauthenticated Binance market endpoints."""

    def __init__(self, config: Config) -> None:
        self._base_url = config.market_data_base_url

    async def fetch_tickers(self, symbols: list[str]) -> dict[str, MarketSnapshot]:
        """Fetch 24h tickers for *symbols* in a single request.

        Returns:
            ``{symbol: MarketSnapshot}``; symbols the exchange does not
            report are absent.
        """
        if not symbols:
            return {}
        url = f"{self._base_url}/api/v3/ticker/24hr"
        # Binance expects a compact JSON array: ["BTCUSDT","ETHUSDT"]
        params = {"symbols": "[" + ",".join(f'"{s}"' for s in symbols) + "]"}
        data = await request_json("get", url, _PROVIDER, params=params)
        if isinstance(data, dict):
            data = [data]

        now = datetime.now(timezone.utc).isoformat()
        snapshots: dict[str, MarketSnapshot] = {}
        for t in data:
            try:
                snapshots[t["symbol"]] = MarketSnapshot(
                    symbol=t["symbol"],
                    price=float(t["lastPrice"]),
                    change_24h=float(t["priceChange"]),
                    change_percent_24h=float(t["priceChangePercent"]),
                    volume_24h=float(t["volume"]),
                    high_24h=float(t["highPrice"]),
                    low_24h=float(t["lowPrice"]),
                    timestamp=now,
                )
            except (KeyError, TypeError, ValueError) as exc:
                raise ProviderError(_PROVIDER, f"malformed ticker: {exc}") from exc
        return snapshots

    async def fetch_klines(
        self,
        symbol: str,
        interval: str = "1h",
        limit: int = 100,
    ) -> list[PricePoint]:
        """Fetch OHLCV bars ordered oldest-first."""
        url = f"{self._base_url}/api/v3/klines"
        params = {"symbol": symbol, "interval": interval, "limit": limit}
        data = await request_json("get", url, _PROVIDER, params=params)

        points: list[PricePoint] = []
        for k in data:
            try:
                points.append(
                    PricePoint(
                        timestamp=datetime.fromtimestamp(
                            k[0] / 1000, tz=timezone.utc,
                        ).isoformat(),
                        open=float(k[1]),
                        high=float(k[2]),
                        low=float(k[3]),
                        close=float(k[4]),
                        volume=float(k[5]),
                    )
                )
            except (IndexError, TypeError, ValueError) as exc:
                raise ProviderError(_PROVIDER, f"malformed kline: {exc}") from exc
        return points
