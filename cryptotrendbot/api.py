"""Asynchronous client for the exchange's public market data API.

Tickers and candles are cached in memory for a short freshness window so
that an on-demand command and a scheduled cycle hitting the same symbol
within a few seconds share one upstream request.
"""

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Callable, Dict, NamedTuple, Optional, Tuple

import aiohttp
from aiolimiter import AsyncLimiter

from . import config

EXCHANGE_LIMITER = AsyncLimiter(120, 60)
MAX_ATTEMPTS = 3


@dataclass(frozen=True)
class Ticker:
    """Snapshot of an instrument's current market state."""

    symbol: str
    open: float
    high: float
    low: float
    close: float
    changes: Tuple[float, ...]
    bid: float
    ask: float

    @classmethod
    def from_json(cls, data: dict) -> "Ticker":
        return cls(
            symbol=str(data["symbol"]),
            open=float(data["open"]),
            high=float(data["high"]),
            low=float(data["low"]),
            close=float(data["close"]),
            changes=tuple(float(c) for c in data.get("changes") or ()),
            bid=float(data["bid"]),
            ask=float(data["ask"]),
        )


class Candle(NamedTuple):
    timestamp: int
    open: float
    high: float
    low: float
    close: float
    volume: float


# newest bar first
CandleSeries = Tuple[Candle, ...]


class CacheEntry(NamedTuple):
    payload: Any
    fetched_at: float


def exchange_symbol(symbol: str) -> str:
    """Return the exchange pair for ``symbol``, e.g. ``BTC`` -> ``btcusd``."""
    return f"{symbol.strip().lower()}{config.QUOTE_CURRENCY}"


def retry_delay(
    retry_after: Optional[str], attempt: int, now: Optional[datetime] = None
) -> float:
    """Return the seconds to wait before retrying a rate limited request.

    ``Retry-After`` may hold delta-seconds or an HTTP date. A missing or
    unparsable header falls back to exponential back-off. The result is
    clamped to ``[0, config.HTTP_TIMEOUT]``.
    """
    wait = float(2**attempt)
    if retry_after:
        try:
            wait = float(retry_after)
        except ValueError:
            try:
                when = parsedate_to_datetime(retry_after)
            except (TypeError, ValueError):
                when = None
            if when is not None:
                if when.tzinfo is None:
                    when = when.replace(tzinfo=timezone.utc)
                wait = (when - (now or datetime.now(timezone.utc))).total_seconds()
    if wait != wait:  # NaN
        wait = float(2**attempt)
    return max(0.0, min(wait, float(config.HTTP_TIMEOUT)))


async def api_get(
    url: str,
    session: Optional[aiohttp.ClientSession] = None,
    headers: Optional[dict] = None,
    user: Optional[int] = None,
) -> Optional[aiohttp.ClientResponse]:
    """Perform an HTTP GET request with rate limiting.

    Parameters
    ----------
    url:
        Endpoint to request.
    session:
        Existing ``ClientSession`` to use. If omitted a new one is created.
    headers:
        Optional headers to include in the request.
    user:
        Chat ID used for logging purposes.

    Returns
    -------
    Optional[aiohttp.ClientResponse]
        The response object or ``None`` when the request fails.
    """
    owns_session = session is None
    if owns_session:
        session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=config.HTTP_TIMEOUT)
        )
    try:
        for attempt in range(MAX_ATTEMPTS):
            async with EXCHANGE_LIMITER:
                resp = await session.get(url, headers=headers)
            config.logger.info(
                "api_request user=%s url=%s status=%s", user, url, resp.status
            )
            if resp.status != 429:
                if owns_session:
                    await resp.read()
                return resp
            retry_after = resp.headers.get("Retry-After")
            resp.release()
            if attempt < MAX_ATTEMPTS - 1:
                await asyncio.sleep(retry_delay(retry_after, attempt))
        return resp
    except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
        config.logger.error("api request failed: %s %r", url, exc)
        return None
    finally:
        if owns_session and session:
            await session.close()


class MarketDataClient:
    """Cache-or-fetch access to tickers and candles.

    Entries are replaced wholesale on refresh; nothing is evicted apart from
    that, the tracked symbol set being small and operator controlled.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        ticker_ttl: Optional[float] = None,
        candle_ttl: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.base_url = (base_url or config.EXCHANGE_BASE_URL).rstrip("/")
        self.ticker_ttl = config.TICKER_CACHE_TTL if ticker_ttl is None else ticker_ttl
        self.candle_ttl = config.CANDLE_CACHE_TTL if candle_ttl is None else candle_ttl
        self.clock = clock
        self.ticker_cache: Dict[str, CacheEntry] = {}
        self.candle_cache: Dict[Tuple[str, str], CacheEntry] = {}
        self._session: Optional[aiohttp.ClientSession] = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=config.HTTP_TIMEOUT)
            )
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    def _fresh(self, entry: Optional[CacheEntry], ttl: float) -> bool:
        return entry is not None and self.clock() - entry.fetched_at < ttl

    async def _get_json(self, url: str, what: str, user: Optional[int]) -> Any:
        resp = await api_get(url, session=self._get_session(), user=user)
        if not resp:
            return None
        if resp.status != 200:
            config.logger.error(
                "failed to fetch %s: HTTP %s %s", what, resp.status, resp.reason
            )
            resp.release()
            return None
        try:
            return await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            config.logger.error("invalid JSON for %s: %s", what, exc)
            return None

    async def get_ticker(
        self, symbol: str, *, user: Optional[int] = None
    ) -> Optional[Ticker]:
        """Return the current ticker for ``symbol`` or ``None``."""
        pair = exchange_symbol(symbol)
        cached = self.ticker_cache.get(pair)
        if self._fresh(cached, self.ticker_ttl):
            return cached.payload

        data = await self._get_json(
            f"{self.base_url}/ticker/{pair}", f"ticker {pair}", user
        )
        if data is None:
            return None
        try:
            ticker = Ticker.from_json(data)
        except (KeyError, TypeError, ValueError) as exc:
            config.logger.error("malformed ticker for %s: %r", pair, exc)
            return None
        self.ticker_cache[pair] = CacheEntry(ticker, self.clock())
        return ticker

    async def get_candles(
        self, symbol: str, timeframe: str, *, user: Optional[int] = None
    ) -> Optional[CandleSeries]:
        """Return candles for ``symbol`` newest first, or ``None``.

        The exchange returns rows oldest first as
        ``[time, open, high, low, close, volume]``.
        """
        if timeframe not in config.TIMEFRAMES:
            config.logger.warning("unsupported timeframe %s", timeframe)
            return None
        pair = exchange_symbol(symbol)
        key = (pair, timeframe)
        cached = self.candle_cache.get(key)
        if self._fresh(cached, self.candle_ttl):
            return cached.payload

        data = await self._get_json(
            f"{self.base_url}/candles/{pair}/{timeframe}",
            f"candles {pair} {timeframe}",
            user,
        )
        if not data:
            return None
        try:
            rows = [
                Candle(
                    int(row[0]),
                    float(row[1]),
                    float(row[2]),
                    float(row[3]),
                    float(row[4]),
                    float(row[5]),
                )
                for row in data
            ]
        except (IndexError, TypeError, ValueError) as exc:
            config.logger.error("malformed candles for %s %s: %r", pair, timeframe, exc)
            return None
        series: CandleSeries = tuple(reversed(rows))
        self.candle_cache[key] = CacheEntry(series, self.clock())
        return series

    async def get_multi_timeframe(
        self, symbol: str, timeframes, *, user: Optional[int] = None
    ) -> Dict[str, CandleSeries]:
        """Fetch several timeframes concurrently, dropping those without data."""
        timeframes = list(timeframes)
        results = await asyncio.gather(
            *(self.get_candles(symbol, tf, user=user) for tf in timeframes)
        )
        return {tf: series for tf, series in zip(timeframes, results) if series}
