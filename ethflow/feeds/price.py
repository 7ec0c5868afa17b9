from typing import Any, List, Optional
import ccxt  # type: ignore
import ccxt.async_support as ccxt_async  # type: ignore
from loguru import logger
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from ethflow.core.clock import HOUR_MS
from ethflow.core.models import CurrentPrice, PricePoint
from ethflow.feeds.errors import MalformedPayload, RateLimited, UpstreamRejected, UpstreamUnavailable, is_transient


def _translate(source: str, e: Exception) -> UpstreamUnavailable:
    # RateLimitExceeded derives from DDoSProtection in ccxt
    if isinstance(e, ccxt.DDoSProtection):
        return RateLimited(source, str(e), status=429)
    if isinstance(e, ccxt.BadResponse):
        return MalformedPayload(source, str(e))
    if isinstance(e, ccxt.ExchangeError):
        return UpstreamRejected(source, str(e))
    return UpstreamUnavailable(source, str(e))


class ExchangePriceFeed:
    """ETH spot price from a ccxt exchange: current ticker plus recent close prices."""

    def __init__(self, exchange_id: str = "coinbase", symbol: str = "ETH/USD", timeframe: str = "5m",
                 timeout_s: float = 15.0, retry_attempts: int = 3, retry_wait_s: float = 1.0,
                 exchange: Optional[Any] = None):
        self.exchange_id = exchange_id
        self.symbol = symbol
        self.timeframe = timeframe
        self.timeout_s = float(timeout_s)
        self.retry_attempts = max(1, int(retry_attempts))
        self.retry_wait_s = float(retry_wait_s)
        self._ex = exchange

    @property
    def source(self) -> str:
        return f"{self.exchange_id}:{self.symbol}"

    def _exchange(self):
        if self._ex is None:
            try:
                self._ex = getattr(ccxt_async, self.exchange_id)({'enableRateLimit': True,
                                                                  'timeout': int(self.timeout_s * 1000)})
            except AttributeError as e:
                raise UpstreamUnavailable(self.source, f"unknown exchange {self.exchange_id}") from e
        return self._ex

    async def _call(self, method: str, *args, **kwargs):
        ex = self._exchange()
        async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.retry_attempts),
                wait=wait_exponential(multiplier=self.retry_wait_s, min=0, max=30 * self.retry_wait_s),
                retry=retry_if_exception(is_transient), reraise=True):
            with attempt:
                try:
                    return await getattr(ex, method)(*args, **kwargs)
                except ccxt.BaseError as e:
                    err = _translate(self.source, e)
                    logger.warning(f"[{self.source}] {method} failed: {err}")
                    raise err from e

    async def get_current_price(self) -> CurrentPrice:
        t = await self._call('fetch_ticker', self.symbol)
        last = t.get('last') if isinstance(t, dict) else None
        if last is None or float(last) <= 0:
            raise MalformedPayload(self.source, "ticker has no last price")
        last = float(last)
        high = float(t.get('high') or last)
        low = float(t.get('low') or last)
        pct = t.get('percentage')
        if pct is None:
            opn = t.get('open')
            pct = ((last - float(opn)) / float(opn) * 100.0) if opn else 0.0
        return CurrentPrice(current=last, high_24h=high, low_24h=low,
                            price_change_percentage_24h=float(pct))

    async def get_historical_prices(self, range_hours: int = 24) -> List[PricePoint]:
        ex = self._exchange()
        tf_ms = ex.parse_timeframe(self.timeframe) * 1000
        since = ex.milliseconds() - range_hours * HOUR_MS
        limit = int(range_hours * HOUR_MS // tf_ms) + 1
        candles = await self._call('fetch_ohlcv', self.symbol, self.timeframe, since, limit=limit)
        if not isinstance(candles, list):
            raise MalformedPayload(self.source, "ohlcv is not a list")
        points = []
        try:
            for ts, _o, _h, _l, close, *_ in candles:
                if close is not None and float(close) > 0:
                    points.append(PricePoint(timestamp_ms=int(ts), price=float(close)))
        except (TypeError, ValueError) as e:
            raise MalformedPayload(self.source, f"bad candle: {e}") from e
        points.sort(key=lambda p: p.timestamp_ms)
        logger.info(f"[{self.source}] fetched {len(points)} {self.timeframe} closes over {range_hours}h")
        return points

    async def close(self) -> None:
        if self._ex is not None and hasattr(self._ex, 'close'):
            await self._ex.close()
