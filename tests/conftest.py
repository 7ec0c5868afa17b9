import asyncio
from typing import List, Optional
import pytest

from ethflow.core.clock import HOUR_MS
from ethflow.core.models import CurrentPrice, PricePoint, RawTrade

T0 = 472222 * HOUR_MS  # 2023-11-14 22:00 UTC, on an hour boundary


class FakeClock:
    def __init__(self, now: int):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


def buy(ts_ms: int, usd: float, price: float = 3000.0) -> RawTrade:
    return RawTrade(timestamp_seconds=ts_ms // 1000, amount_quote_in=usd,
                    amount_base_out=usd / price, amount_usd=usd)


def sell(ts_ms: int, usd: float, price: float = 3000.0) -> RawTrade:
    return RawTrade(timestamp_seconds=ts_ms // 1000, amount_base_in=usd / price,
                    amount_quote_out=usd, amount_usd=usd)


class FakeTradeFeed:
    """Returns queued results in order; an Exception entry is raised instead."""
    def __init__(self, *results):
        self.results = list(results)
        self.calls = []
        self.closed = False

    async def get_recent_trades(self, pool_id, since_epoch_seconds, limit):
        self.calls.append((pool_id, since_epoch_seconds, limit))
        r = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(r, Exception):
            raise r
        return list(r)

    async def close(self):
        self.closed = True


class FakePriceFeed:
    def __init__(self, current: Optional[CurrentPrice] = None, prices: Optional[List[PricePoint]] = None,
                 error: Optional[Exception] = None, gate: Optional[asyncio.Event] = None):
        self.current = current or CurrentPrice(3000.0, 3100.0, 2900.0, 1.2)
        self.prices = prices or []
        self.error = error
        self.gate = gate
        self.closed = False

    async def get_current_price(self):
        if self.error:
            raise self.error
        return self.current

    async def get_historical_prices(self, range_hours=24):
        if self.gate is not None:
            await self.gate.wait()
        if self.error:
            raise self.error
        return list(self.prices)

    async def close(self):
        self.closed = True


@pytest.fixture
def clock():
    return FakeClock(T0 + 30 * 60 * 1000)
