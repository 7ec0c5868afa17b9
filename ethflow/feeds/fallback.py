"""
Synthetic stand-ins used when an upstream feed is down or throttled, shaped
like the live data so the analytics never see a missing series.
"""
from typing import List, Optional, Tuple
import numpy as np

from ethflow.core.clock import HOUR_MS, floor_to_hour
from ethflow.core.models import CurrentPrice, HourlyVolumeBucket, PricePoint

MIN_SWAPS_PER_HOUR = 200
MAX_SWAPS_PER_HOUR = 500
MIN_SWAP_USD = 5_000.0
MAX_SWAP_USD = 1_500_000.0


def synthetic_volume(whale_mode: bool, whale_threshold_usd: float, now_ms: int, hours: int = 24,
                     rng: Optional[np.random.Generator] = None) -> List[HourlyVolumeBucket]:
    rng = rng or np.random.default_rng()
    buckets = []
    last_hour = floor_to_hour(now_ms)
    for i in range(hours - 1, -1, -1):
        n = int(rng.integers(MIN_SWAPS_PER_HOUR, MAX_SWAPS_PER_HOUR + 1))
        sizes = rng.uniform(MIN_SWAP_USD, MAX_SWAP_USD, n)
        is_buy = rng.random(n) > 0.5
        if whale_mode:
            keep = sizes > whale_threshold_usd
            sizes, is_buy = sizes[keep], is_buy[keep]
        buy, sell = float(sizes[is_buy].sum()), float(sizes[~is_buy].sum())
        if buy + sell > 0:
            buckets.append(HourlyVolumeBucket(bucket_start_ms=last_hour - i * HOUR_MS,
                                              buy_volume_usd=buy, sell_volume_usd=sell,
                                              trade_count=int(sizes.size)))
    return buckets


def synthetic_prices(now_ms: int, hours: int = 24, step_ms: int = 300_000, start_price: float = 3000.0,
                     rng: Optional[np.random.Generator] = None) -> List[PricePoint]:
    rng = rng or np.random.default_rng()
    n = int(hours * HOUR_MS // step_ms) + 1
    rets = rng.normal(0.0, 0.002, n - 1)
    path = start_price * np.exp(np.concatenate([[0.0], np.cumsum(rets)]))
    start = now_ms - (n - 1) * step_ms
    return [PricePoint(timestamp_ms=int(start + k * step_ms), price=float(p)) for k, p in enumerate(path)]


def summarize_prices(points: List[PricePoint]) -> Optional[CurrentPrice]:
    if not points:
        return None
    prices = [p.price for p in points]
    first, last = prices[0], prices[-1]
    return CurrentPrice(current=last, high_24h=max(prices), low_24h=min(prices),
                        price_change_percentage_24h=(last - first) / first * 100.0)


def synthetic_price_data(now_ms: int, hours: int = 24,
                         rng: Optional[np.random.Generator] = None) -> Tuple[CurrentPrice, List[PricePoint]]:
    points = synthetic_prices(now_ms, hours=hours, rng=rng)
    return summarize_prices(points), points
