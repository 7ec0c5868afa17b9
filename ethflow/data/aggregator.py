"""
Hourly swap aggregation for the ETH/USDC pool.

Each swap is assigned to the hour it happened in and classified as a BUY of
the base asset (base out of the pool, quote in) or a SELL (base in, quote
out). Swaps that fit neither shape are ignored. In whale mode only swaps
strictly above the threshold count, and empty hours are not back-filled so
sparse whale activity stays visible.
"""
from typing import Dict, Iterable, List, Optional
from loguru import logger

from ethflow.core.clock import HOUR_MS, floor_to_hour
from ethflow.core.models import HourlyVolumeBucket, RawTrade

BUY = "buy"
SELL = "sell"


def classify_trade(trade: RawTrade) -> Optional[str]:
    if trade.amount_quote_in > 0 and trade.amount_base_out > 0:
        return BUY
    if trade.amount_base_in > 0 and trade.amount_quote_out > 0:
        return SELL
    return None


def aggregate_swaps(trades: Iterable[RawTrade], whale_mode: bool,
                    whale_threshold_usd: float) -> List[HourlyVolumeBucket]:
    """Sum buy/sell USD volume per hour; hours with no volume are dropped."""
    hourly: Dict[int, Dict[str, float]] = {}
    total, included = 0, 0
    for trade in trades:
        total += 1
        if whale_mode and trade.amount_usd <= whale_threshold_usd:
            continue
        side = classify_trade(trade)
        if side is None:
            continue
        included += 1
        hour = floor_to_hour(trade.timestamp_ms)
        acc = hourly.setdefault(hour, {BUY: 0.0, SELL: 0.0, 'count': 0})
        acc[side] += trade.amount_usd
        acc['count'] += 1
    logger.debug(f"Aggregated {total} swaps, included {included} (whale_mode={whale_mode}, threshold={whale_threshold_usd})")

    buckets = [
        HourlyVolumeBucket(bucket_start_ms=hour, buy_volume_usd=acc[BUY],
                           sell_volume_usd=acc[SELL], trade_count=int(acc['count']))
        for hour, acc in hourly.items()
    ]
    buckets = [b for b in buckets if not b.is_empty]
    buckets.sort(key=lambda b: b.bucket_start_ms)
    return buckets


def fill_missing_hours(buckets: List[HourlyVolumeBucket], range_start_ms: int,
                       range_end_ms: int) -> List[HourlyVolumeBucket]:
    """One bucket per hour boundary walked from range_start_ms to range_end_ms inclusive."""
    by_hour = {b.bucket_start_ms: b for b in buckets}
    complete: List[HourlyVolumeBucket] = []
    for t in range(range_start_ms, range_end_ms + 1, HOUR_MS):
        hour = floor_to_hour(t)
        complete.append(by_hour.get(hour) or HourlyVolumeBucket(bucket_start_ms=hour))
    return complete


def aggregate(trades: Iterable[RawTrade], whale_mode: bool, whale_threshold_usd: float,
              range_start_ms: int, range_end_ms: int) -> List[HourlyVolumeBucket]:
    buckets = aggregate_swaps(trades, whale_mode, whale_threshold_usd)
    if whale_mode:
        return buckets
    return fill_missing_hours(buckets, range_start_ms, range_end_ms)
