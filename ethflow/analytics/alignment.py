from typing import List, Sequence
from loguru import logger

from ethflow.core.models import CombinedPoint, NetFlowPoint, PricePoint

DEFAULT_TOLERANCE_MS = 1_800_000


def _nearest(quotes: List[PricePoint], ts_ms: int) -> PricePoint:
    # Linear scan; strict '<' keeps the earliest candidate on ties.
    best = quotes[0]
    best_dist = abs(best.timestamp_ms - ts_ms)
    for q in quotes[1:]:
        d = abs(q.timestamp_ms - ts_ms)
        if d < best_dist:
            best, best_dist = q, d
    return best


def align(net_flow: Sequence[NetFlowPoint], prices: Sequence[PricePoint],
          tolerance_ms: int = DEFAULT_TOLERANCE_MS) -> List[CombinedPoint]:
    """
    Pair every net-flow point inside the common time window with its nearest
    price quote. Pairs further apart than tolerance_ms are dropped, nothing is
    interpolated. Several flows may share one quote. An empty result means the
    two series do not overlap; it is not an error.
    """
    if not net_flow or not prices:
        return []
    flows = sorted(net_flow, key=lambda p: p.timestamp_ms)
    quotes = sorted(prices, key=lambda p: p.timestamp_ms)

    start = max(flows[0].timestamp_ms, quotes[0].timestamp_ms)
    end = min(flows[-1].timestamp_ms, quotes[-1].timestamp_ms)
    if start > end:
        logger.debug(f"No overlap between net flow and prices (start={start}, end={end})")
        return []

    flows = [f for f in flows if start <= f.timestamp_ms <= end]
    quotes = [q for q in quotes if start <= q.timestamp_ms <= end]
    if not flows or not quotes:
        return []

    combined: List[CombinedPoint] = []
    for f in flows:
        q = _nearest(quotes, f.timestamp_ms)
        if abs(q.timestamp_ms - f.timestamp_ms) <= tolerance_ms:
            combined.append(CombinedPoint(timestamp_ms=f.timestamp_ms,
                                          net_flow_usd=f.net_flow_usd, price=q.price))
    return combined
