from typing import Iterable, List
from ethflow.core.models import HourlyVolumeBucket, NetFlowPoint, VolumeRatio

MAX_RATIO_DISPLAY = 10.0
_SELL_FLOOR = 0.001  # stands in for zero sell volume so the ratio stays finite


def compute_net_flow(buckets: Iterable[HourlyVolumeBucket]) -> List[NetFlowPoint]:
    """Buy minus sell volume per bucket; positive means net buying pressure."""
    return [NetFlowPoint(timestamp_ms=b.bucket_start_ms,
                         net_flow_usd=b.buy_volume_usd - b.sell_volume_usd) for b in buckets]


def compute_volume_ratios(buckets: Iterable[HourlyVolumeBucket],
                          max_ratio_display: float = MAX_RATIO_DISPLAY) -> List[VolumeRatio]:
    out = []
    for b in buckets:
        sell = b.sell_volume_usd or _SELL_FLOOR
        ratio = b.buy_volume_usd / sell
        out.append(VolumeRatio(
            timestamp_ms=b.bucket_start_ms,
            ratio=ratio,
            display_ratio=min(ratio, max_ratio_display),
            buy_volume_usd=b.buy_volume_usd,
            sell_volume_usd=b.sell_volume_usd,
            total_volume_usd=b.total_volume_usd,
            exceeded_cap=ratio > max_ratio_display,
            trade_count=b.trade_count,
        ))
    return out
