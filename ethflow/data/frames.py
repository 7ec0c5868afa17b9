from pathlib import Path
from typing import Iterable, Optional
import pandas as pd

from ethflow.core.models import CombinedPoint, HourlyVolumeBucket, VolumeRatio


def _ts_index(df: pd.DataFrame, col: str) -> pd.DataFrame:
    if df.empty:
        return df
    df['timestamp'] = pd.to_datetime(df.pop(col), unit='ms', utc=True)
    return df.set_index('timestamp').sort_index()


def combined_frame(points: Iterable[CombinedPoint]) -> pd.DataFrame:
    rows = [{
        'timestamp_ms': p.timestamp_ms,
        'net_flow_usd': p.net_flow_usd,
        'normalized_net_flow': p.normalized_net_flow,
        'price': p.price,
        'divergence': p.divergence,
        'divergence_kind': p.divergence_kind.value if p.divergence_kind else None,
        'divergence_message': p.divergence_message,
    } for p in points]
    cols = ['timestamp_ms', 'net_flow_usd', 'normalized_net_flow', 'price',
            'divergence', 'divergence_kind', 'divergence_message']
    return _ts_index(pd.DataFrame(rows, columns=cols), 'timestamp_ms')


def volume_frame(buckets: Iterable[HourlyVolumeBucket],
                 ratios: Optional[Iterable[VolumeRatio]] = None) -> pd.DataFrame:
    df = pd.DataFrame([{
        'bucket_start_ms': b.bucket_start_ms,
        'buy_volume_usd': b.buy_volume_usd,
        'sell_volume_usd': b.sell_volume_usd,
        'total_volume_usd': b.total_volume_usd,
        'trade_count': b.trade_count,
    } for b in buckets], columns=['bucket_start_ms', 'buy_volume_usd', 'sell_volume_usd',
                                  'total_volume_usd', 'trade_count'])
    if ratios is not None and not df.empty:
        r = {x.timestamp_ms: x for x in ratios}
        df['ratio'] = df['bucket_start_ms'].map(lambda t: r[t].ratio if t in r else None)
        df['exceeded_cap'] = df['bucket_start_ms'].map(lambda t: r[t].exceeded_cap if t in r else False)
    return _ts_index(df, 'bucket_start_ms')


def export_frame(df: pd.DataFrame, path: str) -> Path:
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    if out.suffix == '.parquet':
        df.to_parquet(out)
    elif out.suffix == '.csv':
        df.to_csv(out)
    else:
        raise ValueError(f"Unsupported export format '{out.suffix}' (use .csv or .parquet)")
    return out
