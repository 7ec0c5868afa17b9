from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional
import numpy as np
from loguru import logger

from ethflow.core.clock import utc_ms, ms_to_iso
from ethflow.core.config import PipelineConfig
from ethflow.core.models import DataStatus, FilterMode, HourlyVolumeBucket
from ethflow.data.aggregator import aggregate
from ethflow.data.cache import VolumeCache
from ethflow.feeds.errors import AggregationError, FeedError, RateLimited
from ethflow.feeds.fallback import synthetic_volume


@dataclass
class VolumeResult:
    mode: FilterMode
    buckets: List[HourlyVolumeBucket]
    status: DataStatus
    fetched_at_ms: int
    error: Optional[str] = None


@dataclass
class _Sequencer:
    issued: Dict[FilterMode, int] = field(default_factory=dict)
    committed: Dict[FilterMode, int] = field(default_factory=dict)

    def next(self, mode: FilterMode) -> int:
        self.issued[mode] = self.issued.get(mode, 0) + 1
        return self.issued[mode]

    def commit(self, mode: FilterMode, seq: int) -> bool:
        if seq <= self.committed.get(mode, 0):
            return False
        self.committed[mode] = seq
        return True


class VolumeService:
    """
    Hourly ETH/USDC volume for the trailing window, served from the per-mode
    cache when fresh. Upstream trouble never escapes: the caller gets
    synthetic buckets tagged FALLBACK or RATE_LIMITED instead, and those are
    not cached. A response that completes after a newer request for the same
    mode has already been cached is returned but not written.
    """
    def __init__(self, trade_feed, config: Optional[PipelineConfig] = None,
                 cache: Optional[VolumeCache] = None, clock: Optional[Callable[[], int]] = None,
                 rng: Optional[np.random.Generator] = None):
        self.feed = trade_feed
        self.cfg = config or PipelineConfig()
        self._clock = clock or utc_ms
        self.cache = cache or VolumeCache(ttl_ms=self.cfg.cache_ttl_ms, clock=self._clock)
        self.rng = rng
        self._seq = _Sequencer()
        self.log = logger.bind(module="volume_service")

    async def _aggregate_live(self, mode: FilterMode, now: int) -> List[HourlyVolumeBucket]:
        range_start = now - self.cfg.window_ms
        try:
            trades = await self.feed.get_recent_trades(self.cfg.pool_id, range_start // 1000, self.cfg.trade_limit)
        except RateLimited as e:
            raise AggregationError(str(e), rate_limited=True) from e
        except FeedError as e:
            raise AggregationError(str(e)) from e
        return aggregate(trades, mode is FilterMode.WHALE, self.cfg.whale_threshold_usd, range_start, now)

    async def fetch_volume(self, whale_mode: bool = False, force_refresh: bool = False) -> VolumeResult:
        mode = FilterMode.of(whale_mode)
        if not force_refresh:
            cached = self.cache.get(mode)
            if cached is not None:
                e = self.cache.entry(mode)
                self.log.info(f"Using cached {mode.value} volume from {ms_to_iso(e.cached_at_ms)}")
                return VolumeResult(mode, cached, DataStatus.CACHED, e.cached_at_ms)

        seq = self._seq.next(mode)
        now = self._clock()
        self.log.info(f"Fetching fresh {mode.value} volume (request #{seq}, threshold={self.cfg.whale_threshold_usd})")
        try:
            buckets = await self._aggregate_live(mode, now)
        except AggregationError as e:
            status = DataStatus.RATE_LIMITED if e.rate_limited else DataStatus.FALLBACK
            self.log.warning(f"Uniswap volume unavailable ({e}); using synthetic {mode.value} data")
            fake = synthetic_volume(whale_mode, self.cfg.whale_threshold_usd, now,
                                    hours=self.cfg.window_hours, rng=self.rng)
            return VolumeResult(mode, fake, status, now, error=str(e))

        if not buckets:
            self.log.info(f"No {mode.value} activity in the last {self.cfg.window_hours}h")
        if self._seq.commit(mode, seq):
            self.cache.put(mode, buckets)
        else:
            self.log.debug(f"Request #{seq} for {mode.value} superseded; not caching")
        return VolumeResult(mode, buckets, DataStatus.LIVE, now)
