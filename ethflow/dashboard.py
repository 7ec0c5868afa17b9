import asyncio
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple
import numpy as np
from loguru import logger

from ethflow.analytics.alignment import align
from ethflow.analytics.divergence import annotate, divergence_events
from ethflow.analytics.netflow import compute_net_flow, compute_volume_ratios
from ethflow.core.clock import utc_ms
from ethflow.core.config import AppConfig, PipelineConfig
from ethflow.core.models import (CombinedPoint, CurrentPrice, DataStatus, HourlyVolumeBucket,
                                 PricePoint, VolumeRatio)
from ethflow.data.volume import VolumeService
from ethflow.feeds.errors import FeedError, RateLimited
from ethflow.feeds.fallback import synthetic_price_data
from ethflow.feeds.price import ExchangePriceFeed
from ethflow.feeds.uniswap import UniswapTradeFeed


@dataclass
class DashboardSnapshot:
    whale_mode: bool
    current_price: Optional[CurrentPrice]
    prices: List[PricePoint]
    buckets: List[HourlyVolumeBucket]
    ratios: List[VolumeRatio]
    combined: List[CombinedPoint]
    price_status: DataStatus
    volume_status: DataStatus
    generated_at_ms: int
    errors: List[str] = field(default_factory=list)

    @property
    def divergences(self) -> List[CombinedPoint]:
        return divergence_events(self.combined)

    @property
    def is_empty(self) -> bool:
        return not self.combined

    @property
    def uses_fallback(self) -> bool:
        return self.price_status.is_fallback or self.volume_status.is_fallback


class DashboardService:
    def __init__(self, price_feed, volume_service: VolumeService, config: Optional[PipelineConfig] = None,
                 clock: Optional[Callable[[], int]] = None, rng: Optional[np.random.Generator] = None):
        self.price_feed = price_feed
        self.volume = volume_service
        self.cfg = config or PipelineConfig()
        self._clock = clock or utc_ms
        self.rng = rng

    async def _price_chain(self) -> Tuple[Optional[CurrentPrice], List[PricePoint], DataStatus, Optional[str]]:
        try:
            # both calls always settle; a rate limit takes precedence over other failures
            results = await asyncio.gather(
                self.price_feed.get_current_price(),
                self.price_feed.get_historical_prices(self.cfg.window_hours),
                return_exceptions=True,
            )
            failed = [r for r in results if isinstance(r, BaseException)]
            if failed:
                raise next((r for r in failed if isinstance(r, RateLimited)), failed[0])
            current, prices = results
            return current, prices, DataStatus.LIVE, None
        except RateLimited as e:
            status = DataStatus.RATE_LIMITED
            err = e
        except FeedError as e:
            status = DataStatus.FALLBACK
            err = e
        logger.warning(f"Price feed unavailable ({err}); using synthetic prices")
        current, prices = synthetic_price_data(self._clock(), hours=self.cfg.window_hours, rng=self.rng)
        return current, prices, status, str(err)

    async def refresh(self, whale_mode: bool = False, force_refresh: bool = False) -> DashboardSnapshot:
        (current, prices, price_status, price_err), vol = await asyncio.gather(
            self._price_chain(),
            self.volume.fetch_volume(whale_mode, force_refresh),
        )
        combined = align(compute_net_flow(vol.buckets), prices, self.cfg.alignment_tolerance_ms)
        annotate(combined, self.cfg.divergence_flow_threshold, self.cfg.divergence_price_threshold)
        snap = DashboardSnapshot(
            whale_mode=whale_mode,
            current_price=current,
            prices=prices,
            buckets=vol.buckets,
            ratios=compute_volume_ratios(vol.buckets, self.cfg.max_ratio_display),
            combined=combined,
            price_status=price_status,
            volume_status=vol.status,
            generated_at_ms=self._clock(),
            errors=[e for e in (price_err, vol.error) if e],
        )
        logger.info(f"Snapshot: {len(snap.combined)} aligned points, {len(snap.divergences)} divergences "
                    f"(price={price_status.value}, volume={vol.status.value}, whale={whale_mode})")
        return snap

    async def aclose(self) -> None:
        for feed in (self.price_feed, self.volume.feed):
            close = getattr(feed, 'close', None)
            if close is not None:
                await close()


def build_dashboard(cfg: AppConfig) -> DashboardService:
    f = cfg.feeds
    rng = np.random.default_rng(cfg.system.seed) if cfg.system.seed is not None else None
    trade_feed = UniswapTradeFeed(url=f.subgraph_url, api_key=f.graph_api_key,
                                  timeout_s=f.request_timeout_s, retry_attempts=f.retry_attempts)
    price_feed = ExchangePriceFeed(exchange_id=f.exchange_id, symbol=f.price_symbol, timeframe=f.price_timeframe,
                                   timeout_s=f.request_timeout_s, retry_attempts=f.retry_attempts)
    volume = VolumeService(trade_feed, cfg.pipeline, rng=rng)
    return DashboardService(price_feed, volume, cfg.pipeline, rng=rng)
