from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence
from loguru import logger

from ethflow.core.clock import utc_ms
from ethflow.core.models import FilterMode, HourlyVolumeBucket

DEFAULT_TTL_MS = 300_000


@dataclass(frozen=True)
class VolumeCacheEntry:
    mode: FilterMode
    buckets: tuple
    cached_at_ms: int


class VolumeCache:
    """
    In-memory, per-mode memo of aggregated volume.
    REGULAR and WHALE have independent slots and timestamps, so writing one
    never expires the other. Single writer per mode; no locking.
    """
    def __init__(self, ttl_ms: int = DEFAULT_TTL_MS, clock: Optional[Callable[[], int]] = None):
        self.ttl_ms = int(ttl_ms)
        self._clock = clock or utc_ms
        self._entries: Dict[FilterMode, VolumeCacheEntry] = {}

    def entry(self, mode: FilterMode) -> Optional[VolumeCacheEntry]:
        return self._entries.get(mode)

    def is_valid(self, mode: FilterMode) -> bool:
        e = self._entries.get(mode)
        return e is not None and (self._clock() - e.cached_at_ms) < self.ttl_ms

    def get(self, mode: FilterMode) -> Optional[List[HourlyVolumeBucket]]:
        if not self.is_valid(mode):
            return None
        return list(self._entries[mode].buckets)

    def put(self, mode: FilterMode, buckets: Sequence[HourlyVolumeBucket]) -> VolumeCacheEntry:
        e = VolumeCacheEntry(mode=mode, buckets=tuple(buckets), cached_at_ms=self._clock())
        self._entries[mode] = e
        logger.debug(f"Cached {len(e.buckets)} {mode.value} buckets at {e.cached_at_ms}")
        return e
