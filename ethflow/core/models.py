from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from ethflow.core.clock import HOUR_MS


class FilterMode(str, Enum):
    REGULAR = "regular"
    WHALE = "whale"

    @classmethod
    def of(cls, whale_mode: bool) -> "FilterMode":
        return cls.WHALE if whale_mode else cls.REGULAR


class DivergenceKind(str, Enum):
    INFLOW_PRICE_DOWN = "inflow_price_down"
    OUTFLOW_PRICE_UP = "outflow_price_up"


class DataStatus(str, Enum):
    LIVE = "live"
    CACHED = "cached"
    FALLBACK = "fallback"
    RATE_LIMITED = "rate_limited"

    @property
    def is_fallback(self) -> bool:
        return self in (DataStatus.FALLBACK, DataStatus.RATE_LIMITED)


class RawTrade(BaseModel):
    """One swap as reported by the trade feed, amounts already directional."""
    timestamp_seconds: int
    amount_base_in: float = Field(default=0.0, ge=0)
    amount_base_out: float = Field(default=0.0, ge=0)
    amount_quote_in: float = Field(default=0.0, ge=0)
    amount_quote_out: float = Field(default=0.0, ge=0)
    amount_usd: float = 0.0
    model_config = ConfigDict(frozen=True)

    @property
    def timestamp_ms(self) -> int:
        return self.timestamp_seconds * 1000


@dataclass(frozen=True)
class HourlyVolumeBucket:
    bucket_start_ms: int
    buy_volume_usd: float = 0.0
    sell_volume_usd: float = 0.0
    trade_count: int = 0

    def __post_init__(self):
        if self.bucket_start_ms % HOUR_MS != 0:
            raise ValueError(f"bucket_start_ms {self.bucket_start_ms} is not on an hour boundary")

    @property
    def total_volume_usd(self) -> float:
        return self.buy_volume_usd + self.sell_volume_usd

    @property
    def is_empty(self) -> bool:
        return self.buy_volume_usd == 0 and self.sell_volume_usd == 0


@dataclass(frozen=True)
class PricePoint:
    timestamp_ms: int
    price: float


@dataclass(frozen=True)
class CurrentPrice:
    current: float
    high_24h: float
    low_24h: float
    price_change_percentage_24h: float


@dataclass(frozen=True)
class NetFlowPoint:
    timestamp_ms: int
    net_flow_usd: float


@dataclass(frozen=True)
class VolumeRatio:
    timestamp_ms: int
    ratio: float
    display_ratio: float
    buy_volume_usd: float
    sell_volume_usd: float
    total_volume_usd: float
    exceeded_cap: bool
    trade_count: int


@dataclass
class CombinedPoint:
    """Net flow paired with its nearest price; annotated in place by the divergence pass."""
    timestamp_ms: int
    net_flow_usd: float
    price: float
    normalized_net_flow: Optional[float] = None
    divergence: bool = False
    divergence_kind: Optional[DivergenceKind] = None
    divergence_message: Optional[str] = None

    @property
    def timestamp(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp_ms / 1000, tz=timezone.utc)

    def clear_divergence(self) -> None:
        self.divergence = False
        self.divergence_kind = None
        self.divergence_message = None
