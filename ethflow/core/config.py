import os
from pathlib import Path
from typing import Any, Dict, Optional
import yaml
from loguru import logger
from pydantic import BaseModel, ConfigDict

ETH_USDC_POOL_ID = "0x8ad599c3a0ff1de082011efddc58f1908eb6e6d8"  # Uniswap V3 ETH/USDC 0.3%
DEFAULT_SUBGRAPH_URL = "https://api.thegraph.com/subgraphs/name/uniswap/uniswap-v3"


class PipelineConfig(BaseModel):
    whale_threshold_usd: float = 500_000.0
    alignment_tolerance_ms: int = 1_800_000
    divergence_flow_threshold: float = 0.05
    divergence_price_threshold: float = 2.0
    cache_ttl_ms: int = 300_000
    window_hours: int = 24
    trade_limit: int = 1000
    pool_id: str = ETH_USDC_POOL_ID
    max_ratio_display: float = 10.0
    model_config = ConfigDict(frozen=True)

    @property
    def window_ms(self) -> int:
        return self.window_hours * 3_600_000


class FeedConfig(BaseModel):
    subgraph_url: str = DEFAULT_SUBGRAPH_URL
    graph_api_key: Optional[str] = None
    exchange_id: str = "coinbase"
    price_symbol: str = "ETH/USD"
    price_timeframe: str = "5m"
    request_timeout_s: float = 15.0
    retry_attempts: int = 3
    model_config = ConfigDict(frozen=True)


class SystemConfig(BaseModel):
    log_level: str = "INFO"
    log_file: str = "logs/ethflow.log"
    loop_interval_seconds: int = 300
    seed: Optional[int] = None
    model_config = ConfigDict(frozen=True)


class AppConfig(BaseModel):
    pipeline: PipelineConfig = PipelineConfig()
    feeds: FeedConfig = FeedConfig()
    system: SystemConfig = SystemConfig()
    model_config = ConfigDict(frozen=True)


def _env_overrides() -> Dict[str, Any]:
    feeds: Dict[str, Any] = {}
    if os.getenv("ETHFLOW_SUBGRAPH_URL"):
        feeds['subgraph_url'] = os.environ["ETHFLOW_SUBGRAPH_URL"].strip()
    if os.getenv("ETHFLOW_GRAPH_API_KEY"):
        feeds['graph_api_key'] = os.environ["ETHFLOW_GRAPH_API_KEY"].strip()
    if os.getenv("ETHFLOW_EXCHANGE"):
        feeds['exchange_id'] = os.environ["ETHFLOW_EXCHANGE"].strip()
    return feeds


def load_config(file: Optional[str] = "configs/config.yaml") -> AppConfig:
    raw: Dict[str, Any] = {}
    if file and Path(file).exists():
        with open(file, "r") as f:
            raw = yaml.safe_load(f) or {}
    elif file:
        logger.warning(f"Config file {file} not found; using defaults.")
    feeds = dict(raw.get('feeds') or {})
    feeds.update(_env_overrides())
    return AppConfig(
        pipeline=PipelineConfig(**(raw.get('pipeline') or {})),
        feeds=FeedConfig(**feeds),
        system=SystemConfig(**(raw.get('system') or {})),
    )
