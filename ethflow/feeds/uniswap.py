"""
Uniswap V3 swap feed backed by The Graph.

token0 of the ETH/USDC pool is USDC (quote) and token1 is WETH (base). The
subgraph reports signed amounts from the pool's point of view (positive means
the token went into the pool); rows in the older directional shape
(amount0In/amount0Out/amount1In/amount1Out) are accepted as well.
"""
import asyncio
from typing import Any, Dict, List, Optional
import aiohttp
from loguru import logger
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from ethflow.core.config import DEFAULT_SUBGRAPH_URL, ETH_USDC_POOL_ID
from ethflow.core.models import RawTrade
from ethflow.feeds.errors import MalformedPayload, RateLimited, UpstreamUnavailable, is_transient

SOURCE = "uniswap-subgraph"

SWAPS_QUERY = """{
  swaps(
    where: { pool: "%(pool)s", timestamp_gt: %(since)d }
    orderBy: timestamp
    first: %(limit)d
  ) {
    timestamp
    amount0
    amount1
    amountUSD
  }
}"""


def _num(row: Dict[str, Any], key: str) -> float:
    return float(row.get(key) or 0)


def parse_swap(row: Dict[str, Any]) -> RawTrade:
    ts = int(row['timestamp'])
    usd = abs(_num(row, 'amountUSD'))
    if 'amount0' in row or 'amount1' in row:
        a0, a1 = _num(row, 'amount0'), _num(row, 'amount1')
        return RawTrade(timestamp_seconds=ts,
                        amount_quote_in=max(a0, 0.0), amount_quote_out=max(-a0, 0.0),
                        amount_base_in=max(a1, 0.0), amount_base_out=max(-a1, 0.0),
                        amount_usd=usd)
    return RawTrade(timestamp_seconds=ts,
                    amount_quote_in=_num(row, 'amount0In'), amount_quote_out=_num(row, 'amount0Out'),
                    amount_base_in=_num(row, 'amount1In'), amount_base_out=_num(row, 'amount1Out'),
                    amount_usd=usd)


def parse_swaps(payload: Any) -> List[RawTrade]:
    try:
        swaps = payload['data']['swaps']
    except (KeyError, TypeError) as e:
        errors = payload.get('errors') if isinstance(payload, dict) else None
        raise MalformedPayload(SOURCE, f"missing data.swaps ({errors or e})") from e
    if not isinstance(swaps, list):
        raise MalformedPayload(SOURCE, "data.swaps is not a list")
    try:
        return [parse_swap(row) for row in swaps]
    except (KeyError, TypeError, ValueError) as e:
        raise MalformedPayload(SOURCE, f"bad swap row: {e}") from e


class UniswapTradeFeed:
    def __init__(self, url: str = DEFAULT_SUBGRAPH_URL, api_key: Optional[str] = None,
                 timeout_s: float = 15.0, retry_attempts: int = 3, retry_wait_s: float = 1.0,
                 session: Optional[aiohttp.ClientSession] = None):
        self.url = url
        self.api_key = (api_key or "").strip()
        self.timeout_s = float(timeout_s)
        self.retry_attempts = max(1, int(retry_attempts))
        self.retry_wait_s = float(retry_wait_s)
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout_s))
            self._owns_session = True
        return self._session

    async def _post(self, query: str) -> Any:
        session = await self._get_session()
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        try:
            async with session.post(self.url, json={"query": query}, headers=headers) as response:
                if response.status == 429:
                    raise RateLimited(SOURCE, "rate limited", status=429)
                if response.status < 200 or response.status >= 300:
                    raise UpstreamUnavailable(SOURCE, f"HTTP {response.status}", status=response.status)
                try:
                    return await response.json()
                except (aiohttp.ContentTypeError, ValueError) as e:
                    raise MalformedPayload(SOURCE, f"invalid JSON: {e}") from e
        except aiohttp.ClientError as e:
            raise UpstreamUnavailable(SOURCE, str(e)) from e
        except asyncio.TimeoutError as e:
            raise UpstreamUnavailable(SOURCE, f"no response within {self.timeout_s}s") from e

    async def get_recent_trades(self, pool_id: str = ETH_USDC_POOL_ID, since_epoch_seconds: int = 0,
                                limit: int = 1000) -> List[RawTrade]:
        """Swaps after since_epoch_seconds, oldest first, at most limit rows (no pagination)."""
        query = SWAPS_QUERY % {"pool": pool_id.lower(), "since": int(since_epoch_seconds), "limit": int(limit)}
        payload = None
        async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.retry_attempts),
                wait=wait_exponential(multiplier=self.retry_wait_s, min=0, max=30 * self.retry_wait_s),
                retry=retry_if_exception(is_transient), reraise=True):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.warning(f"[{SOURCE}] retry {attempt.retry_state.attempt_number}/{self.retry_attempts}")
                payload = await self._post(query)
        trades = parse_swaps(payload)
        logger.info(f"[{SOURCE}] fetched {len(trades)} swaps for pool {pool_id} since {since_epoch_seconds}")
        return trades

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
