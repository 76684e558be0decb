"""
最近交易日查找
调用方不指定日期时，从今天起向前最多 5 个自然日、按周期优先级逐一探测缓存，
返回第一份非空的分时数据以及实际命中的周期。只读缓存，不触发上游调用。
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from price_service.errors import CacheReadFailure
from price_service.layers.cache import CacheStore
from price_service.layers.freshness import Freshness, FreshnessPolicy
from price_service.models.candle import Candle, IntradayCacheEntry, normalize_interval
from price_service.utils.dates import days_ago_string, utcnow

logger = logging.getLogger(__name__)

FALLBACK_INTERVALS = ("15min", "60min", "30min", "5min", "1min")
MAX_DAYS_BACK = 5


@dataclass
class CachedSession:
    trading_day: str
    actual_interval: str
    candles: List[Candle] = field(default_factory=list)


class RecentSessionResolver:
    def __init__(
        self,
        store: CacheStore,
        policy: FreshnessPolicy,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._store = store
        self._policy = policy
        self._clock = clock

    @staticmethod
    def search_order(preferred_interval: str) -> List[str]:
        return [preferred_interval] + [i for i in FALLBACK_INTERVALS if i != preferred_interval]

    async def _load(self, symbol: str, date_str: str) -> Optional[IntradayCacheEntry]:
        try:
            return await self._store.get_intraday(symbol, date_str)
        except CacheReadFailure as exc:
            logger.warning(f"探测缓存失败，按未命中处理: {exc}")
            return None

    def _check(
        self,
        entry: IntradayCacheEntry,
        interval: str,
        require_fresh: bool,
        now: datetime,
    ) -> Optional[List[Candle]]:
        verdict = self._policy.evaluate_intraday(entry, interval, now)
        if verdict == Freshness.MISMATCH:
            return None
        # 往日交易时段已收盘，不受 TTL 约束；当天的数据仍需新鲜
        if verdict == Freshness.STALE and require_fresh:
            return None
        return entry.candles

    async def find_recent_cached_data(
        self, symbol: str, preferred_interval: str
    ) -> Optional[CachedSession]:
        """每个日期只读取一次分时文档，再按周期优先级逐一比对"""
        symbol = symbol.upper()
        preferred = normalize_interval(preferred_interval)
        now = self._clock()

        for days_back in range(MAX_DAYS_BACK + 1):
            date_str = days_ago_string(days_back, now)
            logger.debug(f"探测缓存: {symbol} {date_str} 优先周期 {preferred}")
            entry = await self._load(symbol, date_str)
            if entry is None:
                continue
            for interval in self.search_order(preferred):
                candles = self._check(entry, interval, require_fresh=days_back == 0, now=now)
                if candles:
                    if interval == preferred:
                        logger.info(f"缓存命中（优先周期）: {symbol} {date_str} {interval}，{len(candles)} 根")
                    else:
                        logger.info(
                            f"缓存命中（替代周期）: {symbol} {date_str} "
                            f"请求={preferred} 实际={interval}，{len(candles)} 根"
                        )
                    return CachedSession(trading_day=date_str, actual_interval=interval, candles=candles)

        logger.info(f"近 {MAX_DAYS_BACK} 天内无任何周期的缓存数据: {symbol}")
        return None
