"""
上游调用配额
用 Redis 计数器跟踪每分钟 / 每天的 Alpha Vantage 调用次数，
超额时视为上游限流（空结果，不写缓存）。Redis 不可用时不做限制。
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from redis.asyncio import Redis

from price_service.config import PriceServiceSettings, settings as default_settings
from price_service.utils.dates import utcnow

logger = logging.getLogger(__name__)

_KEY_PREFIX = "alphavantage:usage"


class RateLimitGuard:
    def __init__(
        self,
        redis: Optional[Redis],
        settings: Optional[PriceServiceSettings] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        cfg = settings or default_settings
        self._redis = redis
        self._per_minute = cfg.RATE_LIMIT_PER_MINUTE
        self._per_day = cfg.RATE_LIMIT_PER_DAY
        self._clock = clock

    @staticmethod
    def _day_key(now: datetime) -> str:
        return f"{_KEY_PREFIX}:day:{now:%Y%m%d}"

    async def calls_today(self) -> int:
        """今日已计数的上游调用次数"""
        if self._redis is None:
            return 0
        value = await self._redis.get(self._day_key(self._clock()))
        return int(value or 0)

    async def try_acquire(self) -> bool:
        """占用一次调用配额；返回 False 表示本分钟或本日配额已用尽"""
        if self._redis is None:
            return True

        now = self._clock()
        minute_key = f"{_KEY_PREFIX}:minute:{now:%Y%m%d%H%M}"
        day_key = self._day_key(now)
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.incr(minute_key)
                pipe.expire(minute_key, 120)
                pipe.incr(day_key)
                pipe.expire(day_key, 2 * 86400)
                minute_count, _, day_count, _ = await pipe.execute()
        except Exception as exc:
            logger.warning(f"上游调用计数失败，本次不做限制: {exc}")
            return True

        if minute_count > self._per_minute:
            logger.warning(f"Alpha Vantage 每分钟配额已用尽: {minute_count}/{self._per_minute}")
            return False
        if day_count > self._per_day:
            logger.warning(f"Alpha Vantage 每日配额已用尽: {day_count}/{self._per_day}")
            return False
        return True
