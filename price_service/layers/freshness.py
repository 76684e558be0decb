"""
缓存新鲜度策略
  daily   → 24 小时
  weekly  → 7 天
  monthly → 30 天
  intraday→ 开盘中 15 分钟，休市 24 小时（在判定时刻计算交易时段，而非写入时刻）

交易时段判断只看工作日与 09:30–16:00（交易所当地时间），不处理节假日。
"""

import logging
from datetime import datetime, time, timedelta
from enum import Enum
from typing import Optional

import pytz

from price_service.config import PriceServiceSettings, settings as default_settings
from price_service.models.candle import Granularity, IntradayCacheEntry
from price_service.utils.dates import to_datetime, utcnow

logger = logging.getLogger(__name__)


class Freshness(str, Enum):
    FRESH = "fresh"
    STALE = "stale"
    MISMATCH = "mismatch"  # 存储的周期与请求不一致，按不存在处理


def _parse_clock(value: str) -> time:
    hour, minute = value.split(":")
    return time(int(hour), int(minute))


class FreshnessPolicy:
    def __init__(self, settings: Optional[PriceServiceSettings] = None):
        cfg = settings or default_settings
        self._tz = pytz.timezone(cfg.MARKET_TZ)
        self._open = _parse_clock(cfg.MARKET_OPEN)
        self._close = _parse_clock(cfg.MARKET_CLOSE)
        self._intraday_open_ttl = timedelta(seconds=cfg.INTRADAY_MARKET_OPEN_TTL)
        self._intraday_closed_ttl = timedelta(seconds=cfg.INTRADAY_MARKET_CLOSED_TTL)
        self._aggregate_ttl = {
            Granularity.DAILY: timedelta(seconds=cfg.DAILY_TTL),
            Granularity.WEEKLY: timedelta(seconds=cfg.WEEKLY_TTL),
            Granularity.MONTHLY: timedelta(seconds=cfg.MONTHLY_TTL),
        }

    def is_market_open(self, now: Optional[datetime] = None) -> bool:
        local = to_datetime(now or utcnow()).astimezone(self._tz)
        if local.weekday() >= 5:
            return False
        return self._open <= local.time() < self._close

    def ttl_for(self, granularity: Granularity, now: Optional[datetime] = None) -> timedelta:
        if granularity == Granularity.INTRADAY:
            if self.is_market_open(now):
                return self._intraday_open_ttl
            return self._intraday_closed_ttl
        return self._aggregate_ttl[granularity]

    def is_fresh(
        self,
        last_updated: datetime,
        granularity: Granularity,
        now: Optional[datetime] = None,
    ) -> bool:
        now = to_datetime(now or utcnow())
        age = now - to_datetime(last_updated)
        return age <= self.ttl_for(granularity, now)

    def evaluate_intraday(
        self,
        entry: IntradayCacheEntry,
        interval: str,
        now: Optional[datetime] = None,
    ) -> Freshness:
        if entry.interval != interval:
            logger.debug(
                f"分时缓存周期不匹配: {entry.symbol} {entry.date} "
                f"缓存={entry.interval} 请求={interval}"
            )
            return Freshness.MISMATCH
        if not self.is_fresh(entry.last_updated, Granularity.INTRADAY, now):
            logger.debug(f"分时缓存已过期: {entry.symbol} {entry.date} {interval}")
            return Freshness.STALE
        return Freshness.FRESH
