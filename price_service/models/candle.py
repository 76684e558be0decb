"""
行情数据模型
Candle（OHLCV）以及两类缓存条目：分时条目与聚合条目
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from price_service.utils.dates import to_datetime, utcnow

logger = logging.getLogger(__name__)

INTERVALS = ("1min", "5min", "15min", "30min", "60min")
OUTPUT_SIZES = ("compact", "full")
DEFAULT_INTERVAL = "15min"
LENIENT_FALLBACK_INTERVAL = "60min"


class Granularity(str, Enum):
    INTRADAY = "intraday"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


AGGREGATE_GRANULARITIES = (Granularity.DAILY, Granularity.WEEKLY, Granularity.MONTHLY)


def normalize_interval(interval: Optional[str]) -> str:
    """宽松的周期解析：缺省取 15min，无法识别时回退到 60min"""
    if not interval:
        return DEFAULT_INTERVAL
    if interval not in INTERVALS:
        logger.info(f"未识别的周期 {interval!r}，回退到 {LENIENT_FALLBACK_INTERVAL}")
        return LENIENT_FALLBACK_INTERVAL
    return interval


class Candle(BaseModel):
    """单根 K 线；volume 不可为负，不校验 low ≤ open/close ≤ high"""

    time: datetime
    open: float
    high: float
    low: float
    close: float
    volume: int = Field(default=0, ge=0)

    @field_validator("time", mode="before")
    @classmethod
    def _normalize_time(cls, value: Any) -> datetime:
        return to_datetime(value)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump()


class IntradayCacheEntry(BaseModel):
    """分时缓存条目，键为 (symbol, date, interval)，按 intraday_<date> 存储"""

    symbol: str
    date: str
    interval: str
    candles: List[Candle] = Field(default_factory=list)
    last_updated: datetime = Field(default_factory=utcnow)

    @field_validator("symbol")
    @classmethod
    def _upper_symbol(cls, value: str) -> str:
        return value.upper()

    @field_validator("last_updated", mode="before")
    @classmethod
    def _normalize_last_updated(cls, value: Any) -> datetime:
        return to_datetime(value)

    @property
    def sub_key(self) -> str:
        return intraday_sub_key(self.date)

    def to_document(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "interval": self.interval,
            "symbol": self.symbol,
            "candles": [c.to_document() for c in self.candles],
            "lastUpdated": self.last_updated,
        }

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "IntradayCacheEntry":
        return cls(
            symbol=doc["symbol"],
            date=doc["date"],
            interval=doc.get("interval", ""),
            candles=doc.get("candles") or [],
            last_updated=doc["lastUpdated"],
        )


class AggregateCacheEntry(BaseModel):
    """聚合缓存条目（daily / weekly / monthly），prices 以周期键索引"""

    symbol: str
    granularity: Granularity
    prices: Dict[str, Candle] = Field(default_factory=dict)
    last_updated: datetime = Field(default_factory=utcnow)

    @field_validator("symbol")
    @classmethod
    def _upper_symbol(cls, value: str) -> str:
        return value.upper()

    @field_validator("last_updated", mode="before")
    @classmethod
    def _normalize_last_updated(cls, value: Any) -> datetime:
        return to_datetime(value)

    def to_document(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "granularity": self.granularity.value,
            "prices": {k: c.to_document() for k, c in self.prices.items()},
            "lastUpdated": self.last_updated,
        }

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "AggregateCacheEntry":
        return cls(
            symbol=doc["symbol"],
            granularity=doc["granularity"],
            prices=doc.get("prices") or {},
            last_updated=doc["lastUpdated"],
        )


def intraday_sub_key(date_str: str) -> str:
    return f"intraday_{date_str}"
