"""
Layer 2 – 缓存层
按股票代码组织的 MongoDB 文档缓存：
  <SYMBOL>:intraday_<date>   分时 K 线（整体覆盖写）
  <SYMBOL>:daily             日 K 映射（按日期字段合并写）
  <SYMBOL>:weekly / monthly  周 / 月 K 映射（整体覆盖写）

本层只负责读写，不包含任何新鲜度或聚合逻辑；后端异常统一转换为
CacheReadFailure / CacheWriteFailure，由服务层决定降级策略。
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorCollection

from price_service.errors import CacheReadFailure, CacheWriteFailure
from price_service.models.candle import (
    AggregateCacheEntry,
    Candle,
    Granularity,
    IntradayCacheEntry,
    intraday_sub_key,
)
from price_service.utils.dates import utcnow

logger = logging.getLogger(__name__)


def _make_key(symbol: str, sub_key: str) -> str:
    """生成文档主键 <SYMBOL>:<sub_key>"""
    return f"{symbol.upper()}:{sub_key}"


class CacheStore(ABC):
    """缓存存储适配器接口"""

    @abstractmethod
    async def get_intraday(self, symbol: str, date: str) -> Optional[IntradayCacheEntry]: ...

    @abstractmethod
    async def set_intraday(self, entry: IntradayCacheEntry) -> None: ...

    @abstractmethod
    async def get_aggregate(
        self, symbol: str, granularity: Granularity
    ) -> Optional[AggregateCacheEntry]: ...

    @abstractmethod
    async def set_aggregate(self, entry: AggregateCacheEntry) -> None: ...

    @abstractmethod
    async def merge_upsert_daily(self, symbol: str, date: str, candle: Candle) -> None:
        """只更新 daily 文档中 prices.<date> 一个字段"""


class MongoCacheStore(CacheStore):
    """基于 motor 的缓存存储；collection 为 None 时所有操作均视为存储不可用"""

    def __init__(self, collection: Optional[AsyncIOMotorCollection]):
        self._coll = collection

    def _collection(self, failure: type) -> AsyncIOMotorCollection:
        if self._coll is None:
            raise failure("MongoDB 未连接")
        return self._coll

    async def _find(self, key: str) -> Optional[Dict[str, Any]]:
        coll = self._collection(CacheReadFailure)
        try:
            return await coll.find_one({"_id": key})
        except Exception as exc:
            raise CacheReadFailure(f"读取缓存失败 {key}: {exc}") from exc

    async def _replace(self, key: str, doc: Dict[str, Any]) -> None:
        coll = self._collection(CacheWriteFailure)
        try:
            await coll.replace_one({"_id": key}, {"_id": key, **doc}, upsert=True)
        except Exception as exc:
            raise CacheWriteFailure(f"写入缓存失败 {key}: {exc}") from exc

    # ── 分时 ──────────────────────────────────────────────

    async def get_intraday(self, symbol: str, date: str) -> Optional[IntradayCacheEntry]:
        key = _make_key(symbol, intraday_sub_key(date))
        doc = await self._find(key)
        if doc is None:
            return None
        try:
            return IntradayCacheEntry.from_document(doc)
        except (KeyError, ValueError) as exc:
            raise CacheReadFailure(f"缓存文档格式错误 {key}: {exc}") from exc

    async def set_intraday(self, entry: IntradayCacheEntry) -> None:
        key = _make_key(entry.symbol, entry.sub_key)
        await self._replace(key, entry.to_document())
        logger.debug(f"缓存写入（分时）: {key}，{len(entry.candles)} 根")

    # ── 聚合 ──────────────────────────────────────────────

    async def get_aggregate(
        self, symbol: str, granularity: Granularity
    ) -> Optional[AggregateCacheEntry]:
        key = _make_key(symbol, granularity.value)
        doc = await self._find(key)
        if doc is None:
            return None
        try:
            return AggregateCacheEntry.from_document(doc)
        except (KeyError, ValueError) as exc:
            raise CacheReadFailure(f"缓存文档格式错误 {key}: {exc}") from exc

    async def set_aggregate(self, entry: AggregateCacheEntry) -> None:
        key = _make_key(entry.symbol, entry.granularity.value)
        await self._replace(key, entry.to_document())
        logger.debug(f"缓存写入（{entry.granularity.value}）: {key}，{len(entry.prices)} 条")

    async def merge_upsert_daily(self, symbol: str, date: str, candle: Candle) -> None:
        key = _make_key(symbol, Granularity.DAILY.value)
        coll = self._collection(CacheWriteFailure)
        try:
            await coll.update_one(
                {"_id": key},
                {
                    "$set": {
                        "symbol": symbol.upper(),
                        "granularity": Granularity.DAILY.value,
                        f"prices.{date}": candle.to_document(),
                        "lastUpdated": utcnow(),
                    }
                },
                upsert=True,
            )
        except Exception as exc:
            raise CacheWriteFailure(f"更新日 K 失败 {key}/{date}: {exc}") from exc
        logger.debug(f"缓存合并写入（daily）: {key} prices.{date}")
