"""
行情缓存服务（读穿透缓存）
整合获取、缓存、新鲜度、聚合四层，对外提供统一的行情访问接口

单次请求流程：
  CHECK → 命中且新鲜则直接返回（不调用上游）
        → 未命中 / 周期不符 / 过期 → FETCH → STORE（分时整体覆盖 + 所属交易日日 K 合并写） → RETURN

服务对象无跨请求状态，每次请求按需构造并注入存储与上游协作者。
"""

import logging
import re
from datetime import datetime
from typing import Callable, List, Optional, Union

from price_service.db import get_price_cache_collection, get_redis
from price_service.errors import (
    CacheReadFailure,
    CacheWriteFailure,
    UpstreamError,
    UpstreamThrottled,
    ValidationError,
)
from price_service.layers.acquisition import AlphaVantageClient, SeriesFetcher
from price_service.layers.aggregation import (
    aggregate_to_daily,
    aggregate_to_monthly,
    aggregate_to_weekly,
    latest_session,
)
from price_service.layers.cache import CacheStore, MongoCacheStore
from price_service.layers.freshness import Freshness, FreshnessPolicy
from price_service.layers.rate_limit import RateLimitGuard
from price_service.models.candle import (
    AGGREGATE_GRANULARITIES,
    DEFAULT_INTERVAL,
    INTERVALS,
    OUTPUT_SIZES,
    AggregateCacheEntry,
    Candle,
    Granularity,
    IntradayCacheEntry,
    normalize_interval,
)
from price_service.models.response import AggregatePrices, IntradayPrices, RecentOpenDay
from price_service.services.recent_session import RecentSessionResolver
from price_service.utils.dates import to_date_string, today_string, utcnow

logger = logging.getLogger(__name__)

_MONTH_RE = re.compile(r"^\d{4}-\d{2}$")


def _require_symbol(symbol: Optional[str]) -> str:
    if not symbol or not symbol.strip():
        raise ValidationError("缺少参数 symbol 或 symbol 为空")
    return symbol.strip().upper()


class PriceCacheService:
    """行情读穿透缓存"""

    def __init__(
        self,
        store: CacheStore,
        fetcher: SeriesFetcher,
        policy: Optional[FreshnessPolicy] = None,
        rate_limit: Optional[RateLimitGuard] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._store = store
        self._fetcher = fetcher
        self._policy = policy or FreshnessPolicy()
        self._rate_limit = rate_limit
        self._clock = clock

    # ── 分时行情 ──────────────────────────────────────────

    async def get_intraday_prices(
        self,
        symbol: str,
        interval: str = DEFAULT_INTERVAL,
        output_size: str = "compact",
        adjusted: bool = True,
        extended_hours: bool = False,
        month: Optional[str] = None,
        force_refresh: bool = False,
    ) -> IntradayPrices:
        """
        获取分时 K 线（读穿透缓存）

        Args:
            symbol: 股票代码
            interval: 1min / 5min / 15min / 30min / 60min
            output_size: compact（最近 100 根）/ full
            adjusted: 是否复权
            extended_hours: 是否包含盘前盘后
            month: 指定历史月份 YYYY-MM；为空表示当前交易时段
            force_refresh: 跳过缓存检查，直接请求上游

        Raises:
            ValidationError: 参数不合法（未发生任何 I/O）
            UpstreamError: 上游请求失败
        """
        symbol = _require_symbol(symbol)
        if interval not in INTERVALS:
            raise ValidationError(f"interval 不合法，可选值: {', '.join(INTERVALS)}")
        if output_size not in OUTPUT_SIZES:
            raise ValidationError("outputSize 不合法，可选值: compact, full")
        if month and not _MONTH_RE.match(month):
            raise ValidationError("month 格式不合法，应为 YYYY-MM（例如 2024-01）")

        now = self._clock()
        cache_date = month or today_string(now)

        if not force_refresh:
            cached = await self._check_intraday(symbol, cache_date, interval, now)
            if cached is not None:
                return IntradayPrices(symbol=symbol, interval=interval, candles=cached)

        candles = await self._fetch(symbol, interval, output_size, adjusted, extended_hours, month)
        if candles:
            await self._store_intraday(
                symbol, cache_date, interval, candles, now, current_session=month is None
            )
        else:
            logger.info(f"上游返回空结果，不写入缓存: {symbol} {cache_date} {interval}")

        return IntradayPrices(symbol=symbol, interval=interval, candles=candles)

    async def _check_intraday(
        self, symbol: str, date_str: str, interval: str, now: datetime
    ) -> Optional[List[Candle]]:
        try:
            entry = await self._store.get_intraday(symbol, date_str)
        except CacheReadFailure as exc:
            logger.warning(f"读取分时缓存失败，按未命中处理: {exc}")
            return None

        if entry is None:
            logger.info(f"分时缓存未命中: {symbol} {date_str} {interval}")
            return None
        if self._policy.evaluate_intraday(entry, interval, now) != Freshness.FRESH:
            return None

        logger.info(f"分时缓存命中: {symbol} {date_str} {interval}")
        return entry.candles

    async def _fetch(
        self,
        symbol: str,
        interval: str,
        output_size: str,
        adjusted: bool,
        extended_hours: bool,
        month: Optional[str],
    ) -> List[Candle]:
        if self._rate_limit is not None and not await self._rate_limit.try_acquire():
            return []
        try:
            return await self._fetcher.fetch_series(
                symbol,
                interval,
                output_size=output_size,
                adjusted=adjusted,
                extended_hours=extended_hours,
                month=month,
            )
        except UpstreamThrottled:
            return []
        except UpstreamError as exc:
            logger.error(f"拉取分时数据失败: {symbol} {interval}: {exc}")
            raise

    async def _store_intraday(
        self,
        symbol: str,
        date_str: str,
        interval: str,
        candles: List[Candle],
        now: datetime,
        current_session: bool,
    ) -> None:
        entry = IntradayCacheEntry(
            symbol=symbol, date=date_str, interval=interval, candles=candles, last_updated=now
        )
        try:
            await self._store.set_intraday(entry)
            logger.info(f"已缓存分时数据: {symbol} {date_str} {interval}，{len(candles)} 根")
        except CacheWriteFailure as exc:
            logger.warning(f"写入分时缓存失败（已忽略）: {exc}")

        if not current_session:
            return
        daily = aggregate_to_daily(latest_session(candles))
        if daily is None:
            return
        # 周末 / 开盘前拉到的是上一交易日，按交易日本身记账
        session_day = to_date_string(daily.time)
        try:
            await self._store.merge_upsert_daily(symbol, session_day, daily)
            logger.info(f"已更新日 K: {symbol} {session_day}")
        except CacheWriteFailure as exc:
            logger.warning(f"更新日 K 失败（已忽略）: {exc}")

    # ── 最近交易日 ────────────────────────────────────────

    async def get_recent_open_day(
        self, symbol: str, interval: Optional[str] = None
    ) -> RecentOpenDay:
        """
        获取最近一个交易日的分时数据

        优先在缓存中向前查找（周期可能与请求不同，返回实际周期）；
        全部未命中时无条件请求上游当天数据并写入缓存。
        无法识别的周期回退为 60min。
        """
        symbol = _require_symbol(symbol)
        interval = normalize_interval(interval)

        resolver = RecentSessionResolver(self._store, self._policy, self._clock)
        session = await resolver.find_recent_cached_data(symbol, interval)
        if session is not None:
            # 缓存条目保存的是完整序列，可能跨越多个交易日
            candles = latest_session(session.candles)
            return RecentOpenDay(
                symbol=symbol,
                interval=session.actual_interval,
                trading_day=to_date_string(candles[0].time) if candles else session.trading_day,
                candles=candles,
            )

        result = await self.get_intraday_prices(symbol, interval, force_refresh=True)
        candles = latest_session(result.candles)
        return RecentOpenDay(
            symbol=symbol,
            interval=interval,
            trading_day=to_date_string(candles[0].time) if candles else None,
            candles=candles,
        )

    # ── 日 / 周 / 月 K ────────────────────────────────────

    async def _read_aggregate(
        self, symbol: str, granularity: Granularity
    ) -> Optional[AggregateCacheEntry]:
        try:
            return await self._store.get_aggregate(symbol, granularity)
        except CacheReadFailure as exc:
            logger.warning(f"读取 {granularity.value} 缓存失败，按未命中处理: {exc}")
            return None

    async def get_aggregate_prices(
        self, symbol: str, granularity: Union[Granularity, str]
    ) -> AggregatePrices:
        """
        获取日 / 周 / 月 K

        daily 直接读取增量维护的日 K 映射；weekly / monthly 缓存新鲜时直接返回，
        否则由完整日 K 重新汇总并整体覆盖写入。不调用上游。
        """
        symbol = _require_symbol(symbol)
        try:
            granularity = Granularity(granularity)
        except ValueError:
            raise ValidationError(f"granularity 不合法: {granularity}") from None
        if granularity not in AGGREGATE_GRANULARITIES:
            raise ValidationError("granularity 不合法，可选值: daily, weekly, monthly")

        now = self._clock()
        if granularity == Granularity.DAILY:
            daily = await self._read_aggregate(symbol, Granularity.DAILY)
            if daily is not None and not self._policy.is_fresh(daily.last_updated, granularity, now):
                logger.info(f"日 K 超过 24 小时未更新: {symbol}")
            prices = daily.prices if daily is not None else {}
            return AggregatePrices(symbol=symbol, granularity=granularity, prices=prices)

        cached = await self._read_aggregate(symbol, granularity)
        if cached is not None and self._policy.is_fresh(cached.last_updated, granularity, now):
            logger.info(f"{granularity.value} 缓存命中: {symbol}")
            return AggregatePrices(symbol=symbol, granularity=granularity, prices=cached.prices)

        daily = await self._read_aggregate(symbol, Granularity.DAILY)
        if daily is None or not daily.prices:
            prices = cached.prices if cached is not None else {}
            return AggregatePrices(symbol=symbol, granularity=granularity, prices=prices)

        rollup = aggregate_to_weekly if granularity == Granularity.WEEKLY else aggregate_to_monthly
        prices = rollup(daily.prices)
        entry = AggregateCacheEntry(
            symbol=symbol, granularity=granularity, prices=prices, last_updated=now
        )
        try:
            await self._store.set_aggregate(entry)
            logger.info(f"已重新汇总 {granularity.value}: {symbol}，{len(prices)} 条")
        except CacheWriteFailure as exc:
            logger.warning(f"写入 {granularity.value} 缓存失败（已忽略）: {exc}")
        return AggregatePrices(symbol=symbol, granularity=granularity, prices=prices)


def build_price_cache_service() -> PriceCacheService:
    """按请求构造服务实例，注入当前的存储连接与上游客户端"""
    return PriceCacheService(
        store=MongoCacheStore(get_price_cache_collection()),
        fetcher=AlphaVantageClient(),
        rate_limit=RateLimitGuard(get_redis()),
    )
