"""
Layer 4 – 聚合层
纯函数、无 I/O：分时 K → 日 K，日 K → 周 K / 月 K

同一组内的折叠规则一致：
  open  = 第一根的 open
  close = 最后一根的 close
  high  = 最高 high，low = 最低 low
  volume 求和，time 取第一根
"""

from collections import OrderedDict
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from price_service.models.candle import Candle
from price_service.utils.dates import iso_week_key, to_date_string


def aggregate_to_daily(candles: Sequence[Candle]) -> Optional[Candle]:
    """将按时间升序的 K 线折叠为一根；空输入返回 None"""
    if not candles:
        return None
    first, last = candles[0], candles[-1]
    return Candle(
        time=first.time,
        open=first.open,
        high=max(c.high for c in candles),
        low=min(c.low for c in candles),
        close=last.close,
        volume=sum(c.volume for c in candles),
    )


def _group_and_fold(
    daily_prices: Mapping[str, Candle],
    period_of: Callable[[str], str],
) -> Dict[str, Candle]:
    # 按日期键排序后分组，保证 first / last 为时间先后而非插入顺序
    groups: "OrderedDict[str, List[Candle]]" = OrderedDict()
    for date_key in sorted(daily_prices):
        groups.setdefault(period_of(date_key), []).append(daily_prices[date_key])

    result: Dict[str, Candle] = {}
    for period_key, candles in groups.items():
        folded = aggregate_to_daily(candles)
        if folded is not None:
            result[period_key] = folded
    return result


def aggregate_to_weekly(daily_prices: Mapping[str, Candle]) -> Dict[str, Candle]:
    """按 ISO-8601 周（YYYY-Www）汇总日 K"""
    return _group_and_fold(daily_prices, iso_week_key)


def aggregate_to_monthly(daily_prices: Mapping[str, Candle]) -> Dict[str, Candle]:
    """按月份（日期键前 7 位 YYYY-MM）汇总日 K"""
    return _group_and_fold(daily_prices, lambda date_key: date_key[:7])


def latest_session(candles: Sequence[Candle]) -> List[Candle]:
    """取与最后一根 K 线处于同一（UTC）日历日的全部 K 线"""
    if not candles:
        return []
    last_day = to_date_string(candles[-1].time)
    return [c for c in candles if to_date_string(c.time) == last_day]
