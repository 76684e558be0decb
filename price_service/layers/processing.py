"""
Layer 3 – 数据处理层
将 Alpha Vantage 原始时间序列清洗为按时间升序的 Candle 列表
"""

import logging
from typing import Any, Dict, List, Mapping

import pandas as pd

from price_service.models.candle import Candle
from price_service.utils.dates import parse_eastern_time

logger = logging.getLogger(__name__)

_AV_COLUMNS = {
    "1. open": "open",
    "2. high": "high",
    "3. low": "low",
    "4. close": "close",
    "5. volume": "volume",
}
_PRICE_COLS = ["open", "high", "low", "close"]


def normalize_intraday_series(series: Mapping[str, Mapping[str, Any]]) -> List[Candle]:
    """
    标准化分时时间序列

    Args:
        series: {"yyyy-MM-dd HH:mm:ss": {"1. open": "...", ...}, ...}（美东时间）

    价格无法解析的行直接丢弃，成交量缺失记为 0；同一时间戳保留最后一条。
    """
    if not series:
        return []

    df = pd.DataFrame.from_dict(dict(series), orient="index").rename(columns=_AV_COLUMNS)
    for col in _PRICE_COLS + ["volume"]:
        if col not in df.columns:
            df[col] = None
        df[col] = pd.to_numeric(df[col], errors="coerce")

    before = len(df)
    df = df.dropna(subset=_PRICE_COLS)
    if len(df) < before:
        logger.warning(f"丢弃 {before - len(df)} 条价格无法解析的分时数据")

    df["volume"] = df["volume"].fillna(0).astype("int64")
    df["time"] = [parse_eastern_time(ts) for ts in df.index]
    df = df.drop_duplicates(subset=["time"], keep="last").sort_values("time")

    return [
        Candle(
            time=row.time.to_pydatetime() if isinstance(row.time, pd.Timestamp) else row.time,
            open=float(row.open),
            high=float(row.high),
            low=float(row.low),
            close=float(row.close),
            volume=int(row.volume),
        )
        for row in df.itertuples(index=False)
    ]


def candles_to_records(candles: List[Candle]) -> List[Dict[str, Any]]:
    """Candle 列表转换为 JSON 友好的字典列表（time 为 ISO 字符串）"""
    return [c.model_dump(mode="json") for c in candles]
