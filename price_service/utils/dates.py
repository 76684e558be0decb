"""
日期 / 时间工具
统一的时间戳标准化入口，以及缓存键使用的日期字符串生成
"""

from datetime import date, datetime, timedelta, timezone
from typing import Any, Mapping, Optional, Union

# 缓存中可能出现的时间戳形态：datetime / date / ISO 字符串 / epoch 秒 / 存储原生时间戳字典
TimestampLike = Union[datetime, date, str, int, float, Mapping[str, Any]]

# Alpha Vantage 时间戳按固定 UTC-5 解析，不处理夏令时
_EASTERN_FIXED_OFFSET = timedelta(hours=5)
_AV_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def to_datetime(value: TimestampLike) -> datetime:
    """
    将任意受支持的时间戳形态转换为带 UTC 时区的 datetime

    无时区的 datetime 视为 UTC；数字视为 epoch 秒；
    字典支持 {"seconds", "nanoseconds"} 与 {"_seconds", "_nanoseconds"} 两种写法。
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, bool):
        raise ValueError(f"无法识别的时间戳: {value!r}")
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    if isinstance(value, str):
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        return to_datetime(parsed)
    if isinstance(value, Mapping):
        for sec_key, nano_key in (("seconds", "nanoseconds"), ("_seconds", "_nanoseconds")):
            if sec_key in value:
                seconds = float(value[sec_key]) + float(value.get(nano_key) or 0) / 1e9
                return datetime.fromtimestamp(seconds, tz=timezone.utc)
    raise ValueError(f"无法识别的时间戳: {value!r}")


def parse_eastern_time(timestamp: str) -> datetime:
    """
    解析 Alpha Vantage 返回的美东时间戳（yyyy-MM-dd HH:mm:ss）为 UTC

    固定按 EST（UTC-5）换算，夏令时期间会偏差一小时；
    历史缓存数据均按此口径写入，修改前需同步迁移。
    """
    naive = datetime.strptime(timestamp.strip(), _AV_TIMESTAMP_FORMAT)
    return naive.replace(tzinfo=timezone.utc) + _EASTERN_FIXED_OFFSET


def to_date_string(value: TimestampLike) -> str:
    """转换为 UTC 日历日期 YYYY-MM-DD"""
    return to_datetime(value).date().isoformat()


def today_string(now: Optional[datetime] = None) -> str:
    return to_date_string(now or utcnow())


def days_ago_string(days_ago: int, now: Optional[datetime] = None) -> str:
    return to_date_string((now or utcnow()) - timedelta(days=days_ago))


def iso_week_key(date_str: str) -> str:
    """日期字符串 → ISO-8601 周键 YYYY-Www（取日期自身的 ISO 年与周）"""
    iso_year, iso_week, _ = date.fromisoformat(date_str[:10]).isocalendar()
    return f"{iso_year}-W{iso_week:02d}"
