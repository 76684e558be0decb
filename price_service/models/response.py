"""统一 API 响应模型与服务层返回结构"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from price_service.models.candle import Candle, Granularity


class ApiResponse(BaseModel):
    """标准 API 响应封装"""
    success: bool = True
    data: Optional[Any] = None
    message: str = ""
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: Any = None, message: str = "success") -> "ApiResponse":
        return cls(success=True, data=data, message=message)

    @classmethod
    def fail(cls, error: str, message: str = "failed") -> "ApiResponse":
        return cls(success=False, error=error, message=message)


class IntradayPrices(BaseModel):
    symbol: str
    interval: str
    candles: List[Candle] = Field(default_factory=list)


class RecentOpenDay(BaseModel):
    """最近交易日数据；interval 为实际命中的周期，可能与请求不同"""
    symbol: str
    interval: str
    trading_day: Optional[str] = None
    candles: List[Candle] = Field(default_factory=list)


class AggregatePrices(BaseModel):
    symbol: str
    granularity: Granularity
    prices: Dict[str, Candle] = Field(default_factory=dict)
