"""
行情数据路由
GET /api/prices/intraday                          - 分时 K 线（读穿透缓存）
GET /api/prices/recent-open-day                   - 最近交易日分时 K 线
GET /api/prices/{symbol}/aggregate/{granularity}  - 日 / 周 / 月 K
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from price_service.layers.processing import candles_to_records
from price_service.models.response import ApiResponse
from price_service.services.price_cache_service import (
    PriceCacheService,
    build_price_cache_service,
)

router = APIRouter(prefix="/api/prices", tags=["行情数据"])


@router.get("/intraday", response_model=ApiResponse)
async def get_intraday_prices(
    symbol: Optional[str] = Query(default=None, description="股票代码，例如 AAPL"),
    interval: str = Query(default="15min", description="1min / 5min / 15min / 30min / 60min"),
    output_size: str = Query(default="compact", alias="outputSize", description="compact / full"),
    adjusted: bool = Query(default=True, description="是否复权"),
    extended_hours: bool = Query(default=False, alias="extendedHours", description="是否包含盘前盘后"),
    month: Optional[str] = Query(default=None, description="历史月份 YYYY-MM"),
    svc: PriceCacheService = Depends(build_price_cache_service),
):
    """获取分时 K 线"""
    result = await svc.get_intraday_prices(
        symbol=symbol,
        interval=interval,
        output_size=output_size,
        adjusted=adjusted,
        extended_hours=extended_hours,
        month=month,
    )
    return ApiResponse.ok(
        data={
            "symbol": result.symbol,
            "interval": result.interval,
            "outputSize": output_size,
            "adjusted": adjusted,
            "extendedHours": extended_hours,
            "month": month,
            "count": len(result.candles),
            "prices": candles_to_records(result.candles),
        },
    )


@router.get("/recent-open-day", response_model=ApiResponse)
async def get_recent_open_day(
    symbol: Optional[str] = Query(default=None, description="股票代码，例如 AAPL"),
    interval: Optional[str] = Query(default=None, description="优先周期，默认 15min"),
    svc: PriceCacheService = Depends(build_price_cache_service),
):
    """获取最近交易日的分时 K 线（interval 为实际返回的周期）"""
    result = await svc.get_recent_open_day(symbol=symbol, interval=interval)
    return ApiResponse.ok(
        data={
            "symbol": result.symbol,
            "interval": result.interval,
            "tradingDay": result.trading_day,
            "count": len(result.candles),
            "candles": candles_to_records(result.candles),
        },
    )


@router.get("/{symbol}/aggregate/{granularity}", response_model=ApiResponse)
async def get_aggregate_prices(
    symbol: str,
    granularity: str,
    svc: PriceCacheService = Depends(build_price_cache_service),
):
    """获取日 / 周 / 月 K（仅读缓存，不调用上游）"""
    result = await svc.get_aggregate_prices(symbol=symbol, granularity=granularity)
    return ApiResponse.ok(
        data={
            "symbol": result.symbol,
            "granularity": result.granularity.value,
            "count": len(result.prices),
            "prices": {k: c.model_dump(mode="json") for k, c in sorted(result.prices.items())},
        },
    )
