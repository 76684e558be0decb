"""
Layer 1 – 数据获取层
封装 Alpha Vantage TIME_SERIES_INTRADAY 接口，向上层提供统一的分时数据拉取接口。

上游免费档限流 5 次/分钟、500 次/天，限流时返回 Note / Information 字段，
此处转换为 UpstreamThrottled，由服务层映射为空结果。
"""

import logging
from typing import Any, Dict, List, Optional, Protocol

import httpx

from price_service.config import PriceServiceSettings, settings as default_settings
from price_service.errors import UpstreamError, UpstreamThrottled
from price_service.layers.processing import normalize_intraday_series
from price_service.models.candle import Candle

logger = logging.getLogger(__name__)

_THROTTLE_FIELDS = ("Note", "Information")


class SeriesFetcher(Protocol):
    """上游分时数据拉取协作者"""

    async def fetch_series(
        self,
        symbol: str,
        interval: str,
        output_size: str = "compact",
        adjusted: bool = True,
        extended_hours: bool = False,
        month: Optional[str] = None,
    ) -> List[Candle]: ...


class AlphaVantageClient:
    """Alpha Vantage 分时数据客户端"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        settings: Optional[PriceServiceSettings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        cfg = settings or default_settings
        self._api_key = api_key if api_key is not None else cfg.ALPHA_VANTAGE_API_KEY
        self._base_url = cfg.ALPHA_VANTAGE_BASE_URL
        self._timeout = cfg.ALPHA_VANTAGE_TIMEOUT
        self._client = client

    async def _get(self, params: Dict[str, str]) -> Dict[str, Any]:
        try:
            if self._client is not None:
                response = await self._client.get(self._base_url, params=params)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.get(self._base_url, params=params)
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Alpha Vantage 请求失败: {exc}") from exc

        if response.status_code >= 400:
            raise UpstreamError(
                f"Alpha Vantage 请求失败: {response.status_code} {response.reason_phrase}"
            )
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamError(f"Alpha Vantage 返回非 JSON 响应: {exc}") from exc

    async def fetch_series(
        self,
        symbol: str,
        interval: str,
        output_size: str = "compact",
        adjusted: bool = True,
        extended_hours: bool = False,
        month: Optional[str] = None,
    ) -> List[Candle]:
        """
        拉取分时 K 线，按时间升序返回

        Raises:
            UpstreamThrottled: 上游返回限流提示
            UpstreamError: 传输失败、HTTP 错误、业务错误或响应缺少时间序列
        """
        params = {
            "function": "TIME_SERIES_INTRADAY",
            "symbol": symbol,
            "interval": interval,
            "apikey": self._api_key,
            "outputsize": output_size,
            "adjusted": str(adjusted).lower(),
            "extended_hours": str(extended_hours).lower(),
        }
        if month:
            params["month"] = month

        logger.info(
            f"API 调用: Alpha Vantage TIME_SERIES_INTRADAY "
            f"symbol={symbol} interval={interval} outputsize={output_size} month={month}"
        )
        data = await self._get(params)

        if "Error Message" in data:
            raise UpstreamError(f"Alpha Vantage API 错误: {data['Error Message']}")
        for field in _THROTTLE_FIELDS:
            if field in data:
                logger.warning(f"Alpha Vantage 限流提示: {data[field]}")
                raise UpstreamThrottled(str(data[field]))

        series_key = f"Time Series ({interval})"
        series = data.get(series_key)
        if series is None:
            raise UpstreamError(f"响应中缺少 {series_key}")

        try:
            return normalize_intraday_series(series)
        except ValueError as exc:
            raise UpstreamError(f"分时数据解析失败: {exc}") from exc
