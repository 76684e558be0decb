"""
行情缓存服务配置模块
支持从环境变量读取配置，自动检测 Docker 容器环境并启用服务发现
"""

import os
from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _is_docker() -> bool:
    """检测当前是否运行在 Docker 容器内"""
    return (
        os.path.exists("/.dockerenv")
        or os.environ.get("DOCKER_CONTAINER", "").lower() in ("1", "true", "yes")
    )


def _default_mongo_host() -> str:
    """Docker 环境使用服务名 'mongodb'，本地使用 'localhost'"""
    return "mongodb" if _is_docker() else "localhost"


def _default_redis_host() -> str:
    """Docker 环境使用服务名 'redis'，本地使用 'localhost'"""
    return "redis" if _is_docker() else "localhost"


class PriceServiceSettings(BaseSettings):
    """行情缓存服务配置"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── 基础配置 ──────────────────────────────────────────
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=8002)
    DEBUG: bool = Field(default=False)
    ALLOWED_ORIGINS: List[str] = Field(
        default_factory=lambda: ["*"]
    )

    # ── MongoDB 配置（缓存文档存储） ───────────────────────
    MONGODB_HOST: str = Field(default_factory=_default_mongo_host)
    MONGODB_PORT: int = Field(default=27017)
    MONGODB_USERNAME: str = Field(default="")
    MONGODB_PASSWORD: str = Field(default="")
    MONGODB_DATABASE: str = Field(default="stock_prices")
    MONGODB_AUTH_SOURCE: str = Field(default="admin")
    MONGODB_ENABLED: bool = Field(default=True)
    MONGO_SERVER_SELECTION_TIMEOUT_MS: int = Field(default=5000)
    PRICE_CACHE_COLLECTION: str = Field(default="price_cache")

    @property
    def MONGO_URI(self) -> str:
        if self.MONGODB_USERNAME and self.MONGODB_PASSWORD:
            return (
                f"mongodb://{self.MONGODB_USERNAME}:{self.MONGODB_PASSWORD}"
                f"@{self.MONGODB_HOST}:{self.MONGODB_PORT}"
                f"/{self.MONGODB_DATABASE}?authSource={self.MONGODB_AUTH_SOURCE}"
            )
        return f"mongodb://{self.MONGODB_HOST}:{self.MONGODB_PORT}/{self.MONGODB_DATABASE}"

    # ── Redis 配置（上游调用配额计数） ─────────────────────
    REDIS_HOST: str = Field(default_factory=_default_redis_host)
    REDIS_PORT: int = Field(default=6379)
    REDIS_PASSWORD: str = Field(default="")
    REDIS_DB: int = Field(default=0)
    REDIS_ENABLED: bool = Field(default=True)

    @property
    def REDIS_URL(self) -> str:
        if self.REDIS_PASSWORD:
            return f"redis://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    # ── 上游数据源（Alpha Vantage） ────────────────────────
    ALPHA_VANTAGE_API_KEY: str = Field(default="")
    ALPHA_VANTAGE_BASE_URL: str = Field(default="https://www.alphavantage.co/query")
    ALPHA_VANTAGE_TIMEOUT: float = Field(default=30.0)
    RATE_LIMIT_PER_MINUTE: int = Field(default=5)     # 免费档每分钟上限
    RATE_LIMIT_PER_DAY: int = Field(default=500)      # 免费档每日上限

    # ── 缓存 TTL（秒） ────────────────────────────────────
    INTRADAY_MARKET_OPEN_TTL: int = Field(default=15 * 60)
    INTRADAY_MARKET_CLOSED_TTL: int = Field(default=24 * 3600)
    DAILY_TTL: int = Field(default=24 * 3600)
    WEEKLY_TTL: int = Field(default=7 * 24 * 3600)
    MONTHLY_TTL: int = Field(default=30 * 24 * 3600)

    # ── 交易时段（交易所当地时间） ─────────────────────────
    MARKET_TZ: str = Field(default="America/New_York")
    MARKET_OPEN: str = Field(default="09:30")
    MARKET_CLOSE: str = Field(default="16:00")

    # ── 日志配置 ──────────────────────────────────────────
    LOG_LEVEL: str = Field(default="INFO")


@lru_cache
def get_settings() -> PriceServiceSettings:
    """获取全局配置（单例）"""
    return PriceServiceSettings()


settings = get_settings()
