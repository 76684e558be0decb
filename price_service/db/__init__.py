"""
数据库连接管理模块
  MongoDB → price_cache 集合（行情缓存文档）
  Redis   → Alpha Vantage 调用计数

任一后端不可用时对应访问器返回 None，缓存层 / 配额层据此降级。
"""

import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection
from redis.asyncio import Redis

from price_service.config import settings
from price_service.layers.rate_limit import RateLimitGuard

logger = logging.getLogger(__name__)

# ── 全局连接实例 ─────────────────────────────────────────
_mongo_client: Optional[AsyncIOMotorClient] = None
_price_cache: Optional[AsyncIOMotorCollection] = None
_redis_client: Optional[Redis] = None


async def init_mongodb() -> bool:
    """连接 MongoDB 并定位行情缓存集合，返回是否成功"""
    global _mongo_client, _price_cache
    if not settings.MONGODB_ENABLED:
        logger.info("MongoDB 未启用，行情缓存关闭")
        return False

    # tz_aware：读回的 lastUpdated 带 UTC 时区
    client = AsyncIOMotorClient(
        settings.MONGO_URI,
        serverSelectionTimeoutMS=settings.MONGO_SERVER_SELECTION_TIMEOUT_MS,
        tz_aware=True,
    )
    try:
        await client.admin.command("ping")
    except Exception as exc:
        logger.warning(f"⚠️ MongoDB 连接失败（缓存不可用，所有请求将直连上游）: {exc}")
        client.close()
        return False

    _mongo_client = client
    _price_cache = client[settings.MONGODB_DATABASE][settings.PRICE_CACHE_COLLECTION]
    logger.info(
        f"✅ 行情缓存集合就绪: {settings.MONGODB_HOST}:{settings.MONGODB_PORT}/"
        f"{settings.MONGODB_DATABASE}.{settings.PRICE_CACHE_COLLECTION}"
    )
    return True


async def init_redis() -> bool:
    """连接 Redis（上游调用计数），返回是否成功"""
    global _redis_client
    if not settings.REDIS_ENABLED:
        logger.info("Redis 未启用，上游调用配额不做限制")
        return False

    client = Redis.from_url(settings.REDIS_URL, decode_responses=True, socket_connect_timeout=5)
    try:
        await client.ping()
    except Exception as exc:
        logger.warning(f"⚠️ Redis 连接失败（上游调用配额不做限制）: {exc}")
        await client.aclose()
        return False

    _redis_client = client
    logger.info(f"✅ 调用计数器就绪: {settings.REDIS_HOST}:{settings.REDIS_PORT}")
    return True


async def close_connections():
    """关闭所有数据库连接"""
    global _mongo_client, _price_cache, _redis_client
    if _mongo_client is not None:
        _mongo_client.close()
        _mongo_client = None
        _price_cache = None
        logger.info("MongoDB 连接已关闭")
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
        logger.info("Redis 连接已关闭")


def get_price_cache_collection() -> Optional[AsyncIOMotorCollection]:
    """行情缓存集合（MongoDB 不可用时为 None）"""
    return _price_cache


def get_redis() -> Optional[Redis]:
    """调用计数用的 Redis 客户端（可能为 None）"""
    return _redis_client


async def check_health() -> dict:
    """
    检查缓存集合与调用计数器

    price_cache 报告集合内文档数；rate_limit 报告今日已用的上游调用次数。
    """
    result = {
        "price_cache": {"status": "disabled"},
        "rate_limit": {"status": "disabled"},
    }
    if _price_cache is not None:
        try:
            documents = await _price_cache.estimated_document_count()
            result["price_cache"] = {
                "status": "healthy",
                "collection": settings.PRICE_CACHE_COLLECTION,
                "documents": documents,
            }
        except Exception as exc:
            result["price_cache"] = {"status": "unhealthy", "error": str(exc)}
    elif settings.MONGODB_ENABLED:
        result["price_cache"] = {"status": "disconnected"}

    if _redis_client is not None:
        try:
            result["rate_limit"] = {
                "status": "healthy",
                "calls_today": await RateLimitGuard(_redis_client).calls_today(),
                "daily_limit": settings.RATE_LIMIT_PER_DAY,
            }
        except Exception as exc:
            result["rate_limit"] = {"status": "unhealthy", "error": str(exc)}
    elif settings.REDIS_ENABLED:
        result["rate_limit"] = {"status": "disconnected"}

    return result
