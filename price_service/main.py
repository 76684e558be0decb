"""
股票行情缓存服务
独立 FastAPI 应用程序入口

启动方式:
    uvicorn price_service.main:app --host 0.0.0.0 --port 8002
    python -m price_service.main
"""

import logging
import time
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from price_service import __version__
from price_service.config import settings
from price_service.db import init_mongodb, init_redis, close_connections
from price_service.errors import UpstreamError, ValidationError
from price_service.models.response import ApiResponse
from price_service.routers import health, prices

# ── 日志配置 ──────────────────────────────────────────────
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# ── 生命周期管理 ──────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用启动/关闭生命周期钩子"""
    logger.info("=" * 60)
    logger.info(f"🚀 Stock Price Cache Service v{__version__} 启动中")
    logger.info(f"   MongoDB   : {settings.MONGODB_HOST}:{settings.MONGODB_PORT}")
    logger.info(f"   Redis     : {settings.REDIS_HOST}:{settings.REDIS_PORT}")
    logger.info(f"   Upstream  : {settings.ALPHA_VANTAGE_BASE_URL}")
    logger.info("=" * 60)

    if not settings.ALPHA_VANTAGE_API_KEY:
        logger.warning("⚠️ ALPHA_VANTAGE_API_KEY 未配置，上游请求将被拒绝")

    # 初始化数据库连接（失败不阻断启动，降级运行）
    mongo_ok = await init_mongodb()
    redis_ok = await init_redis()

    if mongo_ok and redis_ok:
        logger.info("✅ 所有数据库连接就绪")
    elif mongo_ok:
        logger.warning("⚠️ Redis 不可用，上游调用配额不做限制")
    elif redis_ok:
        logger.warning("⚠️ MongoDB 不可用，缓存失效，所有请求直连上游")
    else:
        logger.warning("⚠️ 数据库均不可用，以无缓存模式运行")

    yield

    logger.info("🔄 行情缓存服务正在关闭...")
    await close_connections()
    logger.info("✅ 行情缓存服务已关闭")


# ── 应用实例 ──────────────────────────────────────────────
app = FastAPI(
    title="股票行情缓存服务",
    description=(
        "为移动端行情客户端提供价格数据，尽量减少对限流上游（5 次/分钟，500 次/天）的调用：\n"
        "- 📈 分时 K 线读穿透缓存（开盘 15 分钟 / 休市 24 小时）\n"
        "- 🕘 最近交易日查找（向前 5 天、跨周期回退）\n"
        "- 🗓️ 日 / 周 / 月 K 汇总\n\n"
        "**分层架构**\n"
        "```\n"
        "Acquisition Layer  ← Alpha Vantage 分时数据\n"
        "Processing Layer   ← 时间序列清洗\n"
        "Cache Layer        ← MongoDB 文档缓存\n"
        "Aggregation Layer  ← 分时 → 日 → 周 / 月\n"
        "```"
    ),
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS 中间件 ───────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── 请求计时中间件 ─────────────────────────────────────────
@app.middleware("http")
async def add_process_time(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    response.headers["X-Process-Time"] = f"{(time.time() - start) * 1000:.1f}ms"
    return response


# ── 异常处理 ──────────────────────────────────────────────
@app.exception_handler(ValidationError)
async def validation_exception_handler(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=400,
        content=ApiResponse.fail(error=str(exc), message="请求参数错误").model_dump(),
    )


@app.exception_handler(UpstreamError)
async def upstream_exception_handler(request: Request, exc: UpstreamError):
    logger.error(f"上游数据源错误: {exc}")
    return JSONResponse(
        status_code=502,
        content=ApiResponse.fail(error=str(exc), message="上游数据源错误").model_dump(),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"未处理的异常: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "内部服务错误", "message": str(exc)},
    )


# ── 注册路由 ──────────────────────────────────────────────
app.include_router(health.router)
app.include_router(prices.router)


# ── 根路由 ───────────────────────────────────────────────
@app.get("/", include_in_schema=False)
async def root():
    return {
        "service": "Stock Price Cache Service",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
    }


# ── 直接运行入口 ──────────────────────────────────────────
if __name__ == "__main__":
    uvicorn.run(
        "price_service.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
