"""健康检查路由"""

import time

from fastapi import APIRouter

from price_service import __version__
from price_service.db import check_health

router = APIRouter(tags=["健康检查"])


@router.get("/health")
async def health():
    """服务健康检查；数据库不可用时服务仍可用（直连上游）"""
    db_health = await check_health()
    return {
        "success": True,
        "data": {
            "status": "ok",
            "version": __version__,
            "timestamp": int(time.time()),
            "service": "Stock Price Cache Service",
            "databases": db_health,
        },
        "message": "服务运行正常",
    }


@router.get("/healthz")
async def healthz():
    """Kubernetes liveness probe"""
    return {"status": "ok"}


@router.get("/readyz")
async def readyz():
    """Kubernetes readiness probe"""
    return {"ready": True}
