"""
Health check endpoints
健康检查端点
"""

from fastapi import APIRouter
from sqlalchemy import text

from imposter.core.database import db_manager
from imposter.core.redis_client import redis_manager
from imposter.realtime.change_feed import change_feed

router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Basic health check endpoint
    基础健康检查端点
    """
    database = "unavailable"
    if db_manager.engine is not None:
        try:
            async with db_manager.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            database = "healthy"
        except Exception as e:
            database = f"error: {e}"

    return {
        "status": "healthy" if database == "healthy" else "degraded",
        "service": "imposter-session-core",
        "database": database,
        "redis": "connected" if redis_manager.available else "disabled",
        "subscribers": change_feed.subscriber_count(),
    }
