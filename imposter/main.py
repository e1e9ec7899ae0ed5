"""
FastAPI main application entry point
卧底词语游戏会话核心 - 主应用入口
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from imposter.core.config import settings
from imposter.core.database import init_db, close_db
from imposter.core.exceptions import GameError
from imposter.core.redis_client import init_redis, close_redis, redis_manager
from imposter.realtime.change_feed import change_feed
from imposter.api.v1.api import api_router
import logging

# Configure logging
handlers = [logging.StreamHandler()]
if settings.LOG_FILE:
    handlers.append(logging.FileHandler(settings.LOG_FILE, encoding='utf-8'))

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper()),
    format=settings.LOG_FORMAT,
    handlers=handlers
)
logger = logging.getLogger(__name__)

# 减少 SQLAlchemy 的日志噪音
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    logger.info("Starting imposter session core...")

    try:
        await init_db()
        if settings.CHANGE_FEED_REDIS:
            await init_redis()
            if redis_manager.available:
                await change_feed.attach_redis(await redis_manager.get_client(),
                                               settings.CHANGE_FEED_CHANNEL)
            else:
                logger.warning("Redis unavailable, change notifications stay in-process")
        logger.info("Application startup completed")

    except Exception as e:
        logger.error(f"Failed to start application: {e}")
        raise

    yield

    logger.info("Shutting down application...")
    try:
        await change_feed.close()
        await close_redis()
        await close_db()
        logger.info("Application shutdown completed")
    except Exception as e:
        logger.error(f"Error during shutdown: {e}")


app = FastAPI(
    title="Imposter",
    description="Imposter word game session core - 房间、角色、线索、投票与阶段同步",
    version="1.0.0",
    lifespan=lifespan,
    redirect_slashes=False
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(GameError)
async def game_error_handler(request: Request, exc: GameError):
    """领域错误统一映射为 HTTP 状态码"""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": type(exc).__name__, "message": exc.message, "detail": exc.detail},
    )


# Include API routes
app.include_router(api_router, prefix="/api/v1")


@app.get("/")
async def root():
    return {"message": "Imposter session core API", "status": "running", "version": "1.0.0"}
