"""
Development server runner
开发服务器启动脚本
"""

import uvicorn
from imposter.core.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "imposter.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        access_log=True,
        log_level=settings.LOG_LEVEL.lower()
    )
