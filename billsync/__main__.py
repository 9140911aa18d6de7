"""Run the API server with uvicorn."""

import uvicorn

from billsync.core.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "billsync.main:app",
        host="0.0.0.0",
        port=8001,
        reload=settings.LOCAL_DEVELOPMENT,
        log_level=settings.LOG_LEVEL.lower(),
    )
