"""Start the FastAPI application"""

import uvicorn

from moodlog.config import settings


if __name__ == "__main__":
    uvicorn.run(
        "moodlog.main:app",
        host=settings.backend_host,
        port=settings.backend_port,
        reload=settings.backend_reload,
    )
