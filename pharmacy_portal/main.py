from contextlib import asynccontextmanager
from typing import AsyncGenerator
import asyncio

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from pharmacy_portal.db import init_db, async_session_factory
from pharmacy_portal.core import get_settings
from pharmacy_portal.api.v1 import api_router
from pharmacy_portal.container import build_container
from pharmacy_portal.core.middleware import RequestLoggingMiddleware
from pharmacy_portal.logs import api_logger, debug_logger

# Get application settings
settings = get_settings()

# How often idle live streams are swept
IDLE_REAPER_INTERVAL_SECONDS = 30


# Lifespan event handler
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    try:
        await init_db()
        api_logger.info("Database initialized successfully")
    except Exception as e:
        debug_logger.critical(f"Error initializing database: {e}")
        raise

    container = build_container(settings=settings, session_factory=async_session_factory)
    app.state.container = container
    reaper = asyncio.create_task(
        container.productivity_service.run_idle_reaper(IDLE_REAPER_INTERVAL_SECONDS)
    )

    yield

    # Clean up resources on shutdown
    reaper.cancel()
    try:
        await reaper
    except asyncio.CancelledError:
        pass
    await container.productivity_service.shutdown()
    api_logger.info("Productivity streams closed")


# Initialize FastAPI app
app = FastAPI(
    title=settings.PROJECT_NAME,
    description="API for pharmacy PAC productivity, Wellca metrics and staff accounts",
    version="0.1.0",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],
    max_age=3600,
)

# Add request logging middleware
app.add_middleware(RequestLoggingMiddleware)

# Include API router
app.include_router(api_router)


@app.get("/")
async def root(request: Request):
    """Health check endpoint"""
    api_logger.info(f"Received health check request: {request.method} {request.url}")
    return {"message": f"{settings.PROJECT_NAME} is running"}


if __name__ == "__main__":
    import uvicorn

    api_logger.info("Server starting on http://0.0.0.0:8000")

    uvicorn.run(
        "pharmacy_portal.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="info"
    )
