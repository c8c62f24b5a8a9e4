"""
Xiaohongshu Roast API - Main Application Entry Point.

This module initializes and configures the FastAPI application for the Roast
API. It sets up logging, the database, middleware, and routes.

The application takes a Xiaohongshu profile URL, fetches the profile through a
text proxy, pulls out the blogger's nickname and avatar, asks a hosted
completion API for a roast and stores the result so it can be shared and shown
in a recent-activity feed.

Key Responsibilities:
- Configure and launch the FastAPI application.
- Set up middleware for correlation, error handling, timing, and request
  validation.
- Register the handler that renders application exceptions.
- Mount API routers for health monitoring and the roast endpoints.
- Manage the application's lifecycle with startup and shutdown events.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from core.config import get_settings
from core.database import create_db_and_tables, engine
from core.exceptions import RoastAPIException
from api.endpoints import router
from api.health_router import health_router, monitoring_router
from core.logging_config import setup_logging, get_logger
from core.middleware import (
    CorrelationMiddleware,
    ErrorHandlingMiddleware,
    PerformanceMiddleware,
    RequestValidationMiddleware,
    roast_api_exception_handler,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    setup_logging()
    logger = get_logger("api.startup")
    try:
        await create_db_and_tables()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")

    if not get_settings().deepseek_api_key:
        logger.warning("DEEPSEEK_API_KEY is not set; roast generation will fail")

    logger.info("Service startup completed")
    yield

    # Cleanup on shutdown
    logger.info("Shutting down Roast API")
    await engine.dispose()
    logger.info("Cleanup completed")


app = FastAPI(
    title="Xiaohongshu Roast API",
    description="Fetches Xiaohongshu profiles and generates shareable AI roasts",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_exception_handler(RoastAPIException, roast_api_exception_handler)

# Last added runs first: correlation ids are set before anything logs
app.add_middleware(PerformanceMiddleware)
app.add_middleware(RequestValidationMiddleware)
app.add_middleware(ErrorHandlingMiddleware)
app.add_middleware(CorrelationMiddleware)

# CORS outermost so preflight requests never reach validation
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

logger = get_logger("api.main")


# Health routers first
app.include_router(health_router)
app.include_router(monitoring_router)

app.include_router(router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8002,
        reload=True,
        log_level="info",
    )
