"""
FollowTrain API - Main Application Entry Point.

This module builds the FastAPI application that backs the FollowTrain client:
people link their social-media profiles into a shared "train" so others can
find and follow everyone in it. The API persists trains and proxies profile
lookups to third-party platforms, falling back to generated profiles when a
platform cannot be reached.

Key Responsibilities:
- Configure logging and create database tables on startup.
- Install middleware for correlation IDs, request timing and error handling.
- Mount the health and train routers.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.endpoints import router
from api.health_router import health_router
from core.config import get_settings
from core.database import create_db_and_tables
from core.logging_config import setup_logging, get_logger
from core.middleware import (
    CorrelationMiddleware,
    ErrorHandlingMiddleware,
    PerformanceMiddleware,
    register_exception_handlers,
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

    logger.info("Service startup completed")
    yield

    logger.info("Shutting down FollowTrain API")


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(
        title="FollowTrain API",
        description="Shareable trains of social-media profiles",
        version="1.0.0",
        lifespan=lifespan,
    )

    # innermost first: errors are rendered before timing and correlation see the response
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(PerformanceMiddleware)
    app.add_middleware(CorrelationMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info",
    )
