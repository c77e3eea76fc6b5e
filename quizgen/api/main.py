"""
FastAPI application for quizgen.

Provides REST API for:
- Quiz generation (topic-balanced, phase-aware, personalized for phase 2)
- Quiz configuration introspection
- Question code decoding
"""

from __future__ import annotations

import sys
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from config import get_settings
from quizgen import __version__
from quizgen.db.database import dispose_engine, get_engine

settings = get_settings()


def configure_logging() -> None:
    """Route loguru output according to settings."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )
    if settings.log_file:
        logger.add(settings.log_file, level=settings.log_level, rotation="10 MB")


async def _check_database_health() -> tuple[str, str | None]:
    """
    Check database connectivity.

    Returns:
        Tuple of (status, error_message). Status is "ok" or "error".
    """
    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
        return "ok", None
    except (SQLAlchemyError, OSError) as e:
        return "error", str(e)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    configure_logging()
    logger.info(f"Starting quizgen service on {settings.api_host}:{settings.api_port}")

    yield

    logger.info("Shutting down quizgen service...")
    await dispose_engine()


app = FastAPI(
    title="quizgen",
    description="""
    Adaptive quiz assembly service.

    ## Features

    - **Topic balancing**: every topic of a subject gets its share, with a
      cascading fallback when a narrow filter under-supplies
    - **Cross-phase deduplication**: questions served in earlier phases are never repeated
    - **Passage groups**: cloze and reading items sharing a passage stay together
    - **Phase 2 personalization**: weak topics from phase 1 get more questions
    """,
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ========================================
# Health & Status Endpoints
# ========================================


@app.get("/", tags=["Health"])
def root() -> dict[str, str]:
    """Root endpoint returning service info."""
    return {
        "service": "quizgen",
        "version": __version__,
        "status": "ok",
    }


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, Any]:
    """Health check with an actual database round trip."""
    db_status, db_error = await _check_database_health()

    result: dict[str, Any] = {
        "status": "healthy" if db_status == "ok" else "unhealthy",
        "timestamp": datetime.utcnow().isoformat(),
        "components": {"database": db_status},
        "config": {
            "balancer": settings.get_balancer_config(),
            "personalization": settings.get_personalization_config(),
            "assembler": settings.get_assembler_config(),
        },
    }
    if db_error:
        result["errors"] = {"database": db_error}
    return result


# ========================================
# Import and mount routers
# ========================================

from quizgen.api.routers import quiz_router  # noqa: E402

app.include_router(quiz_router.router, prefix="/api/quizzes", tags=["Quizzes"])


def run() -> None:
    """Serve the API with uvicorn (the `quizgen-api` command)."""
    import uvicorn

    uvicorn.run(
        "quizgen.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
