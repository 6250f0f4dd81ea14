"""
FastAPI Application Entry Point

This module builds the FastAPI application and configures:
- Admission control on the guarded API prefix (token bucket + blacklist)
- Middleware (admission, logging, CORS)
- Self-service status and admin routes
- IP throttling for the routes outside admission (slowapi)

Design Decisions:
- create_app() factory: tests build an app bound to an in-memory database
  and a manual clock; the module-level `app` is the production instance
- The session factory and clock live on app.state so the middleware and the
  route dependencies share them
- Business routes of the host service are mounted under API_PREFIX and are
  guarded automatically
"""

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.api import admin, endpoints
from app.core.clock import Clock, utc_now
from app.core.lifecycle import initialize_database, shutdown_database
from app.core.rate_limit import limiter
from app.core.setting import settings
from app.db.session import async_session_maker
from app.middleware.admission import add_admission_middleware
from app.middleware.logging import add_logging_middleware, configure_logging


def create_app(
    session_maker: Optional[async_sessionmaker] = None,
    clock: Optional[Clock] = None,
    manage_database: bool = True
) -> FastAPI:
    """
    Create and configure the FastAPI application instance.

    Args:
        session_maker: Session factory (defaults to the configured database)
        clock: Time source for admission decisions (defaults to UTC wall clock)
        manage_database: Register the startup/shutdown database hooks

    Returns:
        Configured FastAPI app
    """
    configure_logging()

    app = FastAPI(
        title="Admission Gateway",
        description="Token-bucket admission control with abuse escalation for a URL shortening API",
        version="1.0.0",
        docs_url="/docs",  # Swagger UI documentation
        redoc_url="/redoc",  # ReDoc documentation
    )

    app.state.session_maker = session_maker or async_session_maker
    app.state.clock = clock or utc_now
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Last added runs first: logging wraps admission
    add_admission_middleware(app)
    add_logging_middleware(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/", tags=["Health"])
    async def root():
        """
        Root endpoint for health checks.
        """
        return {
            "message": "Admission Gateway",
            "version": "1.0.0",
            "docs": "/docs"
        }

    @app.get("/health", tags=["Health"])
    async def health_check():
        return {"status": "healthy"}

    app.include_router(endpoints.router, prefix=settings.API_PREFIX, tags=["Rate Limit"])
    app.include_router(admin.router, prefix=settings.ADMIN_PREFIX, tags=["Admin"])

    if manage_database:
        @app.on_event("startup")
        async def startup_event():
            """Create tables on startup when configured."""
            await initialize_database()

        @app.on_event("shutdown")
        async def shutdown_event():
            """Cleanup on shutdown."""
            await shutdown_database()

    return app


app = create_app()
