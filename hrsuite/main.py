"""HR Suite — FastAPI application factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from hrsuite.attendance.router import router as attendance_router
from hrsuite.common.exceptions import register_exception_handlers
from hrsuite.common.log_config import configure_logging
from hrsuite.common.rate_limit import limiter
from hrsuite.config import settings
from hrsuite.core_hr.router import (
    departments_router,
    employees_router,
    locations_router,
)
from hrsuite.database import engine
from hrsuite.payroll.router import router as payroll_router
from hrsuite.performance.router import router as performance_router
from hrsuite.recruitment.router import router as recruitment_router
from hrsuite.reports.router import router as reports_router
from hrsuite.time_off.router import router as time_off_router

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"
API_PREFIX = "/api/v1"

_ROUTERS = (
    (employees_router, "employees"),
    (departments_router, "departments"),
    (locations_router, "locations"),
    (attendance_router, "attendance"),
    (time_off_router, "time-off"),
    (performance_router, "performance"),
    (reports_router, "reports"),
    (payroll_router, "payroll"),
    (recruitment_router, "recruitment"),
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("HR Suite API starting (environment=%s)", settings.ENVIRONMENT)
    yield
    await engine.dispose()
    logger.info("HR Suite API stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    configure_logging()

    app = FastAPI(
        title="HR Suite",
        description="Nexus HRIS, PayLinq payroll and RecruitIQ recruitment API",
        version=API_VERSION,
        docs_url="/api/docs" if settings.ENVIRONMENT != "production" else None,
        redoc_url="/api/redoc" if settings.ENVIRONMENT != "production" else None,
        lifespan=lifespan,
    )

    # Exception handlers (RFC 7807)
    register_exception_handlers(app)

    # Rate limiting (slowapi)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get(f"{API_PREFIX}/health", tags=["system"])
    async def health_check():
        return {
            "status": "healthy",
            "version": API_VERSION,
            "environment": settings.ENVIRONMENT,
        }

    for router, path in _ROUTERS:
        app.include_router(router, prefix=f"{API_PREFIX}/{path}", tags=[path])

    return app


app = create_app()
