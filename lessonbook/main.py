"""
FastAPI application for the lesson booking backend

Slot holds and bookings for students, availability and schedule tools for tutors
"""
import logging
from collections import defaultdict
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from sqlalchemy.exc import SQLAlchemyError

from lessonbook.config.redis import close_redis_pool
from lessonbook.config.settings import get_settings
from lessonbook.core.exceptions import DomainException
from lessonbook.core.middleware import correlation_id_middleware, request_logging_middleware
from lessonbook.core.monitoring import health_router
from lessonbook.api.v1.router import api_v1_router
from lessonbook.api.middleware.rate_limit_middleware import RateLimitMiddleware
from lessonbook.utils.my_logging import setup_logging

settings = get_settings()
logger = logging.getLogger(__name__)

MSG_INTERNAL_ERROR = "Something went wrong. Please try again."


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    # Startup
    setup_logging()
    print("🚀 Lessonbook API starting up...")
    print(f"📅 Booking API available at /api/v1/")
    print(f"❤️  Health check at /health")

    if settings.DEBUG:
        print("\n" + "="*80)
        print("📋 REGISTERED ROUTES:")
        print("="*80)

        routes_by_tag = defaultdict(list)
        for route in app.routes:
            if isinstance(route, APIRoute):
                tag = route.tags[0] if route.tags else "other"
                for method in route.methods:
                    routes_by_tag[tag].append((method, route.path, route.name))

        for tag, routes in sorted(routes_by_tag.items()):
            print(f"\n[{tag.upper()}]")
            for method, path, name in sorted(routes, key=lambda x: (x[1], x[0])):
                print(f"  {method:8} {path:50} ({name})")

        print("\n" + "="*80 + "\n")

    yield

    # Shutdown
    await close_redis_pool()
    print("🛑 Lessonbook API shutting down...")


async def domain_exception_handler(request: Request, exc: DomainException):
    """Map service-layer errors to their HTTP status and a friendly body"""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_response_body())


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={"error": "Invalid request", "details": jsonable_encoder(exc.errors())},
    )


async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Database error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"error": MSG_INTERNAL_ERROR})


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""

    app = FastAPI(
        title="Lessonbook API",
        description="Tutoring marketplace: slot holds, bookings and tutor availability",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
    )

    app.add_exception_handler(DomainException, domain_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, database_exception_handler)

    app.add_middleware(RateLimitMiddleware, requests_per_second=settings.SLOT_MUTATIONS_PER_SECOND)

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add custom middleware
    app.middleware("http")(request_logging_middleware)
    app.middleware("http")(correlation_id_middleware)

    # Include routers
    app.include_router(health_router, prefix="/health", tags=["monitoring"])
    app.include_router(api_v1_router, prefix="/api/v1")

    @app.get("/")
    async def root():
        return {
            "service": "Lessonbook API",
            "version": "0.1.0",
            "status": "running",
            "endpoints": {
                "api": "/api/v1/",
                "health": "/health",
                "docs": "/docs" if settings.DEBUG else "disabled"
            }
        }

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "lessonbook.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="info"
    )
