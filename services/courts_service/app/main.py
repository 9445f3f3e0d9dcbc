"""FastAPI application for the Courts Service."""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from libs.common.config import Settings, get_settings
from libs.common.error_handler import add_exception_handlers
from libs.common.logging import get_logger
from libs.common.middleware import add_observability_middleware
from services.courts_service.dependencies import CourtsServices, build_services
from services.courts_service.errors import BookingError
from services.courts_service.routers import (
    accounts_router,
    admin_router,
    auth_router,
    courts_router,
    reservations_router,
)

logger = get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    services: Optional[CourtsServices] = None,
) -> FastAPI:
    """Create and configure the Courts Service FastAPI app.

    ``services`` lets tests inject a pre-wired booking core; otherwise one is
    built from settings and provisioned on startup.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        courts = services or build_services(settings)
        await courts.store.provision(settings, courts.hasher)
        app.state.courts = courts
        logger.info("Courts service ready")
        yield
        if services is None:
            await courts.store.dispose()

    app = FastAPI(
        title="ClubCourts Courts Service",
        version="0.1.0",
        description="Court reservations, payments and administration.",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    add_observability_middleware(app)
    add_exception_handlers(app, domain_error=BookingError)

    # Tests may hand over a ready store without running the lifespan.
    if services is not None:
        app.state.courts = services

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "courts"}

    app.include_router(auth_router)
    app.include_router(accounts_router)
    app.include_router(courts_router)
    app.include_router(reservations_router)
    app.include_router(admin_router)

    return app


app = create_app()
