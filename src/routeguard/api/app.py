"""FastAPI application factory."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from routeguard import __version__
from routeguard.config import get_settings


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    yield
    # Shutdown: cancel in-flight resolutions of the process-wide engine
    from routeguard.web.controllers.routes import get_route_service

    if get_route_service.cache_info().currsize:
        await get_route_service().engine.close()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="RouteGuard API",
        description="Swap route resolution and execution-safety API",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register routes
    from routeguard.api.routes import health
    from routeguard.web.controllers import chains_router, routes_router

    app.include_router(health.router, tags=["Health"])
    app.include_router(routes_router, prefix="/api/v1")
    app.include_router(chains_router, prefix="/api/v1")

    return app


# Default app instance
app = create_app()
