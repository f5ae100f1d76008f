import os
import sys
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

# Ensure local imports resolve
sys.path.append(os.path.dirname(__file__))

# Core
from core.config import settings
from core.config_validator import validate_config_on_startup
from core.logging_config import logger
from core.permission_gate import GATE_STATUS_CODES, render_gate
from dependencies.auth import (
    GateBlocked,
    SessionContextRegistry,
    file_storage_factory,
)
from services.credential_store import SupabaseCredentialStore

# -------------------------------------------------
# Routers
# -------------------------------------------------
from routers.auth import router as auth_router
from routers.navigation import router as navigation_router
from routers.screens import router as screens_router
from routers.users import router as users_router
from routers.health import router as health_router


def build_registry() -> SessionContextRegistry:
    """One credential store for the process, file-backed sessions per browser context."""
    return SessionContextRegistry(
        SupabaseCredentialStore(),
        file_storage_factory(settings.SESSION_STORAGE_DIR),
    )


# -------------------------------------------------
# Create the Application
# -------------------------------------------------
def create_app(validate_config: bool = True, registry: SessionContextRegistry = None) -> FastAPI:
    if validate_config:
        validate_config_on_startup()

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version="1.0.0",
        description="Rentalinx back office: sessions, role-based navigation and user management",
    )

    app.state.auth_registry = registry if registry is not None else build_registry()

    # -------------------------------------------------
    # CORS
    # -------------------------------------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.BACKEND_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -------------------------------------------------
    # Startup logging
    # -------------------------------------------------
    @app.on_event("startup")
    async def on_startup():
        logger.info("🚀 Starting Rentalinx API")
        for route in app.routes:
            methods = ",".join(getattr(route, "methods", None) or [])
            logger.debug(f"➡️ {methods:10s} {getattr(route, 'path', '')}")

    # -------------------------------------------------
    # Error handling
    # -------------------------------------------------
    @app.exception_handler(GateBlocked)
    async def handle_gate(request: Request, exc: GateBlocked):
        # Gate outcomes are views, not errors
        return JSONResponse(
            status_code=GATE_STATUS_CODES[exc.decision.status],
            content=render_gate(exc.decision),
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http(request: Request, exc: StarletteHTTPException):
        if exc.status_code in (401, 403, 500):
            logger.warning(
                f"HTTP {exc.status_code} at {request.url}: {exc.detail}"
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def handle_unhandled(request: Request, exc: Exception):
        logger.error("Unhandled error at %s", request.url, exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    # -------------------------------------------------
    # Register Routers
    # -------------------------------------------------

    # Auth
    app.include_router(auth_router)

    # Navigation + screen gate
    app.include_router(navigation_router)
    app.include_router(screens_router)

    # Admin
    app.include_router(users_router)

    # Health
    app.include_router(health_router)

    return app


# Create the global FastAPI instance
app = create_app()
