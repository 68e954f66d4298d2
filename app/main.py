from __future__ import annotations

from contextlib import asynccontextmanager
import logging

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from app.access.errors import AccessError, ErrorKind
from app.db import filters as _filters  # noqa: F401  (register soft-delete filter)
from app.db.init_db import init_db
from app.logging_config import configure_app_logging
from app.permissions import PermissionEngine
from app.routers import access_requests, account, health, memorials
from app.security.config import load_security_config
from app.security.dependencies import enforce_security
from app.security.rate_limit import InMemoryRateLimiter
from app.settings import get_settings

logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AccessError)
    async def _access_error(_request: Request, exc: AccessError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(SQLAlchemyError)
    async def _store_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        logger.error("Store failure path=%s method=%s", request.url.path, request.method, exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal error", "kind": ErrorKind.INTERNAL.value},
        )


def create_app() -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        settings = get_settings()
        configure_app_logging(settings.log_level)
        logger.info("App startup beginning")

        app.state.security_config = load_security_config(settings.resolved_security_config_path())
        logger.info("Loaded security config: %s", settings.resolved_security_config_path())
        app.state.permission_engine = PermissionEngine.from_yaml(settings.resolved_permissions_config_path())
        logger.info("Loaded permission rules: %s", settings.resolved_permissions_config_path())
        app.state.rate_limiter = InMemoryRateLimiter()

        init_db(seed=settings.seed_demo_data)
        logger.info("Database initialized (tables ensured + seed if enabled)")

        yield

    # Global dependency: session resolution, auth requirement and rate limits for every route.
    app = FastAPI(title="Memorial access", dependencies=[Depends(enforce_security)], lifespan=lifespan)
    register_error_handlers(app)

    app.include_router(health.router)
    app.include_router(account.router)
    app.include_router(memorials.router)
    app.include_router(access_requests.router)

    return app


app = create_app()
