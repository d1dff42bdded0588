"""FastAPI application factory with role-based route mounting."""

from typing import Literal

from fastapi import FastAPI, Request, Response

from petly.infra.settings import load_settings
from petly.observability.correlation import (
    CORRELATION_ID_HEADER,
    generate_correlation_id,
    reset_correlation_id,
    set_correlation_id,
)
from petly.observability.logging import get_logger
from petly.observability.redaction import safe_log_context

from .dependencies import Services, build_services
from .routers import public, worker

AppRole = Literal["public", "worker"]

logger = get_logger(__name__)


def create_app(role: AppRole | None = None, services: Services | None = None) -> FastAPI:
    """Create FastAPI app with routes based on APP_ROLE.

    Args:
        role: Explicit role override. If None, uses APP_ROLE from settings
              ("public" when unset).
        services: Pre-built service container (tests). If None, built from
              the environment.

    Returns:
        Configured FastAPI application.
    """
    if services is None:
        services = build_services(load_settings())
    if role is None:
        role = services.settings.app_role

    app = FastAPI(
        title="Petly",
        docs_url=None,
        redoc_url=None,
    )
    app.state.services = services
    app.state.role = role

    # Correlation ID middleware
    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next) -> Response:
        cid = request.headers.get(CORRELATION_ID_HEADER) or generate_correlation_id()
        token = set_correlation_id(cid)
        try:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = cid
            return response
        finally:
            reset_correlation_id(token)

    app.include_router(public.router)

    # Mount worker routes only for worker role
    if role == "worker":
        app.include_router(worker.router)

    logger.info(
        "app created",
        extra={
            "extra_fields": safe_log_context(
                role=role,
                store_backend=services.settings.store_backend,
                push_backend=services.settings.push_backend,
            )
        },
    )
    return app
