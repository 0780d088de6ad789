"""FastAPI application exposing the subscription endpoints."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .database import ConnectionPool
from .handlers import greet, health_check, subscribe
from .middleware import RequestLoggingMiddleware
from .routes import RouteTable

logger = logging.getLogger("newsletter.service")


def build_route_table() -> RouteTable:
    """Return the static table of routes served by the application."""

    routes = RouteTable()
    routes.get("/health_check", health_check)
    routes.get("/greet", greet)
    routes.get("/greet/{name}", greet, name="greet_name")
    routes.post("/subscription", subscribe)
    return routes


async def _bad_request(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )


def create_app(
    *,
    pool: ConnectionPool,
    routes: RouteTable | None = None,
) -> FastAPI:
    """Instantiate the FastAPI application around a shared connection pool."""

    table = routes if routes is not None else build_route_table()

    app = FastAPI(
        title="Newsletter Subscriptions",
        version="0.1.0",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.pool = pool
    app.state.routes = table

    app.add_middleware(RequestLoggingMiddleware)
    app.add_exception_handler(RequestValidationError, _bad_request)
    table.mount(app)

    logger.debug("Mounted %d routes backed by %s", len(table), pool.path)
    return app


__all__ = ["build_route_table", "create_app"]
