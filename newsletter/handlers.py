"""Request handlers for the subscription service."""

from __future__ import annotations

import logging
from typing import Annotated

import anyio
from fastapi import Depends, Form, Request, Response, status
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError

from .database import ConnectionPool, PoolError
from .models import Subscriber

logger = logging.getLogger("newsletter.subscriptions")

DEFAULT_GREETING_NAME = "World"


class SubscriptionForm(BaseModel):
    email: str = Field(min_length=1)
    name: str = Field(min_length=1)


def get_pool(request: Request) -> ConnectionPool:
    """Return the connection pool shared through the application state."""

    return request.app.state.pool


async def health_check() -> Response:
    return Response(status_code=status.HTTP_200_OK)


async def greet(request: Request) -> PlainTextResponse:
    name = request.path_params.get("name", DEFAULT_GREETING_NAME)
    return PlainTextResponse(f"Hello {name}")


async def subscribe(
    form: Annotated[SubscriptionForm, Form()],
    pool: ConnectionPool = Depends(get_pool),
) -> Response:
    """Store a new subscriber.

    A 500 response does not guarantee that nothing was written: the insert may
    have committed before the failure surfaced, and the request is not
    idempotent.
    """

    subscriber = Subscriber.new(email=form.email, name=form.name)
    logger.info("Adding '%s' '%s' as a new subscriber", subscriber.email, subscriber.name)

    try:
        await anyio.to_thread.run_sync(pool.insert_subscriber, subscriber)
    except (SQLAlchemyError, PoolError):
        logger.exception("Failed to save subscriber %s", subscriber.id)
        return Response(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    logger.info("Saved new subscriber %s", subscriber.id)
    return Response(status_code=status.HTTP_200_OK)


__all__ = [
    "DEFAULT_GREETING_NAME",
    "SubscriptionForm",
    "get_pool",
    "greet",
    "health_check",
    "subscribe",
]
