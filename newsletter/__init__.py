"""Newsletter subscription service."""

from __future__ import annotations

from typing import Any

from .database import ConnectionPool, resolve_database_path
from .listener import ListenerError, bind_listener
from .models import Subscriber


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the subscription application."""

    from .service import create_app as _create_app

    return _create_app(*args, **kwargs)


def run(*args: Any, **kwargs: Any):
    """Build the application and return a handle for serving it."""

    from .server import run as _run

    return _run(*args, **kwargs)


__all__ = [
    "ConnectionPool",
    "ListenerError",
    "Subscriber",
    "bind_listener",
    "create_app",
    "resolve_database_path",
    "run",
]
