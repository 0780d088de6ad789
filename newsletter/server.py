"""Run the ASGI application on a pre-bound listening socket."""

from __future__ import annotations

import logging
import socket
import threading
import time
from typing import Optional

import uvicorn
from fastapi import FastAPI

from .database import ConnectionPool
from .listener import format_address
from .service import create_app

logger = logging.getLogger("newsletter.server")


class Server:
    """Handle for a running (or ready to run) HTTP service.

    The caller may block on :meth:`run`, await :meth:`serve` inside its own
    event loop, or use :meth:`start`/:meth:`stop` to keep the service in a
    background thread. Each accepted connection is served by its own task on
    the server's event loop.
    """

    def __init__(
        self,
        app: FastAPI,
        listener: socket.socket,
        *,
        log_level: str = "info",
    ) -> None:
        self._app = app
        self._listener = listener
        self._address = format_address(listener)
        config = uvicorn.Config(
            app,
            log_config=None,
            log_level=log_level.lower(),
            access_log=False,
            lifespan="off",
        )
        self._server = uvicorn.Server(config)
        self._thread: Optional[threading.Thread] = None

    @property
    def app(self) -> FastAPI:
        return self._app

    @property
    def address(self) -> str:
        return self._address

    @property
    def url(self) -> str:
        return f"http://{self.address}"

    @property
    def started(self) -> bool:
        return self._server.started

    async def serve(self) -> None:
        logger.info("Serving on %s", self.url)
        await self._server.serve(sockets=[self._listener])

    def run(self) -> None:
        """Serve until the process is asked to exit."""

        logger.info("Serving on %s", self.url)
        self._server.run(sockets=[self._listener])

    def start(self, *, timeout: float = 10.0) -> None:
        """Run the server in a daemon thread and wait until it accepts connections."""

        if self._thread is not None:
            raise RuntimeError("Server has already been started")

        self._thread = threading.Thread(target=self.run, name="newsletter-server", daemon=True)
        self._thread.start()

        deadline = time.monotonic() + timeout
        while not self._server.started:
            if not self._thread.is_alive():
                raise RuntimeError("Server exited before it started accepting connections")
            if time.monotonic() >= deadline:
                raise TimeoutError(f"Server did not start within {timeout:g}s")
            time.sleep(0.01)

    def stop(self, *, timeout: float = 10.0) -> None:
        """Ask the server to exit and wait for the background thread."""

        self._server.should_exit = True
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None


def run(
    listener: socket.socket,
    pool: ConnectionPool,
    *,
    log_level: str = "info",
) -> Server:
    """Build the application around ``pool`` and return a handle serving ``listener``.

    The returned server is not started; the caller decides whether to block on
    it or run it in the background.
    """

    app = create_app(pool=pool)
    return Server(app, listener, log_level=log_level)


__all__ = ["Server", "run"]
