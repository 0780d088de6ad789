"""Bind the listening socket handed to the HTTP server."""

from __future__ import annotations

import socket
from typing import Tuple, Union

DEFAULT_BACKLOG = 2048


class ListenerError(RuntimeError):
    """Raised when a listening socket cannot be prepared."""


def parse_address(address: str) -> Tuple[str, int]:
    """Split ``host:port`` (or ``[v6-host]:port``) into its components."""

    cleaned = (address or "").strip()
    host, separator, port_text = cleaned.rpartition(":")
    if not separator or not host:
        raise ListenerError(f"Invalid socket address {address!r}; expected host:port")

    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    elif ":" in host:
        raise ListenerError(f"IPv6 addresses must be bracketed, got {address!r}")

    try:
        port = int(port_text)
    except ValueError as exc:
        raise ListenerError(f"Invalid port in socket address {address!r}") from exc
    if not 0 <= port <= 65535:
        raise ListenerError(f"Port {port} is outside the range 0-65535")

    return host, port


def bind_listener(
    target: Union[str, socket.socket],
    *,
    backlog: int = DEFAULT_BACKLOG,
) -> socket.socket:
    """Return a bound socket in the listening state.

    ``target`` is either a ``host:port`` string or a socket that the caller has
    already bound. Failures are not retried: the caller decides whether to
    abort or try another address.
    """

    if isinstance(target, socket.socket):
        try:
            bound = target.getsockname()
        except OSError as exc:
            raise ListenerError(f"Cannot inspect provided socket: {exc}") from exc
        if isinstance(bound, tuple) and bound[1] == 0:
            raise ListenerError("Provided socket is not bound to an address")
        try:
            target.listen(backlog)
        except OSError as exc:
            raise ListenerError(f"Cannot listen on provided socket: {exc}") from exc
        return target

    host, port = parse_address(target)
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    try:
        return socket.create_server((host, port), family=family, backlog=backlog)
    except OSError as exc:
        raise ListenerError(f"Failed to bind {host}:{port}: {exc.strerror or exc}") from exc


def format_address(sock: socket.socket) -> str:
    """Render the socket's bound address as ``host:port``."""

    host, port = sock.getsockname()[:2]
    if ":" in host:
        host = f"[{host}]"
    return f"{host}:{port}"


__all__ = ["DEFAULT_BACKLOG", "ListenerError", "bind_listener", "format_address", "parse_address"]
