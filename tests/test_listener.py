from __future__ import annotations

import socket

import pytest

from newsletter.listener import ListenerError, bind_listener, format_address, parse_address


def test_parse_address_splits_host_and_port() -> None:
    assert parse_address("127.0.0.1:8000") == ("127.0.0.1", 8000)
    assert parse_address("[::1]:8080") == ("::1", 8080)


@pytest.mark.parametrize(
    "address",
    ["", "localhost", ":8000", "127.0.0.1:http", "127.0.0.1:70000", "::1:8000"],
)
def test_parse_address_rejects_invalid_values(address: str) -> None:
    with pytest.raises(ListenerError):
        parse_address(address)


def test_bind_listener_picks_ephemeral_port() -> None:
    listener = bind_listener("127.0.0.1:0")
    try:
        host, port = listener.getsockname()
        assert host == "127.0.0.1"
        assert port != 0
        assert format_address(listener) == f"127.0.0.1:{port}"
    finally:
        listener.close()


def test_bind_listener_fails_when_address_in_use() -> None:
    first = bind_listener("127.0.0.1:0")
    try:
        with pytest.raises(ListenerError):
            bind_listener(format_address(first))
    finally:
        first.close()


def test_bind_listener_accepts_pre_bound_socket() -> None:
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    try:
        listener = bind_listener(sock)
        assert listener is sock

        client = socket.create_connection(sock.getsockname(), timeout=2)
        client.close()
    finally:
        sock.close()


def test_bind_listener_rejects_unbound_socket() -> None:
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        with pytest.raises(ListenerError):
            bind_listener(sock)
    finally:
        sock.close()
