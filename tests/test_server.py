"""Run the service on a real socket and talk to it over HTTP."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterator

import httpx
import pytest

from newsletter.database import ConnectionPool
from newsletter.listener import bind_listener
from newsletter.server import Server, run


@pytest.fixture()
def pool(tmp_path: Path) -> Iterator[ConnectionPool]:
    db = ConnectionPool(tmp_path / "newsletter.sqlite3", max_size=4, timeout=5.0)
    db.initialize()
    yield db
    db.close()


@pytest.fixture()
def server(pool: ConnectionPool) -> Iterator[Server]:
    handle = run(bind_listener("127.0.0.1:0"), pool, log_level="warning")
    handle.start()
    yield handle
    handle.stop()


def test_health_check_over_the_network(server: Server) -> None:
    response = httpx.get(f"{server.url}/health_check", timeout=5.0)

    assert response.status_code == 200
    assert response.headers["content-length"] == "0"


def test_subscription_over_the_network(server: Server, pool: ConnectionPool) -> None:
    response = httpx.post(
        f"{server.url}/subscription",
        data={"email": "ursula@example.com", "name": "Ursula"},
        timeout=5.0,
    )

    assert response.status_code == 200
    assert response.content == b""
    stored = pool.list_subscribers()
    assert [(s.email, s.name) for s in stored] == [("ursula@example.com", "Ursula")]


def test_concurrent_submissions_with_same_email_both_succeed(
    server: Server, pool: ConnectionPool
) -> None:
    def submit(_: int) -> int:
        response = httpx.post(
            f"{server.url}/subscription",
            data={"email": "same@example.com", "name": "Same"},
            timeout=10.0,
        )
        return response.status_code

    with ThreadPoolExecutor(max_workers=4) as executor:
        statuses = list(executor.map(submit, range(4)))

    assert statuses == [200, 200, 200, 200]
    stored = pool.list_subscribers()
    assert len(stored) == 4
    assert len({s.id for s in stored}) == 4


def test_server_cannot_be_started_twice(server: Server) -> None:
    with pytest.raises(RuntimeError):
        server.start()


def test_address_reflects_listener(server: Server) -> None:
    assert server.address.startswith("127.0.0.1:")
    assert server.url == f"http://{server.address}"
