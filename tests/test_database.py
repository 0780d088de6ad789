from __future__ import annotations

import threading
from datetime import timezone
from pathlib import Path
from typing import Iterator

import pytest
from sqlalchemy import exc as sa_exc
from sqlalchemy import text

from newsletter.database import ConnectionPool, PoolClosedError
from newsletter.models import Subscriber


@pytest.fixture()
def pool(tmp_path: Path) -> Iterator[ConnectionPool]:
    db = ConnectionPool(tmp_path / "newsletter.sqlite3", max_size=2, timeout=5.0)
    db.initialize()
    yield db
    db.close()


def test_insert_and_list_subscriber(pool: ConnectionPool) -> None:
    subscriber = Subscriber.new("ursula@example.com", "Ursula")
    pool.insert_subscriber(subscriber)

    stored = pool.list_subscribers()
    assert len(stored) == 1
    assert stored[0].id == subscriber.id
    assert stored[0].email == "ursula@example.com"
    assert stored[0].name == "Ursula"
    assert stored[0].subscribed_at == subscriber.subscribed_at
    assert stored[0].subscribed_at.tzinfo == timezone.utc


def test_new_subscribers_get_distinct_identifiers() -> None:
    first = Subscriber.new("same@example.com", "Same")
    second = Subscriber.new("same@example.com", "Same")
    assert first.id != second.id


def test_duplicate_identifier_is_rejected(pool: ConnectionPool) -> None:
    subscriber = Subscriber.new("ursula@example.com", "Ursula")
    pool.insert_subscriber(subscriber)

    with pytest.raises(sa_exc.IntegrityError):
        pool.insert_subscriber(subscriber)
    assert pool.count_subscribers() == 1


def test_initialize_is_idempotent(pool: ConnectionPool) -> None:
    pool.insert_subscriber(Subscriber.new("a@example.com", "A"))
    pool.initialize()
    assert pool.count_subscribers() == 1


def test_failed_transaction_is_rolled_back(pool: ConnectionPool) -> None:
    with pytest.raises(RuntimeError):
        with pool.connection() as conn:
            conn.execute(
                text(
                    "INSERT INTO subscriptions (id, email, name, subscribed_at) "
                    "VALUES ('abc', 'a@example.com', 'A', '2024-01-01T00:00:00+00:00')"
                )
            )
            raise RuntimeError("boom")

    assert pool.count_subscribers() == 0


def test_checkout_times_out_when_pool_is_exhausted(tmp_path: Path) -> None:
    pool = ConnectionPool(tmp_path / "small.sqlite3", max_size=2, timeout=0.2)
    try:
        with pool.connection(), pool.connection():
            with pytest.raises(sa_exc.TimeoutError):
                with pool.connection():
                    pass

        # Slots are released once the borrowers return their connections.
        with pool.connection() as conn:
            assert conn.execute(text("SELECT 1")).scalar_one() == 1
    finally:
        pool.close()


def test_connections_are_reused(pool: ConnectionPool) -> None:
    with pool.connection() as first:
        first_dbapi = first.connection.dbapi_connection
    with pool.connection() as second:
        second_dbapi = second.connection.dbapi_connection
    assert first_dbapi is second_dbapi


def test_concurrent_inserts_share_the_pool(pool: ConnectionPool) -> None:
    errors: list[BaseException] = []

    def worker(index: int) -> None:
        try:
            pool.insert_subscriber(Subscriber.new(f"user{index}@example.com", f"User {index}"))
        except BaseException as exc:  # pragma: no cover - reported below
            errors.append(exc)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert pool.count_subscribers() == 8


def test_closed_pool_rejects_checkout(pool: ConnectionPool) -> None:
    pool.close()
    assert pool.closed
    with pytest.raises(PoolClosedError):
        pool.insert_subscriber(Subscriber.new("late@example.com", "Late"))


def test_close_leaves_borrowed_connection_usable(pool: ConnectionPool) -> None:
    with pool.connection() as conn:
        pool.close()
        assert conn.execute(text("SELECT 1")).scalar_one() == 1

    with pytest.raises(PoolClosedError):
        with pool.connection():
            pass


def test_pool_size_must_be_positive(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        ConnectionPool(tmp_path / "db.sqlite3", max_size=0)
