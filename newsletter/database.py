"""SQLite-backed persistence for newsletter subscribers."""
from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, List, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Row
from sqlalchemy.pool import QueuePool

from .models import Subscriber

DEFAULT_POOL_SIZE = 5
DEFAULT_CHECKOUT_TIMEOUT = 30.0


class PoolError(Exception):
    """Base class for connection pool failures."""


class PoolClosedError(PoolError):
    """Raised when a connection is requested from a closed pool."""


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def resolve_database_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the subscriber database."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "newsletter.sqlite3").resolve(strict=False)


def _serialize_datetime(value: datetime) -> str:
    return value.isoformat()


def _parse_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value)


class ConnectionPool:
    """Bounded pool of SQLite connections shared by every request handler.

    Backed by a SQLAlchemy engine with a :class:`~sqlalchemy.pool.QueuePool`
    of ``max_size`` connections and no overflow. A checkout that waits longer
    than ``timeout`` raises :class:`sqlalchemy.exc.TimeoutError`.
    """

    def __init__(
        self,
        path: Path,
        *,
        max_size: int = DEFAULT_POOL_SIZE,
        timeout: float = DEFAULT_CHECKOUT_TIMEOUT,
    ) -> None:
        if max_size < 1:
            raise ValueError("Pool size must be at least 1")
        if timeout <= 0:
            raise ValueError("Checkout timeout must be positive")

        _ensure_directory(path)
        self._path = path
        self._max_size = max_size
        self._closed = False
        self._engine = create_engine(
            f"sqlite:///{path}",
            poolclass=QueuePool,
            pool_size=max_size,
            max_overflow=0,
            pool_timeout=timeout,
            connect_args={"check_same_thread": False, "timeout": timeout},
        )

    @property
    def path(self) -> Path:
        return self._path

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def closed(self) -> bool:
        return self._closed

    @contextmanager
    def connection(self) -> Iterator[Connection]:
        """Borrow a connection for the duration of a single transaction."""

        if self._closed:
            raise PoolClosedError("Connection pool is closed")
        with self._engine.begin() as conn:
            yield conn

    def initialize(self) -> None:
        """Open the first connection and create the subscriptions table if missing."""

        with self.connection() as conn:
            conn.execute(
                text(
                    """
                    CREATE TABLE IF NOT EXISTS subscriptions (
                        id TEXT PRIMARY KEY NOT NULL,
                        email TEXT NOT NULL,
                        name TEXT NOT NULL,
                        subscribed_at TEXT NOT NULL
                    )
                    """
                )
            )

    def close(self) -> None:
        """Reject further checkouts and release idle connections.

        Connections still borrowed stay usable and are closed when returned.
        """

        if self._closed:
            return
        self._closed = True
        self._engine.dispose()

    # ------------------------------------------------------------------
    # Subscriber persistence
    # ------------------------------------------------------------------
    def insert_subscriber(self, subscriber: Subscriber) -> None:
        with self.connection() as conn:
            conn.execute(
                text(
                    """
                    INSERT INTO subscriptions (id, email, name, subscribed_at)
                    VALUES (:id, :email, :name, :subscribed_at)
                    """
                ),
                {
                    "id": subscriber.id,
                    "email": subscriber.email,
                    "name": subscriber.name,
                    "subscribed_at": _serialize_datetime(subscriber.subscribed_at),
                },
            )

    def list_subscribers(self) -> List[Subscriber]:
        with self.connection() as conn:
            rows = conn.execute(
                text("SELECT id, email, name, subscribed_at FROM subscriptions ORDER BY subscribed_at, id")
            ).fetchall()
        return [self._row_to_subscriber(row) for row in rows]

    def count_subscribers(self) -> int:
        with self.connection() as conn:
            return int(conn.execute(text("SELECT COUNT(*) FROM subscriptions")).scalar_one())

    @staticmethod
    def _row_to_subscriber(row: Row) -> Subscriber:
        return Subscriber(
            id=row.id,
            email=row.email,
            name=row.name,
            subscribed_at=_parse_datetime(row.subscribed_at),
        )


__all__ = [
    "ConnectionPool",
    "PoolClosedError",
    "PoolError",
    "resolve_database_path",
]
