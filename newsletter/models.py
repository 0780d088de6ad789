"""Domain models for the subscription service."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone


@dataclass(frozen=True)
class Subscriber:
    """Represents a subscriber row stored in the newsletter database."""

    id: str
    email: str
    name: str
    subscribed_at: datetime

    @classmethod
    def new(cls, email: str, name: str) -> "Subscriber":
        """Build a subscriber with a fresh identifier and the current UTC time."""

        return cls(
            id=str(uuid.uuid4()),
            email=email,
            name=name,
            subscribed_at=datetime.now(timezone.utc),
        )


__all__ = ["Subscriber"]
