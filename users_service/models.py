"""Domain records returned by the user store."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Tuple


@dataclass(frozen=True)
class User:
    """Represents a user account stored in the ``users`` table."""

    id: int
    name: str
    email: str
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class UserPage:
    """One page of users plus the list parameters that were actually applied."""

    items: Tuple[User, ...]
    limit: int
    offset: int
    sort: str
    order: str
    query: str


__all__ = ["User", "UserPage"]
