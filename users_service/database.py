"""SQLite-backed persistence for users."""
from __future__ import annotations

import logging
import sqlite3
from contextlib import closing, contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional

from .models import User, UserPage
from .query import USER_COLUMNS, ListQuery, build_list_query

logger = logging.getLogger("users_service.database")

_SELECT_USER = f"SELECT {', '.join(USER_COLUMNS)} FROM users WHERE id = ?"


class StoreError(RuntimeError):
    """Raised when the underlying database cannot execute a statement."""


class DuplicateEmailError(ValueError):
    """Raised when a write would reuse an email address owned by another user."""


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def resolve_database_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the users database."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "users.sqlite3").resolve(strict=False)


def _current_timestamp() -> datetime:
    return datetime.now(timezone.utc)


def _serialize_datetime(value: datetime) -> str:
    return value.isoformat(timespec="microseconds")


def _parse_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value)


def _casefold(value: object) -> Optional[str]:
    if value is None:
        return None
    return str(value).casefold()


class Database:
    """Simple wrapper around SQLite for persisting users."""

    def __init__(self, path: Path) -> None:
        _ensure_directory(path)
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        # Searches compare casefold(column) against a casefolded pattern.
        conn.create_function("casefold", 1, _casefold, deterministic=True)
        return conn

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection that commits on success and is always closed."""

        try:
            conn = self._connect()
        except sqlite3.Error as exc:
            raise StoreError(f"query execution failed: {exc}") from exc
        try:
            with conn:
                yield conn
        except sqlite3.Error as exc:
            raise StoreError(f"query execution failed: {exc}") from exc
        finally:
            conn.close()

    def initialize(self) -> None:
        """Create the ``users`` table if it does not already exist."""

        with self._connection() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    email TEXT NOT NULL UNIQUE,
                    created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f+00:00', 'now')),
                    updated_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f+00:00', 'now'))
                );
                """
            )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def list_users(self, query: Optional[ListQuery] = None) -> UserPage:
        """Run a single filtered, sorted and paginated query against ``users``.

        Rows are returned in exactly the order the database produced them. Any
        database failure raises :class:`StoreError` and no partial page is
        returned.
        """

        if query is None:
            query = ListQuery()
        sql, params = build_list_query(query)

        items: List[User] = []
        with self._connection() as conn:
            with closing(conn.execute(sql, params)) as cursor:
                for row in cursor:
                    items.append(self._row_to_user(row))

        logger.debug(
            "Listed %d user(s) (q=%r sort=%s order=%s limit=%d offset=%d)",
            len(items),
            query.search,
            query.sort,
            query.order,
            query.limit,
            query.offset,
        )
        return UserPage(
            items=tuple(items),
            limit=query.limit,
            offset=query.offset,
            sort=query.sort,
            order=query.order,
            query=query.search,
        )

    def get_user(self, user_id: int) -> Optional[User]:
        with self._connection() as conn:
            row = conn.execute(_SELECT_USER, (user_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def count_users(self) -> int:
        with self._connection() as conn:
            row = conn.execute("SELECT COUNT(*) FROM users").fetchone()
        return int(row[0])

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def create_user(self, name: str, email: str) -> User:
        """Insert a new user; ``created_at`` and ``updated_at`` start out equal."""

        created_at = _serialize_datetime(_current_timestamp())
        with self._connection() as conn:
            try:
                cursor = conn.execute(
                    """
                    INSERT INTO users (name, email, created_at, updated_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (name, email, created_at, created_at),
                )
            except sqlite3.IntegrityError as exc:
                raise DuplicateEmailError("A user with that email already exists") from exc
            row = conn.execute(_SELECT_USER, (cursor.lastrowid,)).fetchone()

        return self._row_to_user(row)

    def update_user(self, user_id: int, *, name: str, email: str) -> Optional[User]:
        """Replace the name and email of an existing user and refresh ``updated_at``.

        Returns ``None`` when no user has the given id.
        """

        updated_at = _serialize_datetime(_current_timestamp())
        with self._connection() as conn:
            try:
                cursor = conn.execute(
                    "UPDATE users SET name = ?, email = ?, updated_at = ? WHERE id = ?",
                    (name, email, updated_at, user_id),
                )
            except sqlite3.IntegrityError as exc:
                raise DuplicateEmailError("A user with that email already exists") from exc
            if cursor.rowcount == 0:
                return None
            row = conn.execute(_SELECT_USER, (user_id,)).fetchone()

        return self._row_to_user(row)

    def delete_user(self, user_id: int) -> Optional[User]:
        """Delete a user and return the removed record, or ``None`` if it did not exist."""

        with self._connection() as conn:
            row = conn.execute(_SELECT_USER, (user_id,)).fetchone()
            if row is None:
                return None
            conn.execute("DELETE FROM users WHERE id = ?", (user_id,))

        return self._row_to_user(row)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _row_to_user(self, row: sqlite3.Row) -> User:
        return User(
            id=int(row["id"]),
            name=str(row["name"]),
            email=str(row["email"]),
            created_at=_parse_datetime(str(row["created_at"])),
            updated_at=_parse_datetime(str(row["updated_at"])),
        )


__all__ = ["Database", "DuplicateEmailError", "StoreError", "resolve_database_path"]
