"""SQLite-backed catalog of self-hosted applications."""
from __future__ import annotations

import datetime as dt
import logging
import sqlite3
import uuid
from contextlib import closing
from pathlib import Path
from typing import Callable, List, Optional

from .errors import NotFound, StorageError
from .models import Application, ApplicationInput, validate_application

CONNECT_TIMEOUT_SECONDS = 10.0
_COLUMNS = "id, name, description, url, icon, created_at, updated_at"
_TICK = dt.timedelta(microseconds=1)


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _encode_time(value: dt.datetime) -> str:
    return value.astimezone(dt.timezone.utc).isoformat(timespec="microseconds")


def _decode_time(value: str) -> dt.datetime:
    return dt.datetime.fromisoformat(value)


def _row_to_application(row: sqlite3.Row) -> Application:
    return Application(
        id=row["id"],
        name=row["name"],
        description=row["description"] or "",
        url=row["url"],
        icon=row["icon"] or "",
        created_at=_decode_time(row["created_at"]),
        updated_at=_decode_time(row["updated_at"]),
    )


class ApplicationRegistry:
    """
    Durable CRUD store for application catalog entries.

    Every call opens its own short-lived connection, so the registry can be
    shared between request threads; concurrent writers are serialized by
    SQLite's locking.
    """

    def __init__(
        self,
        database_path: str,
        clock: Callable[[], dt.datetime] = utcnow,
    ) -> None:
        self._database_path = str(database_path)
        self._clock = clock
        self.ensure_database()

    @property
    def database_path(self) -> str:
        return self._database_path

    def ensure_database(self) -> None:
        """Create the SQLite database and applications table if they do not already exist."""
        try:
            Path(self._database_path).parent.mkdir(parents=True, exist_ok=True)
            with closing(self._connect()) as conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS applications (
                        id TEXT PRIMARY KEY,
                        name TEXT NOT NULL,
                        description TEXT,
                        url TEXT NOT NULL,
                        icon TEXT,
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    )
                    """
                )
                conn.execute(
                    "CREATE INDEX IF NOT EXISTS idx_applications_created ON applications(created_at)"
                )
                conn.commit()
        except (OSError, sqlite3.Error) as exc:
            logging.error("Failed to initialize database %s: %s", self._database_path, exc)
            raise StorageError(f"failed to initialize database: {exc}") from exc

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._database_path, timeout=CONNECT_TIMEOUT_SECONDS)
        conn.row_factory = sqlite3.Row
        return conn

    def create(self, data: ApplicationInput) -> Application:
        clean = validate_application(data)
        now = self._clock()
        app = Application(
            id=str(uuid.uuid4()),
            name=clean.name,
            description=clean.description,
            url=clean.url,
            icon=clean.icon,
            created_at=now,
            updated_at=now,
        )
        try:
            with closing(self._connect()) as conn:
                conn.execute(
                    f"INSERT INTO applications ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (
                        app.id,
                        app.name,
                        app.description,
                        app.url,
                        app.icon,
                        _encode_time(now),
                        _encode_time(now),
                    ),
                )
                conn.commit()
        except sqlite3.Error as exc:
            logging.error("Failed to create application %r: %s", clean.name, exc)
            raise StorageError(f"failed to create application: {exc}") from exc

        logging.info("Created application %s (%s)", app.id, app.name)
        return app

    def list(self) -> List[Application]:
        try:
            with closing(self._connect()) as conn:
                rows = conn.execute(
                    f"SELECT {_COLUMNS} FROM applications ORDER BY created_at DESC, rowid DESC"
                ).fetchall()
        except sqlite3.Error as exc:
            logging.error("Failed to list applications: %s", exc)
            raise StorageError(f"failed to list applications: {exc}") from exc
        return [_row_to_application(row) for row in rows]

    def get(self, app_id: str) -> Application:
        try:
            with closing(self._connect()) as conn:
                row = conn.execute(
                    f"SELECT {_COLUMNS} FROM applications WHERE id = ?",
                    (app_id,),
                ).fetchone()
        except sqlite3.Error as exc:
            logging.error("Failed to get application %s: %s", app_id, exc)
            raise StorageError(f"failed to get application: {exc}") from exc
        if row is None:
            raise NotFound(app_id)
        return _row_to_application(row)

    def update(self, app_id: str, data: ApplicationInput) -> Application:
        """Replace every field except ``id`` and ``created_at``.

        ``updated_at`` never moves backwards: when the clock has not advanced
        past the stored value, the stored value plus one microsecond is used.
        """
        clean = validate_application(data)
        try:
            with closing(self._connect()) as conn:
                conn.isolation_level = None
                conn.execute("BEGIN IMMEDIATE")
                try:
                    row = conn.execute(
                        "SELECT created_at, updated_at FROM applications WHERE id = ?",
                        (app_id,),
                    ).fetchone()
                    if row is None:
                        conn.execute("ROLLBACK")
                        raise NotFound(app_id)

                    previous = _decode_time(row["updated_at"])
                    now = self._clock()
                    if now <= previous:
                        now = previous + _TICK
                    conn.execute(
                        """
                        UPDATE applications
                        SET name = ?, description = ?, url = ?, icon = ?, updated_at = ?
                        WHERE id = ?
                        """,
                        (clean.name, clean.description, clean.url, clean.icon, _encode_time(now), app_id),
                    )
                    conn.execute("COMMIT")
                except sqlite3.Error:
                    if conn.in_transaction:
                        conn.execute("ROLLBACK")
                    raise
        except sqlite3.Error as exc:
            logging.error("Failed to update application %s: %s", app_id, exc)
            raise StorageError(f"failed to update application: {exc}") from exc

        logging.info("Updated application %s (%s)", app_id, clean.name)
        return Application(
            id=app_id,
            name=clean.name,
            description=clean.description,
            url=clean.url,
            icon=clean.icon,
            created_at=_decode_time(row["created_at"]),
            updated_at=now,
        )

    def delete(self, app_id: str) -> None:
        try:
            with closing(self._connect()) as conn:
                deleted = conn.execute("DELETE FROM applications WHERE id = ?", (app_id,)).rowcount
                conn.commit()
        except sqlite3.Error as exc:
            logging.error("Failed to delete application %s: %s", app_id, exc)
            raise StorageError(f"failed to delete application: {exc}") from exc
        if not deleted:
            raise NotFound(app_id)
        logging.info("Deleted application %s", app_id)


def open_registry(database_path: Optional[str]) -> ApplicationRegistry:
    """Open the registry at ``database_path``; failure here is fatal at startup."""
    if not database_path:
        raise StorageError("database path is not configured")
    return ApplicationRegistry(database_path)
