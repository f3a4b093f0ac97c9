"""
SQLite-backed storage collaborator.

Holds the single alarm row, the single timezone row, the append-only
request log used for rate limiting, and the pool of wake-up phrases.
One connection is shared by every thread and guarded by a lock.
"""

from __future__ import annotations

import random
import sqlite3
import threading
from pathlib import Path
from typing import Iterable, List, Optional

from alarmd.domain.errors import ConfigLoadError, StorageError, ValidationError
from alarmd.domain.models import Alarm, RequestClass, RequestLogEntry, Timezone, UTC_ZONE, is_valid_zone
from alarmd.log import setup_logging

TAG = __name__
logger = setup_logging()

PHRASES_PATH = Path(__file__).with_name("phrases.txt")

_SCHEMA = """
CREATE TABLE IF NOT EXISTS alarm (
    alarm_id INTEGER PRIMARY KEY CHECK (alarm_id = 1),
    hour     INTEGER NOT NULL CHECK (hour >= 0 AND hour <= 23),
    minute   INTEGER NOT NULL CHECK (minute >= 0 AND minute <= 59),
    message  TEXT DEFAULT NULL
);

CREATE TABLE IF NOT EXISTS timezone (
    timezone_id INTEGER PRIMARY KEY CHECK (timezone_id = 1),
    zone_name   TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS request (
    request_id INTEGER PRIMARY KEY AUTOINCREMENT,
    timestamp  INTEGER NOT NULL,
    is_alarm   INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_request_class_ts ON request(is_alarm, timestamp);

CREATE TABLE IF NOT EXISTS phrase (
    phrase_id INTEGER PRIMARY KEY AUTOINCREMENT,
    phrase    TEXT NOT NULL UNIQUE
);
"""


class SqliteStore:
    """
    Thread-safe row store for alarm, timezone, request log and phrases.

    Parameters
    ----------
    path
        Database file; parent directories are created. ``":memory:"`` is
        accepted for tests.
    default_zone
        Zone written to the timezone table when it is empty.

    Notes
    -----
    ``sqlite3.Error`` raised by reads that feed the actor (alarm, timezone)
    is re-raised as :class:`ConfigLoadError`; from writes and request-log
    queries it is re-raised as :class:`StorageError`.
    """

    def __init__(self, path: str | Path, default_zone: str = UTC_ZONE):
        self._path = str(path)
        if self._path != ":memory:":
            Path(self._path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        self._conn = sqlite3.connect(self._path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        with self._lock:
            self._conn.executescript(_SCHEMA)
            self._conn.commit()
        self._ensure_timezone(default_zone)
        logger.bind(tag=TAG).info(f"Storage ready at {self._path}")

    # --- Alarm ---
    def get_alarm(self) -> Optional[Alarm]:
        try:
            with self._lock:
                row = self._conn.execute("SELECT hour, minute, message FROM alarm").fetchone()
        except sqlite3.Error as exc:
            raise ConfigLoadError(f"unable to read alarm: {exc}") from exc
        if row is None:
            return None
        try:
            return Alarm(hour=row["hour"], minute=row["minute"], message=row["message"])
        except ValueError as exc:
            raise ConfigLoadError(f"corrupt alarm row: {exc}") from exc

    def add_alarm(self, hour: int, minute: int, message: Optional[str] = None) -> Alarm:
        """
        Insert the alarm.

        Raises
        ------
        ValidationError
            If an alarm already exists or the values are out of range.
        StorageError
            If the database rejects the write.
        """
        alarm = self._validated(hour, minute, message)
        with self._lock:
            try:
                self._conn.execute(
                    "INSERT INTO alarm(alarm_id, hour, minute, message) VALUES (1, ?, ?, ?)",
                    (alarm.hour, alarm.minute, alarm.message),
                )
                self._conn.commit()
            except sqlite3.IntegrityError as exc:
                self._conn.rollback()
                raise ValidationError("only one alarm allowed") from exc
            except sqlite3.Error as exc:
                raise StorageError(f"unable to add alarm: {exc}") from exc
        return alarm

    def update_alarm(self, hour: int, minute: int, message: Optional[str] = None) -> Alarm:
        alarm = self._validated(hour, minute, message)
        cur = self._write(
            "update alarm",
            "UPDATE alarm SET hour = ?, minute = ?, message = ?",
            (alarm.hour, alarm.minute, alarm.message),
        )
        if cur.rowcount == 0:
            raise ValidationError("no alarm set")
        return alarm

    def delete_alarm(self) -> None:
        self._write("delete alarm", "DELETE FROM alarm")

    # --- Timezone ---
    def get_timezone(self) -> Timezone:
        """
        Return the stored timezone, UTC when the row is absent or invalid.

        Raises
        ------
        ConfigLoadError
            If the database cannot be read.
        """
        try:
            with self._lock:
                row = self._conn.execute("SELECT zone_name FROM timezone").fetchone()
        except sqlite3.Error as exc:
            raise ConfigLoadError(f"unable to read timezone: {exc}") from exc
        if row is None or not is_valid_zone(row["zone_name"]):
            return Timezone(UTC_ZONE)
        return Timezone(row["zone_name"])

    def set_timezone(self, zone_name: str) -> Timezone:
        if not is_valid_zone(zone_name):
            raise ValidationError("Invalid timezone")
        self._write(
            "set timezone",
            "INSERT INTO timezone(timezone_id, zone_name) VALUES (1, ?) "
            "ON CONFLICT(timezone_id) DO UPDATE SET zone_name = excluded.zone_name",
            (zone_name,),
        )
        return Timezone(zone_name)

    def _ensure_timezone(self, zone_name: str) -> None:
        if not is_valid_zone(zone_name):
            logger.bind(tag=TAG).warning(f"Invalid default timezone {zone_name!r}; using {UTC_ZONE}")
            zone_name = UTC_ZONE
        with self._lock:
            self._conn.execute(
                "INSERT OR IGNORE INTO timezone(timezone_id, zone_name) VALUES (1, ?)",
                (zone_name,),
            )
            self._conn.commit()

    # --- Request log ---
    def count_in_window(self, request_class: RequestClass, start_ts: int, end_ts: int) -> int:
        """Count entries of ``request_class`` with ``start_ts <= timestamp <= end_ts``."""
        try:
            with self._lock:
                row = self._conn.execute(
                    "SELECT COUNT(*) AS count FROM request "
                    "WHERE is_alarm = ? AND timestamp BETWEEN ? AND ?",
                    (int(request_class.is_alarm), int(start_ts), int(end_ts)),
                ).fetchone()
        except sqlite3.Error as exc:
            raise StorageError(f"unable to count requests: {exc}") from exc
        return int(row["count"])

    def append_request_log(self, request_class: RequestClass, timestamp: int) -> RequestLogEntry:
        self._write(
            "record request",
            "INSERT INTO request(timestamp, is_alarm) VALUES (?, ?)",
            (int(timestamp), int(request_class.is_alarm)),
        )
        return RequestLogEntry(timestamp=int(timestamp), request_class=request_class)

    def all_requests(self) -> List[RequestLogEntry]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT timestamp, is_alarm FROM request ORDER BY request_id"
            ).fetchall()
        return [
            RequestLogEntry(
                timestamp=int(r["timestamp"]),
                request_class=RequestClass.ALARM if r["is_alarm"] else RequestClass.TEST,
            )
            for r in rows
        ]

    # --- Phrases ---
    def seed_phrases(self, phrases: Optional[Iterable[str]] = None) -> int:
        """
        Insert phrases, ignoring duplicates. Defaults to the bundled list.

        Returns the number of phrases in the pool afterwards.
        """
        if phrases is None:
            phrases = PHRASES_PATH.read_text(encoding="utf-8").splitlines()
        rows = [(p.strip(),) for p in phrases if p.strip()]
        with self._lock:
            self._conn.executemany("INSERT OR IGNORE INTO phrase(phrase) VALUES (?)", rows)
            self._conn.commit()
            row = self._conn.execute("SELECT COUNT(*) AS count FROM phrase").fetchone()
        return int(row["count"])

    def get_random_phrase(self) -> Optional[str]:
        with self._lock:
            rows = self._conn.execute("SELECT phrase FROM phrase").fetchall()
        if not rows:
            return None
        return random.choice(rows)["phrase"]

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def _write(self, what: str, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        """Execute and commit one statement; ``sqlite3.Error`` becomes :class:`StorageError`."""
        try:
            with self._lock:
                cur = self._conn.execute(sql, params)
                self._conn.commit()
        except sqlite3.Error as exc:
            raise StorageError(f"unable to {what}: {exc}") from exc
        return cur

    @staticmethod
    def _validated(hour: int, minute: int, message: Optional[str]) -> Alarm:
        try:
            return Alarm(hour=int(hour), minute=int(minute), message=message or None)
        except (TypeError, ValueError) as exc:
            raise ValidationError(str(exc)) from exc
