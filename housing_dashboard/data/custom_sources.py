"""SQLite store for user-defined custom sources."""

import sqlite3
import uuid
from dataclasses import asdict, fields
from pathlib import Path
from typing import Protocol

from housing_dashboard.models.series import CustomSource, SeriesValidation, format_timestamp, utc_now


class CustomSourceStore(Protocol):
    """Lookup of custom-source rows by uuid, owned outside the cache layer."""

    def get(self, source_id: str) -> CustomSource | None: ...

    def put(self, source: CustomSource) -> CustomSource: ...


_COLUMNS = [f.name for f in fields(CustomSource)]

_UPSERT_SQL = """
    INSERT INTO custom_data_sources ({columns}, created_at, updated_at)
    VALUES ({placeholders}, ?, ?)
    ON CONFLICT(source_id) DO UPDATE SET
        {updates},
        updated_at = excluded.updated_at
""".format(
    columns=", ".join(_COLUMNS),
    placeholders=", ".join("?" for _ in _COLUMNS),
    updates=", ".join(f"{c} = excluded.{c}" for c in _COLUMNS if c != "source_id"),
)


class SqliteCustomSourceStore:
    """SQLite-backed custom-source table."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        """Get database connection with row factory."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        """Initialize database schema."""
        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS custom_data_sources (
                    source_id TEXT PRIMARY KEY,
                    provider TEXT NOT NULL,
                    provider_source_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    unit TEXT NOT NULL,
                    description TEXT,
                    frequency TEXT NOT NULL DEFAULT 'monthly',
                    stale_after_hours REAL NOT NULL DEFAULT 24,
                    validation_status TEXT NOT NULL DEFAULT 'pending',
                    last_validation_error TEXT,
                    last_validated_at TEXT,
                    provider_title TEXT,
                    provider_units TEXT,
                    provider_frequency TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

    @staticmethod
    def _to_source(row: sqlite3.Row) -> CustomSource:
        return CustomSource(**{name: row[name] for name in _COLUMNS})

    def get(self, source_id: str) -> CustomSource | None:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM custom_data_sources WHERE source_id = ?",
                (source_id,),
            ).fetchone()
        return self._to_source(row) if row else None

    def find_by_provider_id(self, provider: str, provider_source_id: str) -> CustomSource | None:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM custom_data_sources WHERE provider = ? AND provider_source_id = ?",
                (provider, provider_source_id),
            ).fetchone()
        return self._to_source(row) if row else None

    def list_sources(self) -> list[CustomSource]:
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM custom_data_sources ORDER BY created_at"
            ).fetchall()
        return [self._to_source(row) for row in rows]

    def put(self, source: CustomSource) -> CustomSource:
        """Insert or replace a source. A missing source_id gets a new uuid."""
        if not source.source_id:
            source.source_id = str(uuid.uuid4())

        now = format_timestamp(utc_now())
        values = asdict(source)
        with self._get_connection() as conn:
            conn.execute(
                _UPSERT_SQL,
                [values[c] for c in _COLUMNS] + [now, now],
            )
        return source

    def update_validation(self, source_id: str, result: SeriesValidation) -> CustomSource | None:
        """Store the outcome of re-validating a source upstream."""
        source = self.get(source_id)
        if source is None:
            return None

        source.last_validated_at = format_timestamp(utc_now())
        if result.is_valid:
            source.validation_status = "valid"
            source.last_validation_error = None
            source.provider_title = result.title
            source.provider_units = result.units
            source.provider_frequency = result.frequency
        else:
            source.validation_status = "invalid"
            source.last_validation_error = result.error or "Validation failed"
        return self.put(source)

