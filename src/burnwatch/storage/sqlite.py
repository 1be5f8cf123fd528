"""SQLite measurement store.

Persists data points in a single ``sli_data_points`` table. Tag and
metadata bags are stored as JSON text and decoded on read; filtering by
tags happens after decoding so both backends apply exactly the same
predicate.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any

from burnwatch.errors import StorageError
from burnwatch.storage.base import (
    Aggregation,
    AggregationType,
    DataPoint,
    QueryFilter,
    aggregate_points,
    check_metadata,
)

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS sli_data_points (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    sli_id TEXT NOT NULL,
    value REAL NOT NULL,
    timestamp REAL NOT NULL,
    tags TEXT NOT NULL DEFAULT '{}',
    metadata TEXT NOT NULL DEFAULT '{}',
    created_at REAL NOT NULL DEFAULT (strftime('%s', 'now'))
);
CREATE INDEX IF NOT EXISTS idx_sli_data_points_sli_id ON sli_data_points(sli_id);
CREATE INDEX IF NOT EXISTS idx_sli_data_points_timestamp ON sli_data_points(timestamp);
"""

_INSERT = """
INSERT INTO sli_data_points (sli_id, value, timestamp, tags, metadata) VALUES (?, ?, ?, ?, ?)
"""


class SQLiteMeasurementStore:
    """Durable implementation of MeasurementStore backed by SQLite.

    One connection is shared by all threads and serialised with a lock,
    which also makes ``:memory:`` databases usable (they are
    connection-scoped).

    Usage:
        store = SQLiteMeasurementStore("sli.db")
        store.store(DataPoint(sli_id="...", value=100.0, timestamp=time.time()))
        store.close()
    """

    def __init__(self, db_path: str | Path = ":memory:") -> None:
        self._db_path = str(db_path)
        self._lock = threading.Lock()
        try:
            self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
            if self._db_path != ":memory:":
                self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.executescript(_SCHEMA)
            self._conn.commit()
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open measurement store at {self._db_path}: {e}") from e

    @property
    def db_path(self) -> str:
        return self._db_path

    def store(self, point: DataPoint) -> None:
        check_metadata(point)
        try:
            row = (
                point.sli_id,
                float(point.value),
                float(point.timestamp),
                json.dumps(point.tags),
                json.dumps(point.metadata),
            )
        except (TypeError, ValueError) as e:
            raise StorageError(f"Cannot serialise data point for {point.sli_id}: {e}") from e

        with self._lock:
            try:
                self._conn.execute(_INSERT, row)
                self._conn.commit()
            except sqlite3.Error as e:
                raise StorageError(f"Failed to store data point for {point.sli_id}: {e}") from e

    def query(self, filter: QueryFilter) -> list[DataPoint]:
        sql, params = self._build_select(filter)
        with self._lock:
            try:
                rows = self._conn.execute(sql, params).fetchall()
            except sqlite3.Error as e:
                raise StorageError(f"Query failed: {e}") from e

        points: list[DataPoint] = []
        for row in rows:
            point = self._row_to_point(row)
            if filter.tags and not filter.matches(point):
                continue
            points.append(point)
            if filter.limit > 0 and len(points) >= filter.limit:
                break
        return points

    def aggregate(
        self,
        filter: QueryFilter,
        kind: AggregationType | str,
        group_by: str | None = None,
    ) -> Aggregation:
        return aggregate_points(self.query(filter), kind, filter, group_by)

    def prune(self, older_than: float) -> int:
        """Delete points with a timestamp before *older_than*; return how many."""
        with self._lock:
            try:
                cursor = self._conn.execute(
                    "DELETE FROM sli_data_points WHERE timestamp < ?", (older_than,)
                )
                self._conn.commit()
            except sqlite3.Error as e:
                raise StorageError(f"Prune failed: {e}") from e
        logger.debug("Pruned %d data points older than %s", cursor.rowcount, older_than)
        return cursor.rowcount

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def __enter__(self) -> SQLiteMeasurementStore:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    @staticmethod
    def _build_select(filter: QueryFilter) -> tuple[str, list[Any]]:
        clauses: list[str] = []
        params: list[Any] = []
        if filter.sli_ids:
            clauses.append(f"sli_id IN ({', '.join('?' for _ in filter.sli_ids)})")
            params.extend(filter.sli_ids)
        if filter.start_time is not None:
            clauses.append("timestamp >= ?")
            params.append(filter.start_time)
        if filter.end_time is not None:
            clauses.append("timestamp <= ?")
            params.append(filter.end_time)

        sql = "SELECT sli_id, value, timestamp, tags, metadata FROM sli_data_points"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        # Row id keeps insertion order among equal timestamps
        sql += " ORDER BY timestamp ASC, id ASC"
        if filter.limit > 0 and not filter.tags:
            sql += " LIMIT ?"
            params.append(filter.limit)
        return sql, params

    @staticmethod
    def _row_to_point(row: tuple[Any, ...]) -> DataPoint:
        try:
            tags = json.loads(row[3])
            metadata = json.loads(row[4])
        except json.JSONDecodeError as e:
            raise StorageError(f"Corrupt tag/metadata payload for {row[0]}: {e}") from e
        return DataPoint(
            sli_id=row[0],
            value=row[1],
            timestamp=row[2],
            tags=tags,
            metadata=metadata,
        )
