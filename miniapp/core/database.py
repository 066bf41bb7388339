"""
Local durable cache
DuckDB-backed storage for the last saved snapshot and the operator action log

Tables:
- snapshot_cache: one row per cache key, the snapshot as canonical JSON text
- logs: operator actions (catalog and admin edits)
"""

import json
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional

import duckdb

from .exceptions import DatabaseError
from ..config.settings import Settings, settings as default_settings

SNAPSHOT_KEY = "miniapp_config"

SCHEMA_SQL = r"""
CREATE TABLE IF NOT EXISTS snapshot_cache (
  cache_key TEXT PRIMARY KEY,
  payload TEXT NOT NULL,
  saved_at TIMESTAMP NOT NULL
);

CREATE SEQUENCE IF NOT EXISTS logs_id_seq;
CREATE TABLE IF NOT EXISTS logs (
  log_id INTEGER DEFAULT nextval('logs_id_seq') PRIMARY KEY,
  actor TEXT,
  action TEXT NOT NULL,
  detail_json TEXT,
  created_at TIMESTAMP DEFAULT now()
);

CREATE INDEX IF NOT EXISTS idx_logs_actor ON logs(actor);
CREATE INDEX IF NOT EXISTS idx_logs_action ON logs(action);
"""


class SnapshotCache:
    """Snapshot cache and action log on a single DuckDB connection"""

    def __init__(self, db_path: Optional[str] = None, settings: Optional[Settings] = None):
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._lock = threading.RLock()
        self.settings = settings or default_settings
        self.db_path = db_path or self.settings.cache_database_path

    @property
    def connection(self) -> duckdb.DuckDBPyConnection:
        """Open the connection and schema on first use"""
        with self._lock:
            if self._connection is None:
                try:
                    if self.db_path != ":memory:":
                        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
                    self._connection = duckdb.connect(self.db_path)
                    self._connection.execute(SCHEMA_SQL)
                except (duckdb.Error, OSError) as e:
                    self._connection = None
                    raise DatabaseError(f"Failed to open cache database: {e}")
            return self._connection

    @contextmanager
    def transaction(self) -> Generator[duckdb.DuckDBPyConnection, None, None]:
        with self._lock:
            conn = self.connection
            try:
                conn.execute("BEGIN")
                yield conn
                conn.execute("COMMIT")
            except Exception as e:
                conn.execute("ROLLBACK")
                if isinstance(e, duckdb.Error):
                    raise DatabaseError(f"Cache transaction failed: {e}") from e
                raise

    def read(self, key: str = SNAPSHOT_KEY) -> Optional[str]:
        """Return the cached payload, or None when nothing is cached"""
        with self._lock:
            try:
                row = self.connection.execute(
                    "SELECT payload FROM snapshot_cache WHERE cache_key = ?", [key]
                ).fetchone()
            except duckdb.Error as e:
                raise DatabaseError(f"Failed to read cache: {e}")
        return row[0] if row else None

    def write(self, payload: str, key: str = SNAPSHOT_KEY) -> datetime:
        """Replace the cached payload, returns the save timestamp"""
        saved_at = datetime.now(timezone.utc).replace(tzinfo=None)
        with self.transaction() as conn:
            conn.execute("DELETE FROM snapshot_cache WHERE cache_key = ?", [key])
            conn.execute(
                "INSERT INTO snapshot_cache(cache_key, payload, saved_at) VALUES (?, ?, ?)",
                [key, payload, saved_at],
            )
        return saved_at

    def saved_at(self, key: str = SNAPSHOT_KEY) -> Optional[datetime]:
        with self._lock:
            try:
                row = self.connection.execute(
                    "SELECT saved_at FROM snapshot_cache WHERE cache_key = ?", [key]
                ).fetchone()
            except duckdb.Error as e:
                raise DatabaseError(f"Failed to read cache timestamp: {e}")
        return row[0] if row else None

    def clear(self, key: str = SNAPSHOT_KEY):
        """Drop the cached payload"""
        with self.transaction() as conn:
            conn.execute("DELETE FROM snapshot_cache WHERE cache_key = ?", [key])

    def log_action(self, actor: Optional[str], action: str, detail: Dict[str, Any]):
        """Append an operator action to the log table"""
        with self.transaction() as conn:
            conn.execute(
                "INSERT INTO logs(actor, action, detail_json) VALUES (?, ?, ?)",
                [actor, action, json.dumps(detail, ensure_ascii=False)],
            )

    def recent_actions(self, limit: int = 50) -> List[Dict[str, Any]]:
        """Latest operator actions, newest first"""
        with self._lock:
            try:
                rows = self.connection.execute(
                    "SELECT log_id, actor, action, detail_json, created_at FROM logs "
                    "ORDER BY log_id DESC LIMIT ?",
                    [limit],
                ).fetchall()
            except duckdb.Error as e:
                raise DatabaseError(f"Failed to read action log: {e}")
        return [
            {
                "log_id": row[0],
                "actor": row[1],
                "action": row[2],
                "detail": json.loads(row[3]) if row[3] else {},
                "created_at": row[4],
            }
            for row in rows
        ]

    def close(self):
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None
