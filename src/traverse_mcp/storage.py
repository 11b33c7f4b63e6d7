"""
SQLite persistence for diagrams and shared-URL mappings.

Two tables: ``diagrams`` (one serialized record per id) and ``shared_urls``
(the remote URL a local diagram was shared to). All writes are upserts.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path

from traverse_mcp.models import WalkthroughDiagram, generate_id as _new_id, utc_now_iso

logger = logging.getLogger("traverse-mcp")

DB_FILE_NAME = "traverse.db"

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS diagrams (
        id TEXT PRIMARY KEY,
        summary TEXT,
        data TEXT,
        created_at TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS shared_urls (
        local_id TEXT PRIMARY KEY,
        remote_url TEXT,
        shared_at TEXT
    )
    """,
)


class StorageError(Exception):
    """Raised when the diagram store cannot be opened, read or written."""


class DiagramStore:
    """Keyed persistence for diagram records."""

    def __init__(self, conn: sqlite3.Connection, path: Path) -> None:
        self._conn = conn
        self.path = path

    @classmethod
    def init(cls, data_dir: Path) -> DiagramStore:
        """Open (creating if needed) the database under *data_dir*.

        Safe to call on an existing database. Failure is fatal for the caller.
        """
        path = Path(data_dir) / DB_FILE_NAME
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(path), check_same_thread=False)
            conn.row_factory = sqlite3.Row
            with conn:
                for statement in _SCHEMA:
                    conn.execute(statement)
        except (OSError, sqlite3.Error) as exc:
            raise StorageError(f"Cannot initialise diagram store at {path}: {exc}") from exc
        logger.debug("Diagram store ready at %s", path)
        return cls(conn, path)

    def load_all(self) -> dict[str, WalkthroughDiagram]:
        """Return every persisted diagram, oldest first.

        A single unreadable row fails the whole load.
        """
        try:
            rows = self._conn.execute(
                "SELECT id, data FROM diagrams ORDER BY created_at, rowid"
            ).fetchall()
        except sqlite3.Error as exc:
            raise StorageError(f"Cannot read diagrams: {exc}") from exc

        result: dict[str, WalkthroughDiagram] = {}
        for row in rows:
            try:
                result[row["id"]] = WalkthroughDiagram.from_dict(json.loads(row["data"]))
            except (TypeError, ValueError, KeyError) as exc:
                raise StorageError(f"Corrupt diagram record '{row['id']}': {exc}") from exc
        return result

    def save(self, diagram_id: str, diagram: WalkthroughDiagram) -> None:
        self._write(
            "INSERT OR REPLACE INTO diagrams (id, summary, data, created_at) VALUES (?, ?, ?, ?)",
            (
                diagram_id,
                diagram.summary,
                json.dumps(diagram.to_dict()),
                diagram.created_at or utc_now_iso(),
            ),
        )

    def delete(self, diagram_id: str) -> None:
        """Remove a diagram and its shared-url mapping. Absent ids are a no-op."""
        try:
            with self._conn:
                self._conn.execute("DELETE FROM diagrams WHERE id = ?", (diagram_id,))
                self._conn.execute("DELETE FROM shared_urls WHERE local_id = ?", (diagram_id,))
        except sqlite3.Error as exc:
            raise StorageError(f"Diagram store write failed: {exc}") from exc

    def get_shared_url(self, local_id: str) -> str | None:
        try:
            row = self._conn.execute(
                "SELECT remote_url FROM shared_urls WHERE local_id = ?", (local_id,)
            ).fetchone()
        except sqlite3.Error as exc:
            raise StorageError(f"Cannot read shared url: {exc}") from exc
        return row["remote_url"] if row is not None else None

    def save_shared_url(self, local_id: str, remote_url: str) -> None:
        self._write(
            "INSERT OR REPLACE INTO shared_urls (local_id, remote_url, shared_at) VALUES (?, ?, ?)",
            (local_id, remote_url, utc_now_iso()),
        )

    def generate_id(self) -> str:
        """Fresh opaque id; collisions are not checked."""
        return _new_id()

    def close(self) -> None:
        self._conn.close()

    def _write(self, sql: str, params: tuple) -> None:
        try:
            with self._conn:
                self._conn.execute(sql, params)
        except sqlite3.Error as exc:
            raise StorageError(f"Diagram store write failed: {exc}") from exc
