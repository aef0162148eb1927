"""Document storage for market briefs.

This module provides the SQLite-backed store for run results. It models
the two writes a run performs against a document store:

    - latest: one document per target key, merge-upserted on every run
    - history: one document per (target key, capture instant), create-only

Database Schema:
    briefs table:
        - key (TEXT, PK): Target key
        - payload (TEXT): JSON document (camelCase Brief)
        - updated_at (TEXT): ISO timestamp of the last write

    brief_history table:
        - key (TEXT): Target key
        - history_id (TEXT): Capture instant in epoch milliseconds
        - payload (TEXT): JSON document, never modified after insert
        - PRIMARY KEY (key, history_id)

Merge Semantics:
    Upserting latest merges nested objects field by field (a field absent
    from the new payload keeps its stored value) and replaces everything
    else, lists included. This mirrors document stores' set-with-merge.
"""

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """A store write failed (e.g. a history id already exists)."""


def merge_documents(existing: dict[str, Any], update: dict[str, Any]) -> dict[str, Any]:
    """Deep-merge `update` into a copy of `existing`.

    Nested dicts are merged recursively; any other value in `update`
    replaces the stored one.

    Example:
        >>> merge_documents({"a": {"x": 1, "y": 2}}, {"a": {"y": 3}})
        {'a': {'x': 1, 'y': 3}}
    """
    merged = dict(existing)
    for key, value in update.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = merge_documents(current, value)
        else:
            merged[key] = value
    return merged


class BriefStore:
    """SQLite store for latest briefs and their immutable history.

    Example:
        >>> with BriefStore("briefs.db") as store:
        ...     store.save_brief("us_market", "1700000000000", payload)
        ...     store.latest("us_market")["reason"]
        'preopen'
    """

    SCHEMA = """
    -- Latest snapshot: one row per target key
    CREATE TABLE IF NOT EXISTS briefs (
        key TEXT PRIMARY KEY,            -- Target key
        payload TEXT NOT NULL,           -- JSON document
        updated_at TEXT NOT NULL         -- Last write (ISO)
    );

    -- Append-only history: one row per run
    CREATE TABLE IF NOT EXISTS brief_history (
        key TEXT NOT NULL,               -- Target key
        history_id TEXT NOT NULL,        -- Epoch milliseconds of capture
        payload TEXT NOT NULL,           -- JSON document
        PRIMARY KEY (key, history_id)
    );

    -- Index for newest-first history listing
    CREATE INDEX IF NOT EXISTS idx_history_key ON brief_history(key, history_id);
    """

    path: Path
    conn: sqlite3.Connection

    def __init__(self, path: Path | str):
        """Open (and create if needed) the store.

        Args:
            path: Path to SQLite database file
        """
        self.path = Path(path)
        self.conn = sqlite3.connect(str(self.path))
        self.conn.row_factory = sqlite3.Row

        # WAL mode allows concurrent readers during writes
        self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.executescript(self.SCHEMA)
        self.conn.commit()
        logger.debug("Store initialized | path=%s", self.path)

    def upsert_latest(self, key: str, payload: dict[str, Any], commit: bool = True) -> dict[str, Any]:
        """Merge `payload` into the latest document for `key`.

        Args:
            key: Target key
            payload: Brief document
            commit: Whether to commit immediately (False to batch)

        Returns:
            The stored document after merging
        """
        existing = self.latest(key) or {}
        merged = merge_documents(existing, payload)
        self.conn.execute(
            """
            INSERT INTO briefs (key, payload, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                payload = excluded.payload,
                updated_at = excluded.updated_at
            """,
            (key, json.dumps(merged, ensure_ascii=False), str(merged.get("updatedAt", ""))),
        )
        if commit:
            self.conn.commit()
        return merged

    def append_history(
        self,
        key: str,
        history_id: str,
        payload: dict[str, Any],
        commit: bool = True,
    ) -> None:
        """Create a history document. Existing ids are never overwritten.

        Raises:
            StoreError: If (key, history_id) already exists
        """
        try:
            self.conn.execute(
                "INSERT INTO brief_history (key, history_id, payload) VALUES (?, ?, ?)",
                (key, history_id, json.dumps(payload, ensure_ascii=False)),
            )
        except sqlite3.IntegrityError as e:
            raise StoreError(f"History entry already exists: {key}/{history_id}") from e
        if commit:
            self.conn.commit()

    def save_brief(self, key: str, history_id: str, payload: dict[str, Any]) -> None:
        """Write latest and history in one transaction.

        Either both writes land or neither does.

        Raises:
            StoreError: If the history entry exists or the write fails
        """
        try:
            self.upsert_latest(key, payload, commit=False)
            self.append_history(key, history_id, payload, commit=False)
            self.conn.commit()
        except StoreError:
            self.conn.rollback()
            raise
        except sqlite3.Error as e:
            self.conn.rollback()
            raise StoreError(f"Brief write failed for {key}: {e}") from e

    def latest(self, key: str) -> dict[str, Any] | None:
        """Get the latest document for a target key, or None."""
        row = self.conn.execute(
            "SELECT payload FROM briefs WHERE key = ?",
            (key,),
        ).fetchone()
        return json.loads(row["payload"]) if row else None

    def history(self, key: str, limit: int = 20) -> list[dict[str, Any]]:
        """Get history documents for a key, newest first.

        Each document carries its id under `historyId`.
        """
        cursor = self.conn.execute(
            """
            SELECT history_id, payload FROM brief_history
            WHERE key = ?
            ORDER BY CAST(history_id AS INTEGER) DESC
            LIMIT ?
            """,
            (key, limit),
        )
        return [
            {"historyId": row["history_id"], **json.loads(row["payload"])}
            for row in cursor.fetchall()
        ]

    def keys(self) -> list[str]:
        """Target keys with a latest document."""
        cursor = self.conn.execute("SELECT key FROM briefs ORDER BY key")
        return [row["key"] for row in cursor.fetchall()]

    def stats(self) -> dict[str, int]:
        """Row counts for status output."""
        latest = self.conn.execute("SELECT COUNT(*) FROM briefs").fetchone()[0]
        history = self.conn.execute("SELECT COUNT(*) FROM brief_history").fetchone()[0]
        return {"latest": latest, "history": history}

    def close(self) -> None:
        """Close the database connection."""
        self.conn.close()

    def __enter__(self) -> "BriefStore":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()
