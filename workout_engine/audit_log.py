"""
Append-only audit trail of model gateway invocations, optionally persisted to
SQLite.
"""

import os
import sqlite3
import threading
from collections import deque
from contextlib import contextmanager
from dataclasses import asdict, dataclass, fields


@dataclass(frozen=True)
class AuditRecord:
    request_id: str
    timestamp: str
    user_id: str
    request_type: str
    model: str
    request_hash: str
    response_hash: str
    from_cache: bool
    outcome: str
    error_code: str
    attempts: int
    input_tokens: int
    output_tokens: int
    cost_usd: float
    latency_ms: int

    def to_dict(self):
        return asdict(self)


AUDIT_COLUMNS = [f.name for f in fields(AuditRecord)]


class AuditDB:
    """Small SQLite wrapper for audit record storage."""

    def __init__(self, db_path):
        self.db_path = db_path
        parent = os.path.dirname(db_path)
        if parent:
            os.makedirs(parent, exist_ok=True)

        self.conn = sqlite3.connect(db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row

    def close(self):
        self.conn.close()

    @contextmanager
    def transaction(self):
        """Context manager for atomic write operations."""
        try:
            yield
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise

    def init_schema(self):
        """Create the audit table if it does not already exist."""
        self.conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS ai_audit_log (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                request_id TEXT NOT NULL UNIQUE,
                timestamp TEXT NOT NULL,
                user_id TEXT,
                request_type TEXT NOT NULL,
                model TEXT,
                request_hash TEXT NOT NULL,
                response_hash TEXT,
                from_cache INTEGER NOT NULL DEFAULT 0,
                outcome TEXT NOT NULL,
                error_code TEXT,
                attempts INTEGER NOT NULL DEFAULT 0,
                input_tokens INTEGER NOT NULL DEFAULT 0,
                output_tokens INTEGER NOT NULL DEFAULT 0,
                cost_usd REAL NOT NULL DEFAULT 0,
                latency_ms INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL DEFAULT (datetime('now'))
            );

            CREATE INDEX IF NOT EXISTS idx_ai_audit_log_user ON ai_audit_log(user_id);
            CREATE INDEX IF NOT EXISTS idx_ai_audit_log_timestamp ON ai_audit_log(timestamp);
            """
        )
        self.conn.commit()

    def insert_record(self, record):
        data = record.to_dict()
        data["from_cache"] = 1 if data["from_cache"] else 0
        placeholders = ", ".join("?" for _ in AUDIT_COLUMNS)
        with self.transaction():
            self.conn.execute(
                f"INSERT INTO ai_audit_log ({', '.join(AUDIT_COLUMNS)}) VALUES ({placeholders})",
                [data[column] for column in AUDIT_COLUMNS],
            )

    def fetch_records(self, limit=100, user_id=None):
        query = f"SELECT {', '.join(AUDIT_COLUMNS)} FROM ai_audit_log"
        params = []
        if user_id is not None:
            query += " WHERE user_id = ?"
            params.append(user_id)
        query += " ORDER BY id DESC LIMIT ?"
        params.append(int(limit))

        rows = self.conn.execute(query, params).fetchall()
        records = []
        for row in rows:
            data = dict(row)
            data["from_cache"] = bool(data["from_cache"])
            records.append(AuditRecord(**data))
        return records

    def total_cost(self, user_id=None):
        query = "SELECT COALESCE(SUM(cost_usd), 0) FROM ai_audit_log"
        params = []
        if user_id is not None:
            query += " WHERE user_id = ?"
            params.append(user_id)
        return float(self.conn.execute(query, params).fetchone()[0])


class AuditLog:
    """
    In-memory audit trail with an optional SQLite sink.

    The memory tail is bounded; the database, when configured, keeps every
    record.
    """

    def __init__(self, max_records=1000, db=None):
        self._records = deque(maxlen=max_records)
        self._lock = threading.Lock()
        self.db = db

    def append(self, record):
        with self._lock:
            self._records.append(record)
            if self.db is not None:
                self.db.insert_record(record)

    def records(self, user_id=None):
        with self._lock:
            items = list(self._records)
        if user_id is None:
            return items
        return [r for r in items if r.user_id == user_id]

    def __len__(self):
        with self._lock:
            return len(self._records)

    def summary(self):
        records = self.records()
        outcomes = {}
        for record in records:
            outcomes[record.outcome] = outcomes.get(record.outcome, 0) + 1
        cache_hits = sum(1 for r in records if r.from_cache)
        return {
            "records": len(records),
            "outcomes": outcomes,
            "cache_hits": cache_hits,
            "cost_usd": round(sum(r.cost_usd for r in records), 6),
            "input_tokens": sum(r.input_tokens for r in records),
            "output_tokens": sum(r.output_tokens for r in records),
        }
