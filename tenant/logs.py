"""
操作审计日志（operation_log）
记录写入与应用数据使用同一个 Database / Transaction，表结构来自 schema.sql
"""
from __future__ import annotations

import datetime as dt
import json
import logging
import sqlite3
import time
import uuid
from typing import Any, Optional

from .db import Database, Transaction

logger = logging.getLogger(__name__)

_LOG_COLUMNS = (
    "ts", "user", "action", "entity_type", "entity_id", "request_id",
    "before_json", "after_json", "payload_json", "result", "err_msg", "latency_ms",
)
_INSERT_SQL = "INSERT INTO operation_log({}) VALUES({})".format(
    ",".join(_LOG_COLUMNS), ",".join(["?"] * len(_LOG_COLUMNS))
)


def ensure_log_schema(db: Database) -> None:
    # schema.sql 全部为 IF NOT EXISTS，可重复执行
    db.init_schema()


def _dumps(obj: Any) -> Optional[str]:
    return json.dumps(obj, ensure_ascii=False) if obj is not None else None


class LogContext:
    """Audit record of one mutating operation.

    ``write`` takes the runner to record on: the caller's transaction for a
    successful change (so the record commits or rolls back with it), or the
    ``Database`` for a failure.
    """

    def __init__(self, action: str, user: str = "system"):
        self.action = action
        self.user = user
        self.request_id = str(uuid.uuid4())
        self.start = time.perf_counter()
        self.before = None
        self.after = None
        self.payload = None
        self.entity_type = None
        self.entity_id = None

    def set_entity(self, etype: str, eid: str):
        self.entity_type = etype
        self.entity_id = eid

    def set_before(self, obj): self.before = obj
    def set_after(self, obj): self.after = obj
    def set_payload(self, obj): self.payload = obj

    def write(self, runner: Database | Transaction, result: str = "OK", err: Optional[str] = None) -> None:
        runner.exec(_INSERT_SQL, (
            dt.datetime.now().astimezone().isoformat(),
            self.user,
            self.action,
            self.entity_type,
            self.entity_id,
            self.request_id,
            _dumps(self.before),
            _dumps(self.after),
            _dumps(self.payload),
            result,
            err,
            int((time.perf_counter() - self.start) * 1000),
        ))

    def write_failure(self, db: Database, exc: BaseException) -> None:
        """Record ``exc``; a failing audit write must not mask the original error."""
        try:
            self.write(db, "ERROR", str(exc))
        except sqlite3.Error:
            logger.exception("operation_log write failed action=%s entity_id=%s", self.action, self.entity_id)


def search_logs(db: Database, q: str | None, action: str | None, ts_from: str | None, ts_to: str | None,
                page: int, size: int) -> tuple[int, list[dict]]:
    where = []
    params: list[Any] = []
    if q:
        where.append("(payload_json LIKE ? OR before_json LIKE ? OR after_json LIKE ?)")
        params.extend([f"%{q}%"] * 3)
    if action:
        where.append("action = ?")
        params.append(action)
    if ts_from:
        where.append("ts >= ?")
        params.append(ts_from)
    if ts_to:
        where.append("ts <= ?")
        params.append(ts_to)
    wh = " WHERE " + " AND ".join(where) if where else ""
    total = db.query(f"SELECT COUNT(1) AS cnt FROM operation_log{wh}", params)[0]["cnt"]
    rows = db.query(
        f"SELECT * FROM operation_log{wh} ORDER BY ts DESC, id DESC LIMIT ? OFFSET ?",
        params + [size, (page - 1) * size],
    )
    return total, [dict(r) for r in rows]
