from __future__ import annotations

# tenant/db.py
import os
import sqlite3
import threading
from contextlib import contextmanager
from typing import Any, Iterator, Sequence

import yaml

# DB 路径解析顺序：
# 1) 环境变量 TENANT_DB_PATH（最高优先级）
# 2) config.yaml 的 test_db_path（当检测到测试环境时）
# 3) config.yaml 的 db_path（生产默认）
# 4) 兜底：项目根 tenant.db
_PROJECT_ROOT = os.path.dirname(os.path.dirname(__file__))
_ROOT_DB = os.path.join(_PROJECT_ROOT, "tenant.db")
SCHEMA_PATH = os.path.join(_PROJECT_ROOT, "schema.sql")


def _read_config_yaml() -> dict:
    cfg_path = os.path.join(_PROJECT_ROOT, "config.yaml")
    if not os.path.exists(cfg_path):
        return {}
    try:
        with open(cfg_path, "r", encoding="utf-8") as f:
            cfg = yaml.safe_load(f) or {}
        out = {}
        for k in ("db_path", "test_db_path"):
            v = cfg.get(k)
            if isinstance(v, str) and v.strip():
                out[k] = v.strip()
        return out
    except (OSError, yaml.YAMLError, AttributeError):
        return {}


def get_db_path(_: str | None = None) -> str:
    env_path = os.environ.get("TENANT_DB_PATH")
    cfg = _read_config_yaml()
    cfg_db = cfg.get("db_path")
    cfg_test = cfg.get("test_db_path")
    is_test = (os.environ.get("APP_ENV") == "test") or (os.environ.get("PYTEST_CURRENT_TEST") is not None)

    if env_path:
        path = env_path
    elif is_test and cfg_test:
        path = cfg_test
    elif cfg_db:
        path = cfg_db
    else:
        path = _ROOT_DB

    # 确保目录存在
    dirn = os.path.dirname(path) or "."
    os.makedirs(dirn, exist_ok=True)
    return path


def connect(path: str) -> sqlite3.Connection:
    """
    打开 SQLite 连接：autocommit 模式（事务由 BEGIN 显式开启），
    打开 foreign_keys，row_factory 设为 Row。
    """
    conn = sqlite3.connect(
        path,
        detect_types=sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES,
        check_same_thread=False,
        isolation_level=None,
    )
    conn.execute("PRAGMA foreign_keys = ON;")
    conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def get_conn(db_path: str | None = None) -> Iterator[sqlite3.Connection]:
    """
    获取一次性 SQLite 连接。优先使用显式传入的 db_path，否则走 get_db_path()。
    """
    conn = connect(db_path or get_db_path())
    try:
        yield conn
    finally:
        conn.close()


class Transaction:
    """A caller-owned transaction on a dedicated connection.

    Statements run in the order they are issued. ``commit``/``rollback``
    end the transaction and release the connection; nothing is committed
    implicitly.
    """

    def __init__(self, conn: sqlite3.Connection):
        try:
            conn.execute("BEGIN")
        except sqlite3.Error:
            conn.close()
            raise
        self._conn = conn

    @property
    def closed(self) -> bool:
        return self._conn is None

    def _require_open(self) -> sqlite3.Connection:
        if self._conn is None:
            raise sqlite3.ProgrammingError("transaction already closed")
        return self._conn

    def exec(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        return self._require_open().execute(sql, list(params))

    def query(self, sql: str, params: Sequence[Any] = ()) -> list[sqlite3.Row]:
        return self._require_open().execute(sql, list(params)).fetchall()

    def commit(self) -> None:
        conn = self._require_open()
        try:
            conn.execute("COMMIT")
        finally:
            self.close()

    def rollback(self) -> None:
        conn = self._require_open()
        try:
            conn.execute("ROLLBACK")
        finally:
            self.close()

    def close(self) -> None:
        conn, self._conn = self._conn, None
        if conn is None:
            return
        if conn.in_transaction:
            conn.execute("ROLLBACK")
        conn.close()

    def __enter__(self) -> "Transaction":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        # 仅负责释放；提交必须由调用方显式完成
        self.close()


class Database:
    """Shared default connection plus a transaction factory."""

    def __init__(self, db_path: str | None = None):
        self.path = db_path or get_db_path()
        self._conn = connect(self.path)
        self._lock = threading.RLock()

    def exec(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        with self._lock:
            return self._conn.execute(sql, list(params))

    def query(self, sql: str, params: Sequence[Any] = ()) -> list[sqlite3.Row]:
        with self._lock:
            return self._conn.execute(sql, list(params)).fetchall()

    def begin_tx(self) -> Transaction:
        return Transaction(connect(self.path))

    def init_schema(self, schema_path: str | None = None) -> None:
        with open(schema_path or SCHEMA_PATH, "r", encoding="utf-8") as f:
            ddl = f.read()
        with self._lock:
            self._conn.executescript(ddl)

    def close(self) -> None:
        with self._lock:
            self._conn.close()
