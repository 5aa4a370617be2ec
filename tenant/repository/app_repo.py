"""
应用（tb_app）数据访问层
通过组合 SqlOption 构造 WHERE / SET 子句，支持在调用方持有的事务中执行
"""
from __future__ import annotations

import logging
from sqlite3 import Cursor, Row
from typing import Any, List, Optional, Sequence

from ..db import Database, Transaction
from ..models import APP_COLUMNS, App, now_str
from .sql_option import SqlOption, compose_set, compose_where, eq, in_, like, ne

logger = logging.getLogger(__name__)

TABLE = "tb_app"

_INSERT_SQL = "INSERT INTO {}({}) VALUES({})".format(
    TABLE, ", ".join(APP_COLUMNS), ",".join(["?"] * len(APP_COLUMNS))
)
_SELECT_SQL = "SELECT {} FROM {}".format(", ".join(APP_COLUMNS), TABLE)


def _with_where(sql: str, where: str) -> str:
    return f"{sql} WHERE {where}" if where else sql


class AppDao:
    """CRUD on ``tb_app`` driven by composable options.

    ``tx`` arguments take a :class:`~tenant.db.Transaction` from
    :meth:`begin_tx`; ``None`` runs on the shared default connection.
    Database errors propagate as raised by ``sqlite3``.
    """

    def __init__(self, db: Optional[Database]):
        if db is None:
            raise ValueError("database is nil")
        self.db = db

    # ---------------- options ----------------

    def with_app_id(self, app_id: str) -> SqlOption:
        return eq("app_id", app_id)

    def with_not_app_id(self, app_id: str) -> SqlOption:
        return ne("app_id", app_id)

    def with_app_ids(self, *app_ids: str) -> Optional[SqlOption]:
        return in_("app_id", *app_ids)

    def with_source(self, source: str) -> SqlOption:
        return eq("source", source)

    def with_is_disable(self, is_disable: bool) -> SqlOption:
        return eq("is_disable", is_disable)

    def with_is_delete(self, is_delete: bool) -> SqlOption:
        return eq("is_delete", is_delete)

    def with_update_time(self, update_time: str) -> SqlOption:
        return eq("update_time", update_time)

    def with_name(self, name: str) -> SqlOption:
        return like("app_name", name)

    def with_set_name(self, name: str) -> SqlOption:
        return eq("app_name", name)

    def with_desc(self, desc: str) -> SqlOption:
        return eq("app_desc", desc)

    def with_dev_id(self, dev_id: int) -> SqlOption:
        return eq("dev_id", dev_id)

    def with_channel_id(self, channel_id: str) -> SqlOption:
        return eq("channel_id", channel_id)

    def with_no_channel_id(self, channel_id: str) -> SqlOption:
        return ne("channel_id", channel_id)

    def with_extend(self, extend: str) -> SqlOption:
        return eq("extend", extend)

    # ---------------- execution ----------------

    def _runner(self, tx: Optional[Transaction]):
        return tx if tx is not None else self.db

    def _exec(self, sql: str, params: Sequence[Any], tx: Optional[Transaction]) -> Cursor:
        logger.debug("exec sql=%s params=%s in_tx=%s", sql, params, tx is not None)
        return self._runner(tx).exec(sql, params)

    def _query(self, sql: str, params: Sequence[Any], tx: Optional[Transaction]) -> List[Row]:
        logger.debug("query sql=%s params=%s in_tx=%s", sql, params, tx is not None)
        return self._runner(tx).query(sql, params)

    def begin_tx(self) -> Transaction:
        return self.db.begin_tx()

    def insert(self, data: Optional[App], tx: Optional[Transaction] = None) -> int:
        if data is None:
            raise ValueError("insert app data, data must not been nil")
        cur = self._exec(_INSERT_SQL, data.values(), tx)
        return int(cur.lastrowid)

    def update(self, where_options: Sequence[Optional[SqlOption]], tx: Optional[Transaction] = None,
               *set_options: Optional[SqlOption]) -> int:
        set_clause = compose_set(set_options)
        where = compose_where(where_options or ())
        if not where.sql:
            logger.warning("update on %s without where condition, all rows affected", TABLE)
        sql = _with_where(f"UPDATE {TABLE} SET {set_clause.sql}", where.sql)
        cur = self._exec(sql, set_clause.params + where.params, tx)
        return int(cur.rowcount)

    def delete(self, tx: Optional[Transaction] = None, *where_options: Optional[SqlOption]) -> int:
        # 软删除：标记 is_delete 并刷新 update_time，不物理删除
        return self.update(list(where_options), tx,
                           self.with_is_delete(True), self.with_update_time(now_str()))

    def select(self, *where_options: Optional[SqlOption], tx: Optional[Transaction] = None) -> List[App]:
        where = compose_where(where_options)
        rows = self._query(_with_where(_SELECT_SQL, where.sql), where.params, tx)
        return [App.from_row(r) for r in rows]

    def count(self, distinct: bool = False, tx: Optional[Transaction] = None,
              *where_options: Optional[SqlOption]) -> int:
        where = compose_where(where_options)
        target = "DISTINCT app_id" if distinct else "*"
        sql = _with_where(f"SELECT COUNT({target}) AS c FROM {TABLE}", where.sql)
        row = self._query(sql, where.params, tx)[0]
        return int(row["c"])
