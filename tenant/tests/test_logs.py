import sqlite3

import pytest

from tenant.db import Database
from tenant.logs import LogContext, ensure_log_schema, search_logs


def test_log_context_write_and_search(db):
    ensure_log_schema(db)

    log = LogContext("MODIFY_APP", user="dev-1")
    log.set_entity("APP", "a1")
    log.set_before({"app_name": "旧名字"})
    log.set_after({"app_name": "新名字"})
    log.write(db)
    LogContext("DELETE_APP").write(db, "ERROR", "app_not_found")

    total, items = search_logs(db, None, None, None, None, 1, 10)
    assert total == 2

    total, items = search_logs(db, "新名字", None, None, None, 1, 10)
    assert total == 1
    rec = items[0]
    assert rec["user"] == "dev-1"
    assert rec["entity_type"] == "APP" and rec["entity_id"] == "a1"
    assert '"旧名字"' in rec["before_json"]
    assert rec["payload_json"] is None

    total, items = search_logs(db, None, "DELETE_APP", None, None, 1, 10)
    assert total == 1
    assert items[0]["result"] == "ERROR"
    assert items[0]["err_msg"] == "app_not_found"

    _, page2 = search_logs(db, None, None, None, None, 2, 1)
    assert len(page2) == 1


def test_write_in_transaction_follows_rollback(db):
    tx = db.begin_tx()
    LogContext("CREATE_APP").write(tx)
    tx.rollback()
    assert search_logs(db, None, None, None, None, 1, 10)[0] == 0


def test_write_failure_does_not_raise(tmp_path, caplog):
    # 没有 operation_log 表的库
    bare = Database(str(tmp_path / "bare.db"))
    try:
        LogContext("DELETE_APP").write_failure(bare, ValueError("app_not_found"))
        assert "operation_log write failed" in caplog.text
        assert bare.query("SELECT name FROM sqlite_master WHERE name='operation_log'") == []
    finally:
        bare.close()


def test_write_raises_on_missing_table(tmp_path):
    bare = Database(str(tmp_path / "bare.db"))
    try:
        with pytest.raises(sqlite3.OperationalError, match="operation_log"):
            LogContext("CREATE_APP").write(bare)
    finally:
        bare.close()
