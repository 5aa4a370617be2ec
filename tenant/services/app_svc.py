from __future__ import annotations

import uuid
from typing import Any, Optional

from ..db import Transaction
from ..logs import LogContext
from ..models import App, now_str
from ..repository.app_repo import AppDao

_MODIFIABLE = {
    "name": "with_set_name",
    "desc": "with_desc",
    "channel_id": "with_channel_id",
    "extend": "with_extend",
}


def _get_live(dao: AppDao, app_id: str, tx=None) -> Optional[App]:
    apps = dao.select(dao.with_app_id(app_id), dao.with_is_delete(False), tx=tx)
    return apps[0] if apps else None


def name_exists(dao: AppDao, dev_id: int, name: str, exclude_app_id: str | None = None,
                tx: Transaction | None = None) -> bool:
    """同一开发者下是否已有同名（未删除）应用"""
    opts = [dao.with_dev_id(dev_id), dao.with_set_name(name), dao.with_is_delete(False)]
    if exclude_app_id:
        opts.append(dao.with_not_app_id(exclude_app_id))
    return dao.count(False, tx, *opts) > 0


def _in_tx(dao: AppDao, log: LogContext, work) -> Any:
    """
    在同一事务内执行 work(tx) 并写入审计记录后提交；
    失败时回滚，并通过 dao.db 记录 ERROR（记录失败不覆盖原始异常）
    """
    try:
        with dao.begin_tx() as tx:
            out = work(tx)
            log.write(tx)
            tx.commit()
    except Exception as e:
        log.write_failure(dao.db, e)
        raise
    return out


def create_app(dao: AppDao, data: dict, log: LogContext) -> dict:
    ts = now_str()
    app = App(
        app_id=data.get("app_id") or uuid.uuid4().hex,
        app_name=data["name"],
        dev_id=int(data["dev_id"]),
        channel_id=data.get("channel_id") or "",
        source=data.get("source") or "",
        app_desc=data.get("desc") or "",
        create_time=ts,
        update_time=ts,
        extend=data.get("extend") or "",
    )
    log.set_entity("APP", app.app_id)
    log.set_payload(data)

    def work(tx: Transaction) -> dict:
        if name_exists(dao, app.dev_id, app.app_name, tx=tx):
            raise ValueError("app_name_exists")
        dao.insert(app, tx)
        after = app.model_dump()
        log.set_after(after)
        return after

    return _in_tx(dao, log, work)


def get_app(dao: AppDao, app_id: str) -> dict | None:
    app = _get_live(dao, app_id)
    return app.model_dump() if app else None


def list_apps(
    dao: AppDao,
    dev_id: int | None = None,
    name: str | None = None,
    source: str | None = None,
    app_ids: list[str] | None = None,
    include_disabled: bool = True,
) -> list[dict[str, Any]]:
    opts = [dao.with_is_delete(False)]
    if dev_id is not None:
        opts.append(dao.with_dev_id(dev_id))
    if name:
        opts.append(dao.with_name(f"%{name}%"))
    if source:
        opts.append(dao.with_source(source))
    if app_ids is not None:
        if not app_ids:
            return []
        opts.append(dao.with_app_ids(*app_ids))
    if not include_disabled:
        opts.append(dao.with_is_disable(False))
    return [a.model_dump() for a in dao.select(*opts)]


def count_apps(dao: AppDao, dev_id: int | None = None, source: str | None = None) -> int:
    opts = [dao.with_is_delete(False)]
    if dev_id is not None:
        opts.append(dao.with_dev_id(dev_id))
    if source:
        opts.append(dao.with_source(source))
    return dao.count(True, None, *opts)


def _mutate(dao: AppDao, app_id: str, log: LogContext, set_options: list,
            new_name: str | None = None) -> int:
    """更新未删除的应用并记录 before/after；重名检查与更新在同一事务内"""
    log.set_entity("APP", app_id)

    def work(tx: Transaction) -> int:
        before = _get_live(dao, app_id, tx)
        if before is None:
            raise ValueError("app_not_found")
        if new_name is not None and name_exists(dao, before.dev_id, new_name, exclude_app_id=app_id, tx=tx):
            raise ValueError("app_name_exists")
        n = dao.update([dao.with_app_id(app_id), dao.with_is_delete(False)], tx, *set_options)
        after = _get_live(dao, app_id, tx)
        log.set_before(before.model_dump())
        log.set_after(after.model_dump() if after else None)
        return n

    return _in_tx(dao, log, work)


def modify_app(dao: AppDao, app_id: str, data: dict, log: LogContext) -> int:
    set_options = [getattr(dao, m)(data[k]) for k, m in _MODIFIABLE.items() if data.get(k) is not None]
    if not set_options:
        raise ValueError("update content is empty")
    log.set_payload(data)
    set_options.append(dao.with_update_time(now_str()))
    return _mutate(dao, app_id, log, set_options, new_name=data.get("name"))


def set_disabled(dao: AppDao, app_id: str, disabled: bool, log: LogContext) -> int:
    log.set_payload({"is_disable": disabled})
    return _mutate(dao, app_id, log, [dao.with_is_disable(disabled), dao.with_update_time(now_str())])


def delete_app(dao: AppDao, app_id: str, log: LogContext) -> int:
    log.set_entity("APP", app_id)

    def work(tx: Transaction) -> int:
        before = _get_live(dao, app_id, tx)
        if before is None:
            raise ValueError("app_not_found")
        log.set_before(before.model_dump())
        return dao.delete(tx, dao.with_app_id(app_id), dao.with_is_delete(False))

    return _in_tx(dao, log, work)
