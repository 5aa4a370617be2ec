from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping

from pydantic import BaseModel

TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def now_str() -> str:
    return datetime.now().strftime(TIME_FORMAT)


# Insert/Select 的列顺序；位置参数按此顺序绑定
APP_COLUMNS = (
    "app_id",
    "app_name",
    "dev_id",
    "channel_id",
    "source",
    "is_disable",
    "app_desc",
    "is_delete",
    "create_time",
    "update_time",
    "extend",
)


class App(BaseModel):
    """A tenant application row of ``tb_app``.

    ``create_time``/``update_time`` are ``YYYY-MM-DD HH:MM:SS`` text and
    ``extend`` is an opaque payload; neither is parsed here.
    """

    app_id: str = ""
    app_name: str = ""
    dev_id: int = 0
    channel_id: str = ""
    source: str = ""
    is_disable: bool = False
    app_desc: str = ""
    is_delete: bool = False
    create_time: str = ""
    update_time: str = ""
    extend: str = ""

    def values(self) -> list[Any]:
        return [getattr(self, c) for c in APP_COLUMNS]

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "App":
        return cls(**{c: row[c] for c in APP_COLUMNS if row[c] is not None})
