"""
SQL 片段选项
每个选项对应一个谓词或赋值片段及其绑定参数；Composer 把它们拼成 WHERE / SET 子句
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, List, NamedTuple, Optional, Tuple

OPERATORS = ("=", "!=", "like", "IN")


class Clause(NamedTuple):
    """Rendered SQL fragment with its positional parameters."""

    sql: str
    params: List[Any]

    def __call__(self) -> Tuple[str, List[Any]]:
        return self.sql, list(self.params)


@dataclass(frozen=True)
class SqlOption:
    column: str
    operator: str
    values: Tuple[Any, ...]

    def __post_init__(self):
        if self.operator not in OPERATORS:
            raise ValueError(f"unsupported operator: {self.operator}")
        if self.operator == "IN" and not self.values:
            # 空 IN 用 in_() 得到 None，而不是渲染出 IN()
            raise ValueError("IN takes at least one value")
        if self.operator != "IN" and len(self.values) != 1:
            raise ValueError(f"{self.operator} takes exactly one value")

    def __call__(self) -> Tuple[str, List[Any]]:
        if self.operator == "IN":
            sql = "{} IN({})".format(self.column, ",".join(["?"] * len(self.values)))
        elif self.operator == "like":
            sql = f"{self.column} like ?"
        else:
            sql = f"{self.column}{self.operator}?"
        return sql, list(self.values)


def eq(column: str, value: Any) -> SqlOption:
    return SqlOption(column, "=", (value,))


def ne(column: str, value: Any) -> SqlOption:
    return SqlOption(column, "!=", (value,))


def like(column: str, value: Any) -> SqlOption:
    # 不做 % 包装，模式由调用方决定
    return SqlOption(column, "like", (value,))


def in_(column: str, *values: Any) -> Optional[SqlOption]:
    """``column IN(?,...)``; no values means no option at all (``None``)."""
    if not values:
        return None
    return SqlOption(column, "IN", tuple(values))


def _compose(options: Iterable[Any], sep: str) -> Clause:
    fragments: List[str] = []
    params: List[Any] = []
    for opt in options:
        if opt is None:
            continue
        sql, args = opt()
        fragments.append(sql)
        params.extend(args)
    return Clause(sep.join(fragments), params)


def compose_where(options: Iterable[Any]) -> Clause:
    """AND-join predicates; an empty result matches every row."""
    return _compose(options, " AND ")


def compose_set(options: Iterable[Any]) -> Clause:
    clause = _compose(options, ",")
    if not clause.sql:
        raise ValueError("update content is empty")
    return clause
