"""Parameter binding for the storage adapter.

Callers write positional ``$1, $2, ...`` placeholders. SQLAlchemy's
``text()`` construct only understands named binds, so every statement is
rewritten to ``:p1, :p2, ...`` before it reaches either backend.
"""

import re
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, TextClause, bindparam, text
from sqlalchemy.sql.elements import BindParameter

PLACEHOLDER_RE = re.compile(r"\$(\d+)\b")


def rewrite_placeholders(sql: str) -> tuple[str, list[int]]:
    """
    Rewrite ``$n`` placeholders to ``:pn`` named binds.

    Returns:
        The rewritten SQL and the sorted list of referenced positions.
    """
    positions: set[int] = set()

    def _replace(match: re.Match) -> str:
        position = int(match.group(1))
        positions.add(position)
        return f":p{position}"

    return PLACEHOLDER_RE.sub(_replace, sql), sorted(positions)


def _bind_value(name: str, value: Any) -> BindParameter:
    # dicts/lists go to JSON columns; aware datetimes to timestamptz
    if isinstance(value, (dict, list)):
        return bindparam(name, value, type_=JSON())
    if isinstance(value, datetime):
        return bindparam(name, value, type_=DateTime(timezone=value.tzinfo is not None))
    return bindparam(name, value)


def bind(sql: str, params: Sequence[Any] | None = None) -> TextClause:
    """
    Build an executable ``text()`` clause from positional SQL.

    Raises:
        ValueError: If the statement references a position with no value
    """
    params = list(params or [])
    rewritten, positions = rewrite_placeholders(sql)

    for position in positions:
        if position < 1 or position > len(params):
            raise ValueError(
                f"Statement references ${position} but {len(params)} parameter(s) were supplied"
            )

    clause = text(rewritten)
    if positions:
        clause = clause.bindparams(
            *(_bind_value(f"p{position}", params[position - 1]) for position in positions)
        )
    return clause
