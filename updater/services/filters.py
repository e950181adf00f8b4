"""Reusable SQL predicates."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import false, or_

if TYPE_CHECKING:
    from sqlalchemy.orm import InstrumentedAttribute
    from sqlalchemy.sql.elements import ColumnElement


def not_deleted(column: InstrumentedAttribute[bool | None]) -> ColumnElement[bool]:
    """``(deleted IS NULL OR deleted = 0)`` as a single grouped clause.

    Always combine this with other predicates through ``and_``/``where`` so the
    OR stays parenthesised.
    """
    return or_(column.is_(None), column == false()).self_group()
