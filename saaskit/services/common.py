"""Shared service utilities: timestamps, ordering, pagination, list envelopes."""
from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from fastapi import HTTPException
from sqlalchemy import Select


def ensure_utc(value: datetime | None) -> datetime | None:
    """Return an aware UTC datetime.

    Some backends (SQLite) hand back naive values for timezone-aware columns.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def is_stale(
    incoming: datetime | None, stored: datetime | None
) -> bool:
    """True when ``incoming`` is strictly older than what is already stored.

    Equal timestamps are not stale so a redelivered event re-applies cleanly.
    """
    if incoming is None or stored is None:
        return False
    return ensure_utc(incoming) < ensure_utc(stored)  # type: ignore[operator]


def apply_ordering(
    query: Select[Any],
    order_by: str,
    order_dir: str,
    allowed_columns: dict[str, Any],
) -> Select[Any]:
    """Apply ordering to a select statement with validation."""
    if order_by not in allowed_columns:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid order_by. Allowed: {', '.join(sorted(allowed_columns))}",
        )
    column = allowed_columns[order_by]
    if order_dir == "desc":
        return query.order_by(column.desc())
    return query.order_by(column.asc())


def apply_pagination(query: Select[Any], limit: int, offset: int) -> Select[Any]:
    """Apply limit/offset to a select statement."""
    return query.limit(limit).offset(offset)


def list_response(
    items: list, limit: int, offset: int, *, total: int | None = None
) -> dict:
    return {
        "items": items,
        "count": len(items),
        "limit": limit,
        "offset": offset,
        "total": total if total is not None else len(items),
    }
