"""Cursor pagination helpers.

A cursor is an opaque token: base64 of ``"<iso timestamp>|<id>"``. Callers
fetch ``limit + 1`` rows so the presence of the extra row tells whether
another page exists.
"""

import base64
import binascii
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, TypeVar

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class Cursor:
    """Decoded cursor position."""

    timestamp: datetime
    id: str


def _to_iso(value: datetime | date | str) -> str:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def encode_cursor(timestamp: datetime | date | str, row_id: Any) -> str:
    """Encode a sort position into an opaque cursor."""
    raw = f"{_to_iso(timestamp)}|{row_id}"
    return base64.urlsafe_b64encode(raw.encode()).decode()


def decode_cursor(cursor: str | None) -> Cursor | None:
    """Decode a cursor; malformed input yields None and is ignored by callers."""
    if not cursor:
        return None
    try:
        raw = base64.urlsafe_b64decode(cursor.encode()).decode()
        timestamp_part, row_id = raw.split("|", 1)
        timestamp = datetime.fromisoformat(timestamp_part)
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return None
    if not row_id:
        return None
    return Cursor(timestamp=timestamp, id=row_id)


def paginate(
    rows: Sequence[T],
    limit: int,
    key: Callable[[T], tuple[datetime | date | str, Any]],
) -> tuple[list[T], str | None]:
    """Trim a ``limit + 1`` fetch to one page and compute the next cursor.

    Args:
        rows: Rows fetched with ``limit + 1``
        limit: Page size requested by the client
        key: Returns the (timestamp, id) sort position of a row

    Returns:
        (page, next_cursor) where next_cursor is None on the last page
    """
    has_more = len(rows) > limit
    page = list(rows[:limit])
    if not has_more or not page:
        return page, None
    timestamp, row_id = key(page[-1])
    return page, encode_cursor(timestamp, row_id)
