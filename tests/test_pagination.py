"""Tests for cursor pagination helpers."""

import base64
import uuid
from datetime import UTC, date, datetime, timedelta

from hypothesis import given, settings
from hypothesis import strategies as st

from krafts.core.pagination import (
    Cursor,
    decode_cursor,
    encode_cursor,
    paginate,
)

aware_datetimes = st.datetimes(
    min_value=datetime(2000, 1, 1),
    max_value=datetime(2100, 1, 1),
    timezones=st.just(UTC),
)


# =============================================================================
# Cursor encoding
# =============================================================================


class TestCursorEncoding:
    """Tests for encode_cursor / decode_cursor."""

    @given(timestamp=aware_datetimes, row_id=st.uuids())
    @settings(max_examples=50)
    def test_decoded_cursor_preserves_position(self, timestamp, row_id):
        decoded = decode_cursor(encode_cursor(timestamp, row_id))

        assert decoded == Cursor(timestamp=timestamp, id=str(row_id))

    def test_date_positions_decode_to_midnight(self):
        decoded = decode_cursor(encode_cursor(date(2025, 3, 1), "abc"))

        assert decoded is not None
        assert decoded.timestamp == datetime(2025, 3, 1)
        assert decoded.timestamp.date() == date(2025, 3, 1)

    def test_cursor_is_url_safe(self):
        cursor = encode_cursor(datetime(2025, 1, 1, tzinfo=UTC), uuid.uuid4())

        assert "+" not in cursor
        assert "/" not in cursor

    def test_empty_cursor_is_none(self):
        assert decode_cursor(None) is None
        assert decode_cursor("") is None

    def test_garbage_cursor_is_ignored(self):
        assert decode_cursor("not base64 at all!!") is None

    def test_cursor_without_separator_is_ignored(self):
        raw = base64.urlsafe_b64encode(b"2025-01-01T00:00:00").decode()
        assert decode_cursor(raw) is None

    def test_cursor_with_bad_timestamp_is_ignored(self):
        raw = base64.urlsafe_b64encode(b"yesterday|123").decode()
        assert decode_cursor(raw) is None

    def test_cursor_with_empty_id_is_ignored(self):
        raw = base64.urlsafe_b64encode(b"2025-01-01T00:00:00|").decode()
        assert decode_cursor(raw) is None


# =============================================================================
# Page trimming
# =============================================================================


class TestPaginate:
    """Tests for paginate()."""

    @staticmethod
    def _rows(count: int) -> list[tuple[datetime, int]]:
        start = datetime(2025, 1, 1, tzinfo=UTC)
        return [(start - timedelta(minutes=i), i) for i in range(count)]

    def test_extra_row_yields_next_cursor(self):
        rows = self._rows(4)

        page, next_cursor = paginate(rows, 3, key=lambda r: (r[0], r[1]))

        assert page == rows[:3]
        decoded = decode_cursor(next_cursor)
        assert decoded.timestamp == rows[2][0]
        assert decoded.id == "2"

    def test_last_page_has_no_cursor(self):
        rows = self._rows(3)

        page, next_cursor = paginate(rows, 3, key=lambda r: (r[0], r[1]))

        assert page == rows
        assert next_cursor is None

    def test_empty_rows(self):
        assert paginate([], 10, key=lambda r: r) == ([], None)

    @given(count=st.integers(min_value=0, max_value=60), limit=st.integers(min_value=1, max_value=30))
    def test_page_never_exceeds_limit(self, count, limit):
        rows = self._rows(count)

        page, next_cursor = paginate(rows, limit, key=lambda r: (r[0], r[1]))

        assert len(page) == min(count, limit)
        assert (next_cursor is not None) == (count > limit)
