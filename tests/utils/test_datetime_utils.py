"""
Tests for datetime utilities and UTC serialization of API timestamps.
"""
from datetime import datetime, timedelta, timezone

from pydantic import BaseModel

from cipherpost.schemas.common import UtcDatetime
from cipherpost.utils.datetime_utils import ensure_utc, utc_now


class _Stamped(BaseModel):
    created_at: UtcDatetime


class TestUtcNow:
    """Tests for utc_now() function."""

    def test_returns_aware_utc(self):
        result = utc_now()
        assert result.tzinfo == timezone.utc

    def test_returns_current_time(self):
        before = datetime.now(timezone.utc)
        result = utc_now()
        after = datetime.now(timezone.utc)

        assert before <= result <= after


class TestEnsureUtc:
    """Tests for ensure_utc() function."""

    def test_naive_is_treated_as_utc(self):
        """Test naive values (as SQLite returns them) keep their wall time."""
        result = ensure_utc(datetime(2025, 12, 16, 11, 30, 0, 123456))

        assert result == datetime(2025, 12, 16, 11, 30, 0, 123456, tzinfo=timezone.utc)

    def test_other_offsets_are_converted(self):
        plus_eight = timezone(timedelta(hours=8))

        result = ensure_utc(datetime(2025, 12, 16, 19, 30, tzinfo=plus_eight))

        assert result.tzinfo == timezone.utc
        assert (result.hour, result.minute) == (11, 30)

    def test_none_passes_through(self):
        assert ensure_utc(None) is None


class TestUtcDatetimeField:
    """Tests for the schema timestamp type."""

    def test_naive_input_serializes_with_utc_marker(self):
        """Test clients always receive an explicit UTC timestamp."""
        stamped = _Stamped(created_at=datetime(2025, 12, 16, 11, 30, 0))

        assert stamped.model_dump_json() == '{"created_at":"2025-12-16T11:30:00Z"}'

    def test_offset_input_is_normalized(self):
        plus_eight = timezone(timedelta(hours=8))

        stamped = _Stamped(created_at=datetime(2025, 12, 16, 19, 30, tzinfo=plus_eight))

        assert stamped.created_at == datetime(2025, 12, 16, 11, 30, tzinfo=timezone.utc)
