"""
Unit tests for reporting windows.
"""

from datetime import datetime, timedelta, timezone

import pytest

from cartflow.core.errors import ValidationError
from cartflow.services.periods import window_for

NOW = datetime(2026, 3, 10, 15, 30, tzinfo=timezone.utc)


class TestWindowFor:
    """Bucket layout per period token."""

    def test_daily_buckets_end_today(self):
        window = window_for('7d', NOW)
        assert len(window.bucket_starts) == 7
        assert window.bucket_starts[0] == datetime(2026, 3, 4, tzinfo=timezone.utc)
        assert window.bucket_starts[-1] == datetime(2026, 3, 10, tzinfo=timezone.utc)
        assert window.end == NOW
        assert not window.hourly
        assert window.label(window.bucket_starts[0]) == '2026-03-04'

    def test_hourly_buckets(self):
        window = window_for('24h', NOW)
        assert len(window.bucket_starts) == 24
        assert window.hourly
        assert window.bucket_starts[-1] == datetime(2026, 3, 10, 15, tzinfo=timezone.utc)
        assert window.label(window.bucket_starts[-1]) == '10/03 15h'

    @pytest.mark.parametrize('period, count', [('14d', 14), ('30d', 30), ('365d', 365)])
    def test_bucket_counts(self, period, count):
        assert len(window_for(period, NOW).bucket_starts) == count

    def test_unknown_period(self):
        with pytest.raises(ValidationError):
            window_for('90d', NOW)

    def test_bucket_index(self):
        window = window_for('7d', NOW)
        assert window.bucket_index(datetime(2026, 3, 4, 0, 0, tzinfo=timezone.utc)) == 0
        assert window.bucket_index(NOW - timedelta(days=2)) == 4
        assert window.bucket_index(NOW) == 6
        assert window.bucket_index(datetime(2026, 3, 3, 23, 59, tzinfo=timezone.utc)) is None
        assert window.bucket_index(NOW + timedelta(minutes=1)) is None

    def test_naive_timestamps_read_as_utc(self):
        window = window_for('7d', NOW)
        assert window.bucket_index(datetime(2026, 3, 9, 8, 0)) == 5

    def test_not_before_clips_the_window(self):
        started = datetime(2026, 3, 8, 10, 0, tzinfo=timezone.utc)
        window = window_for('7d', NOW, not_before=started)
        assert window.start == started
        assert [s.day for s in window.bucket_starts] == [8, 9, 10]
        assert window.bucket_index(datetime(2026, 3, 8, 9, 0, tzinfo=timezone.utc)) is None
        assert window.bucket_index(datetime(2026, 3, 8, 11, 0, tzinfo=timezone.utc)) == 0
