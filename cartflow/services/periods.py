# cartflow/services/periods.py
"""
Fixed reporting windows ending "now", cut into hourly or daily UTC buckets.

Shared by the cart statistics and the promotion usage report so both emit
every bucket, including empty ones.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta

from cartflow.core.clock import as_utc
from cartflow.core.errors import ValidationError

HOUR = timedelta(hours=1)
DAY = timedelta(days=1)

# period token -> (bucket width, bucket count)
PERIODS: dict[str, tuple[timedelta, int]] = {
    "24h": (HOUR, 24),
    "7d": (DAY, 7),
    "14d": (DAY, 14),
    "30d": (DAY, 30),
    "365d": (DAY, 365),
}


@dataclass(frozen=True)
class Window:
    period: str
    step: timedelta
    bucket_starts: tuple[datetime, ...]
    start: datetime
    end: datetime

    @property
    def hourly(self) -> bool:
        return self.step == HOUR

    def contains(self, ts: datetime) -> bool:
        ts = as_utc(ts)
        return self.start <= ts <= self.end

    def bucket_index(self, ts: datetime) -> int | None:
        """Index of the bucket holding `ts`, None when outside the window."""
        ts = as_utc(ts)
        if not self.contains(ts) or not self.bucket_starts:
            return None
        index = (ts - self.bucket_starts[0]) // self.step
        if index < 0 or index >= len(self.bucket_starts):
            return None
        return index

    def label(self, bucket_start: datetime) -> str:
        if self.hourly:
            return bucket_start.strftime("%d/%m %Hh")
        return bucket_start.strftime("%Y-%m-%d")


def _truncate(now: datetime, step: timedelta) -> datetime:
    if step == HOUR:
        return now.replace(minute=0, second=0, microsecond=0)
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def window_for(
    period: str,
    now: datetime,
    not_before: datetime | None = None,
) -> Window:
    """
    Build the window for a period token.

    `24h` gives 24 hourly buckets ending with the current hour; `Nd` gives
    N calendar days ending today. With `not_before`, buckets that end before
    it are dropped and the window starts no earlier than it.
    """
    if period not in PERIODS:
        raise ValidationError(
            f"Unknown period {period!r}",
            field="period",
            allowed=list(PERIODS),
        )
    step, count = PERIODS[period]
    now = as_utc(now)
    current = _truncate(now, step)
    starts = [current - step * (count - 1 - i) for i in range(count)]
    start = starts[0]

    if not_before is not None:
        not_before = as_utc(not_before)
        starts = [s for s in starts if s + step > not_before]
        start = max(start, not_before)

    return Window(
        period=period,
        step=step,
        bucket_starts=tuple(starts),
        start=start,
        end=now,
    )
