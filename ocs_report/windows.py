"""Usage window planning.

Usage queries accept at most one week per call, so a reporting interval is
cut into consecutive inclusive windows. Deterministic: the same inputs
always give the same windows.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import List, Union

from ocs_report.models import UsageWindow

DateLike = Union[date, str]


def _as_date(value: DateLike) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


def plan(start: DateLike, end: DateLike, max_span_days: int) -> List[UsageWindow]:
    """Partition ``[start, end]`` into windows of at most ``max_span_days``.

    Windows are contiguous and non-overlapping; the first begins at
    ``start`` and the last ends exactly at ``end`` (it may be shorter).
    ``start > end`` yields no windows.
    """
    if max_span_days < 1:
        raise ValueError(f"max_span_days must be >= 1, got {max_span_days}")
    first, last = _as_date(start), _as_date(end)
    span = timedelta(days=max_span_days - 1)
    windows: List[UsageWindow] = []
    cursor = first
    while cursor <= last:
        window_end = min(cursor + span, last)
        windows.append(UsageWindow(start=cursor, end=window_end))
        cursor = window_end + timedelta(days=1)
    return windows
