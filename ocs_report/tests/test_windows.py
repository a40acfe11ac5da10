"""Tests for usage window planning.

Target: ~8 tests, runtime <0.1s
"""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from ocs_report.windows import plan


def _bounds(windows):
    return [(w.start.isoformat(), w.end.isoformat()) for w in windows]


class TestPlan:
    def test_single_day(self) -> None:
        """Start == end gives exactly one one-day window."""
        assert _bounds(plan("2025-06-01", "2025-06-01", 7)) == [("2025-06-01", "2025-06-01")]

    def test_last_window_shorter(self) -> None:
        """20 days at span 7 -> 7 + 7 + 6."""
        assert _bounds(plan("2025-06-01", "2025-06-20", 7)) == [
            ("2025-06-01", "2025-06-07"),
            ("2025-06-08", "2025-06-14"),
            ("2025-06-15", "2025-06-20"),
        ]

    def test_exact_multiple(self) -> None:
        windows = plan(date(2025, 6, 1), date(2025, 6, 14), 7)
        assert [w.days for w in windows] == [7, 7]

    def test_start_after_end_is_empty(self) -> None:
        assert plan("2025-06-02", "2025-06-01", 7) == []

    def test_span_one(self) -> None:
        windows = plan("2025-06-01", "2025-06-03", 1)
        assert [w.days for w in windows] == [1, 1, 1]

    def test_invalid_span(self) -> None:
        with pytest.raises(ValueError):
            plan("2025-06-01", "2025-06-03", 0)

    def test_deterministic(self) -> None:
        """Same inputs, same windows."""
        assert plan("2025-01-01", "2025-10-19", 7) == plan("2025-01-01", "2025-10-19", 7)

    @pytest.mark.parametrize("days,span", [(0, 7), (1, 7), (6, 7), (7, 7), (100, 7), (45, 3), (31, 5)])
    def test_contiguous_cover(self, days: int, span: int) -> None:
        """Windows tile [start, end] with no gap or overlap."""
        start = date(2025, 2, 20)
        end = start + timedelta(days=days)
        windows = plan(start, end, span)
        assert windows[0].start == start
        assert windows[-1].end == end
        for prev, nxt in zip(windows, windows[1:]):
            assert nxt.start == prev.end + timedelta(days=1)
        assert all(1 <= w.days <= span for w in windows)
        assert sum(w.days for w in windows) == days + 1
