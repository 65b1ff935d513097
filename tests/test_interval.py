"""Tests for interval computation."""

import logging

import pytest

from cpumonitor.interval import difference
from cpumonitor.models import CounterCategory, CpuCounters, Snapshot


def make_snapshot(timestamp: float = 0.0, **counters: int) -> Snapshot:
    """Build a snapshot from keyword counters."""
    return Snapshot(timestamp=timestamp, counters=CpuCounters(**counters))


class TestDifference:
    """Tests for difference()."""

    def test_half_busy(self):
        """Test 50 busy ticks out of 100 gives 0.5."""
        earlier = make_snapshot(1.0, user=100, idle=200)
        later = make_snapshot(2.0, user=150, idle=250)

        interval = difference(earlier, later)

        assert interval.total_ticks == 100
        assert interval.idle_ticks == 50
        assert interval.non_idle_ratio() == 0.5
        assert interval.duration == 1.0

    def test_no_elapsed_work(self):
        """Test identical counters give a ratio of zero."""
        earlier = make_snapshot(1.0, user=100, idle=200)
        later = make_snapshot(2.0, user=100, idle=200)

        interval = difference(earlier, later)

        assert interval.total_ticks == 0
        assert interval.non_idle_ratio() == 0.0

    def test_same_snapshot(self):
        """Test differencing a snapshot with itself gives zero."""
        snapshot = make_snapshot(5.0, user=10, system=4, idle=99, steal=1)
        assert difference(snapshot, snapshot).non_idle_ratio() == 0.0

    def test_iowait_counts_as_idle(self):
        """Test iowait ticks are treated as idle time."""
        earlier = make_snapshot()
        later = make_snapshot(user=25, idle=50, iowait=25)

        interval = difference(earlier, later)

        assert interval.idle_ticks == 75
        assert interval.non_idle_ratio() == pytest.approx(0.25)

    @pytest.mark.parametrize(
        "busy, idle",
        [
            ({"user": 3}, {"idle": 1}),
            ({"user": 1, "nice": 1, "system": 1, "irq": 1, "softirq": 1, "steal": 1}, {"idle": 4, "iowait": 4}),
            ({"system": 999}, {"iowait": 1}),
            ({"steal": 7}, {}),
        ],
    )
    def test_ratio_matches_busy_share(self, busy, idle):
        """Test ratio equals busy / (busy + idle) ticks."""
        base = {c.value: 1000 for c in CounterCategory}
        earlier = make_snapshot(**base)
        grown = dict(base)
        for name, ticks in {**busy, **idle}.items():
            grown[name] += ticks
        later = make_snapshot(**grown)

        n = sum(busy.values())
        m = sum(idle.values())
        assert difference(earlier, later).non_idle_ratio() == pytest.approx(n / (n + m))

    def test_counter_reset_clamps_category(self):
        """Test a counter going backwards contributes zero ticks."""
        earlier = make_snapshot(user=500, system=100, idle=1000)
        later = make_snapshot(user=10, system=150, idle=1050)

        interval = difference(earlier, later)

        assert interval.deltas.user == 0
        assert interval.total_ticks == 100
        assert interval.non_idle_ratio() == pytest.approx(0.5)

    def test_counter_reset_logged(self, caplog):
        """Test clamping is logged at debug level."""
        earlier = make_snapshot(user=500)
        later = make_snapshot(user=10)

        with caplog.at_level(logging.DEBUG, logger="cpumonitor.interval"):
            difference(earlier, later)

        assert "user went backwards" in caplog.text

    def test_reversed_order_stays_in_range(self):
        """Test swapped arguments give a ratio in range, not an error."""
        earlier = make_snapshot(1.0, user=100, idle=200)
        later = make_snapshot(2.0, user=150, idle=250)

        interval = difference(later, earlier)

        assert interval.total_ticks == 0
        assert interval.duration == 0.0
        assert 0.0 <= interval.non_idle_ratio() <= 1.0

    def test_partially_reversed_stays_in_range(self):
        """Test mixed increasing and decreasing counters stay in range."""
        earlier = make_snapshot(user=100, idle=50)
        later = make_snapshot(user=90, idle=80)

        ratio = difference(earlier, later).non_idle_ratio()

        assert ratio == 0.0

    def test_deterministic(self):
        """Test differencing the same pair twice gives equal intervals."""
        earlier = make_snapshot(1.0, user=7, nice=3, idle=11)
        later = make_snapshot(2.5, user=19, nice=4, idle=40, irq=2)

        assert difference(earlier, later) == difference(earlier, later)

    def test_deltas_per_category(self):
        """Test every category delta is reported."""
        earlier = make_snapshot(**{c.value: 10 for c in CounterCategory})
        later = make_snapshot(**{c.value: 10 + i for i, c in enumerate(CounterCategory)})

        interval = difference(earlier, later)

        for i, category in enumerate(CounterCategory):
            assert interval.deltas[category] == i
        assert interval.total_ticks == sum(range(len(CounterCategory)))
