"""Interval arithmetic over CPU counter snapshots."""

import logging

from cpumonitor.models import CounterCategory, CpuCounters, Interval, Snapshot

logger = logging.getLogger(__name__)


def difference(earlier: Snapshot, later: Snapshot) -> Interval:
    """
    Compute the counter deltas between two snapshots.

    A category whose counter went backwards (reset, wraparound or swapped
    arguments) contributes zero ticks instead of failing.

    Args:
        earlier: Snapshot taken first.
        later: Snapshot taken second.

    Returns:
        The Interval between the two snapshots.
    """
    deltas = {}
    for category in CounterCategory:
        delta = later.counters[category] - earlier.counters[category]
        if delta < 0:
            logger.debug(
                "Counter %s went backwards on %s (%d -> %d), clamping to 0",
                category.value,
                later.label,
                earlier.counters[category],
                later.counters[category],
            )
            delta = 0
        deltas[category] = delta

    counters = CpuCounters.from_mapping(deltas)
    return Interval(
        deltas=counters,
        total_ticks=counters.total(),
        idle_ticks=counters.idle_total(),
        duration=max(0.0, later.timestamp - earlier.timestamp),
    )
