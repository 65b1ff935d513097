"""Data models for cpumonitor."""

from collections.abc import Mapping
from dataclasses import dataclass, fields
from enum import Enum


class CounterCategory(Enum):
    """Buckets of CPU time, in the order the kernel reports them."""

    USER = "user"
    NICE = "nice"
    SYSTEM = "system"
    IDLE = "idle"
    IOWAIT = "iowait"
    IRQ = "irq"
    SOFTIRQ = "softirq"
    STEAL = "steal"


# Categories in which the CPU did no productive work.
IDLE_CATEGORIES = (CounterCategory.IDLE, CounterCategory.IOWAIT)


@dataclass(slots=True, frozen=True)
class CpuCounters:
    """Cumulative tick counts, one field per CounterCategory."""

    user: int = 0
    nice: int = 0
    system: int = 0
    idle: int = 0
    iowait: int = 0
    irq: int = 0
    softirq: int = 0
    steal: int = 0

    @classmethod
    def from_mapping(cls, values: Mapping[CounterCategory | str, int]) -> "CpuCounters":
        """
        Build counters from a partial mapping.

        Keys may be CounterCategory members or their string values.
        Categories not present in the mapping are zero.
        """
        kwargs = {}
        for key, value in values.items():
            category = CounterCategory(key)
            kwargs[category.value] = value
        return cls(**kwargs)

    @classmethod
    def from_fields(cls, values: list[int]) -> "CpuCounters":
        """Build counters from values in category order, padding or truncating."""
        return cls(*values[: len(CounterCategory)])

    def __getitem__(self, category: CounterCategory) -> int:
        return getattr(self, category.value)

    def total(self) -> int:
        """Sum of every category."""
        return sum(getattr(self, f.name) for f in fields(self))

    def idle_total(self) -> int:
        """Ticks spent idle or waiting on I/O."""
        return sum(self[category] for category in IDLE_CATEGORIES)


@dataclass(slots=True, frozen=True)
class Snapshot:
    """Immutable read-out of cumulative CPU counters at one instant."""

    timestamp: float  # time.monotonic() seconds
    counters: CpuCounters
    label: str = "cpu"  # 'cpu' for the aggregate, 'cpuN' for core N

    def __sub__(self, other: "Snapshot") -> "Interval":
        """``later - earlier`` is shorthand for ``difference(earlier, later)``."""
        if not isinstance(other, Snapshot):
            return NotImplemented
        from cpumonitor.interval import difference

        return difference(other, self)


@dataclass(slots=True, frozen=True)
class Interval:
    """Counter deltas between two snapshots."""

    deltas: CpuCounters
    total_ticks: int
    idle_ticks: int
    duration: float  # Seconds between the two snapshots

    def non_idle_ratio(self) -> float:
        """Fraction of ticks not spent idle, in [0.0, 1.0]."""
        if self.total_ticks == 0:
            return 0.0
        ratio = 1.0 - self.idle_ticks / self.total_ticks
        return min(1.0, max(0.0, ratio))

    def idle_ratio(self) -> float:
        """Fraction of ticks spent idle, in [0.0, 1.0]. Zero for an empty interval."""
        if self.total_ticks == 0:
            return 0.0
        return min(1.0, max(0.0, self.idle_ticks / self.total_ticks))
