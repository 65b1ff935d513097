"""Snapshot readers for cumulative CPU time counters."""

import logging
import re
import time

import psutil

from cpumonitor.exceptions import DataSourceError
from cpumonitor.models import CounterCategory, CpuCounters, Snapshot

logger = logging.getLogger(__name__)

PROC_STAT_PATH = "/proc/stat"
AGGREGATE_MARKER = "cpu"
# USER_HZ; psutil reports seconds, which are scaled back to ticks with this.
TICKS_PER_SECOND = 100

# Upper bound on a stat file; /proc/stat is a few KiB even on large hosts.
MAX_STAT_SIZE = 1024 * 1024

_CORE_MARKER = re.compile(r"cpu[0-9]+")
_COUNTER_FIELD = re.compile(r"[0-9]+")


def parse_cpu_line(line: str, source: str | None = None) -> tuple[str, CpuCounters]:
    """
    Parse one ``cpu``/``cpuN`` line of /proc/stat.

    Fields beyond the known categories are ignored and missing trailing
    fields are zero.

    Args:
        line: The raw line, marker token first.
        source: Name of the data source, for error messages.

    Returns:
        Tuple of (marker token, counters).

    Raises:
        DataSourceError: If the marker is wrong or a field is not a
            non-negative integer.
    """
    tokens = line.split()
    if not tokens:
        raise DataSourceError("empty counter line", source)

    marker, values = tokens[0], tokens[1 : len(CounterCategory) + 1]
    if marker != AGGREGATE_MARKER and not _CORE_MARKER.fullmatch(marker):
        raise DataSourceError(f"unexpected marker {marker!r}", source)
    if not values:
        raise DataSourceError(f"no counter fields on {marker!r} line", source)

    for value in values:
        if not _COUNTER_FIELD.fullmatch(value):
            raise DataSourceError(f"invalid counter value {value!r} on {marker!r} line", source)

    return marker, CpuCounters.from_fields([int(value) for value in values])


def parse_stat(text: str, source: str | None = None) -> tuple[CpuCounters, list[tuple[str, CpuCounters]]]:
    """
    Parse the CPU section of /proc/stat content.

    The first non-blank line must be the aggregate ``cpu`` line. Per-core
    lines directly following it are parsed with the same rules; parsing stops
    at the first line that is not a per-core line.

    Returns:
        Tuple of (aggregate counters, list of (marker, counters) per core).
    """
    lines = [line for line in text.splitlines() if line.strip()]
    if not lines:
        raise DataSourceError("no counter line found", source)

    marker = lines[0].split()[0]
    if marker != AGGREGATE_MARKER:
        raise DataSourceError(
            f"expected {AGGREGATE_MARKER!r} line, found {marker!r}", source
        )
    _, total = parse_cpu_line(lines[0], source)

    cores: list[tuple[str, CpuCounters]] = []
    for line in lines[1:]:
        if not _CORE_MARKER.fullmatch(line.split()[0]):
            break
        cores.append(parse_cpu_line(line, source))

    return total, cores


class ProcStatSource:
    """
    Reads CPU counters from a /proc/stat style pseudo-file.

    Every capture opens, reads and closes the file once; instances hold no
    mutable state and can be shared between threads.
    """

    def __init__(self, path: str = PROC_STAT_PATH) -> None:
        """
        Initialize the ProcStatSource.

        Args:
            path: Location of the stat file. Default /proc/stat.
        """
        self._path = path

    @property
    def path(self) -> str:
        """Get the stat file path."""
        return self._path

    def _read(self) -> tuple[float, str]:
        try:
            with open(self._path, encoding="ascii") as f:
                text = f.read(MAX_STAT_SIZE + 1)
        except (OSError, UnicodeDecodeError) as e:
            raise DataSourceError(f"cannot read counters: {e}", self._path) from e
        if len(text) > MAX_STAT_SIZE:
            raise DataSourceError(f"source exceeds {MAX_STAT_SIZE} bytes", self._path)
        return time.monotonic(), text

    def capture(self) -> Snapshot:
        """Capture the aggregate counters of all cores combined."""
        timestamp, text = self._read()
        total, _ = parse_stat(text, self._path)
        logger.debug("Captured %s from %s at %.3f", total, self._path, timestamp)
        return Snapshot(timestamp=timestamp, counters=total, label=AGGREGATE_MARKER)

    def capture_cores(self) -> list[Snapshot]:
        """Capture one snapshot per core, in file order."""
        _, cores = self.capture_all()
        return cores

    def capture_all(self) -> tuple[Snapshot, list[Snapshot]]:
        """Capture aggregate and per-core counters from a single read."""
        timestamp, text = self._read()
        total, cores = parse_stat(text, self._path)
        logger.debug("Captured aggregate and %d cores from %s", len(cores), self._path)
        return (
            Snapshot(timestamp=timestamp, counters=total, label=AGGREGATE_MARKER),
            [Snapshot(timestamp=timestamp, counters=counters, label=marker) for marker, counters in cores],
        )


# psutil field names per category; Windows reports irq and softirq as interrupt and dpc.
_PSUTIL_FIELDS = {
    CounterCategory.IRQ: ("irq", "interrupt"),
    CounterCategory.SOFTIRQ: ("softirq", "dpc"),
}


def _counters_from_cpu_times(times) -> CpuCounters:
    """Convert a psutil scputimes tuple (seconds) to tick counters."""
    values = {}
    for category in CounterCategory:
        names = _PSUTIL_FIELDS.get(category, (category.value,))
        seconds = next((getattr(times, name) for name in names if hasattr(times, name)), 0.0) or 0.0
        values[category] = max(0, round(seconds * TICKS_PER_SECOND))
    return CpuCounters.from_mapping(values)


class PsutilSource:
    """
    Reads CPU counters through psutil.cpu_times().

    Works on every platform psutil supports. Categories a platform does not
    report (e.g. iowait outside Linux) are zero.
    """

    name = "psutil"

    def _cpu_times(self, percpu: bool):
        try:
            return psutil.cpu_times(percpu=percpu)
        except (OSError, RuntimeError) as e:
            raise DataSourceError(f"cannot read counters: {e}", self.name) from e

    def capture(self) -> Snapshot:
        """Capture the aggregate counters of all cores combined."""
        times = self._cpu_times(percpu=False)
        return Snapshot(
            timestamp=time.monotonic(),
            counters=_counters_from_cpu_times(times),
            label=AGGREGATE_MARKER,
        )

    def capture_cores(self) -> list[Snapshot]:
        """Capture one snapshot per core."""
        per_cpu = self._cpu_times(percpu=True)
        timestamp = time.monotonic()
        return [
            Snapshot(timestamp=timestamp, counters=_counters_from_cpu_times(times), label=f"cpu{i}")
            for i, times in enumerate(per_cpu)
        ]

    def capture_all(self) -> tuple[Snapshot, list[Snapshot]]:
        """
        Capture aggregate and per-core counters from a single psutil call.

        The aggregate is the sum of the per-core counters so both come from
        the same read.
        """
        cores = self.capture_cores()
        if not cores:
            raise DataSourceError("no per-core counters reported", self.name)
        totals = {
            category: sum(core.counters[category] for core in cores) for category in CounterCategory
        }
        total = Snapshot(
            timestamp=cores[0].timestamp,
            counters=CpuCounters.from_mapping(totals),
            label=AGGREGATE_MARKER,
        )
        return total, cores


_default_source = ProcStatSource()


def capture() -> Snapshot:
    """Capture aggregate counters from /proc/stat."""
    return _default_source.capture()


def capture_cores() -> list[Snapshot]:
    """Capture per-core counters from /proc/stat."""
    return _default_source.capture_cores()


def capture_all() -> tuple[Snapshot, list[Snapshot]]:
    """Capture aggregate and per-core counters from one read of /proc/stat."""
    return _default_source.capture_all()
