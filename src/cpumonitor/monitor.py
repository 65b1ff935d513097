"""Background CPU usage sampler for cpumonitor."""

import logging
import threading
from collections import deque
from dataclasses import dataclass
from queue import Queue
from typing import Protocol

from cpumonitor.exceptions import DataSourceError
from cpumonitor.interval import difference
from cpumonitor.models import Interval, Snapshot
from cpumonitor.source import ProcStatSource

logger = logging.getLogger(__name__)


class CounterSource(Protocol):
    """Anything that can capture aggregate and per-core snapshots."""

    def capture_all(self) -> tuple[Snapshot, list[Snapshot]]: ...


@dataclass(slots=True, frozen=True)
class UsageReport:
    """Usage over one sampling period."""

    total: Interval
    cores: list[Interval]


class UsageMonitor:
    """
    Samples CPU counters periodically and reports usage intervals.

    Runs in a separate daemon thread and pushes a UsageReport to a
    thread-safe Queue after every sample but the first.
    A failed sample is logged and skipped; the loop keeps running.
    """

    def __init__(
        self,
        update_queue: Queue[UsageReport],
        source: CounterSource | None = None,
        poll_rate: float = 1.0,
    ) -> None:
        """
        Initialize the UsageMonitor.

        Args:
            update_queue: Thread-safe queue to push reports to.
            source: Counter source. Defaults to /proc/stat.
            poll_rate: Sampling period in seconds. Default 1.0s.
        """
        self._queue = update_queue
        self._source = source if source is not None else ProcStatSource()
        self._poll_rate = max(0.1, poll_rate)
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._previous: tuple[Snapshot, list[Snapshot]] | None = None
        self._usage_history: deque[float] = deque(maxlen=60)

    @property
    def poll_rate(self) -> float:
        """Get the current poll rate."""
        return self._poll_rate

    @poll_rate.setter
    def poll_rate(self, value: float) -> None:
        """Set the poll rate."""
        self._poll_rate = max(0.1, value)  # Minimum 0.1 seconds

    @property
    def is_running(self) -> bool:
        """Check if the monitor thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the sampling thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._poll_loop,
            daemon=True,
            name="UsageMonitor",
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the sampling thread.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def _poll_loop(self) -> None:
        """Main sampling loop running in the background thread."""
        while not self._stop_event.is_set():
            try:
                report = self.sample()
            except DataSourceError as e:
                logger.warning("Skipping CPU sample: %s", e)
            except Exception:
                # Log unexpected errors and keep the loop running
                logger.exception("Unexpected error while sampling CPU counters")
            else:
                if report is not None:
                    self._queue.put(report)

            self._stop_event.wait(timeout=self._poll_rate)

    def sample(self) -> UsageReport | None:
        """
        Take one sample and difference it against the previous one.

        Returns None on the first sample, since one snapshot carries no usage.
        Per-core intervals are empty when the core count changed.
        """
        current = self._source.capture_all()
        previous, self._previous = self._previous, current
        if previous is None:
            return None

        total = difference(previous[0], current[0])
        if len(previous[1]) == len(current[1]):
            cores = [difference(before, after) for before, after in zip(previous[1], current[1])]
        else:
            logger.info("Core count changed from %d to %d", len(previous[1]), len(current[1]))
            cores = []

        self._usage_history.append(total.non_idle_ratio())
        return UsageReport(total=total, cores=cores)

    def get_usage_history(self) -> list[float]:
        """Get recent aggregate non-idle ratios, oldest first."""
        return list(self._usage_history)
