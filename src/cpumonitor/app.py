"""cpumonitor - Terminal CPU usage meter."""

import argparse
import logging
import sys
from queue import Empty, Queue

from textual.app import App, ComposeResult
from textual.widgets import Footer, Static

from cpumonitor.monitor import CounterSource, UsageMonitor, UsageReport
from cpumonitor.source import PROC_STAT_PATH, ProcStatSource, PsutilSource

logger = logging.getLogger(__name__)

BAR_WIDTH = 20


def format_percent(ratio: float) -> str:
    """Format a ratio in [0, 1] as a percentage string."""
    return f"{ratio * 100:5.1f}%"


def render_bar(ratio: float, color: str = "green") -> str:
    """Render a ratio as a fixed-width markup bar."""
    filled = min(BAR_WIDTH, max(0, int(ratio * BAR_WIDTH)))
    # Escaped bracket keeps Textual from parsing the bar container as markup
    return f"\\[[{color}]{'█' * filled}[/{color}][dim]{'░' * (BAR_WIDTH - filled)}[/dim]]"


class UsageMeter(Static):
    """Widget showing aggregate and per-core CPU usage."""

    DEFAULT_CSS = """
    UsageMeter {
        height: auto;
        min-height: 3;
        padding: 1;
        background: $surface;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize UsageMeter."""
        super().__init__(*args, **kwargs)
        self._total_ratio: float | None = None
        self._core_ratios: list[float] = []

    def compose(self) -> ComposeResult:
        """Compose the meter layout."""
        yield Static(self._get_usage_info(), id="usage-info")

    def update_usage(self, report: UsageReport) -> None:
        """Update the meter from a usage report."""
        self._total_ratio = report.total.non_idle_ratio()
        self._core_ratios = [core.non_idle_ratio() for core in report.cores]
        try:
            self.query_one("#usage-info", Static).update(self._get_usage_info())
        except Exception:
            pass  # Widget not mounted yet

    def _get_usage_info(self) -> str:
        """Get usage display."""
        if self._total_ratio is None:
            return "Sampling CPU counters..."
        lines = [f"Usage {render_bar(self._total_ratio, 'cyan')} {format_percent(self._total_ratio)}"]
        for i, ratio in enumerate(self._core_ratios):
            lines.append(f"CPU{i:<2} {render_bar(ratio)} {format_percent(ratio)}")
        return "\n".join(lines)


class CpuMonitorApp(App):
    """Main cpumonitor application."""

    TITLE = "cpumonitor"

    CSS = """
    Screen {
        layout: vertical;
    }

    #period {
        padding: 0 1;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
    ]

    def __init__(self, source: CounterSource | None = None, interval: float = 1.0) -> None:
        """
        Initialize the CpuMonitorApp.

        Args:
            source: Counter source handed to the sampler. Defaults to /proc/stat.
            interval: Sampling period in seconds.
        """
        super().__init__()
        self._update_queue: Queue[UsageReport] = Queue()
        self._monitor = UsageMonitor(self._update_queue, source=source, poll_rate=interval)
        self.sub_title = f"time period is {self._monitor.poll_rate:g}s"

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield Static(f"CPU monitor - time period is {self._monitor.poll_rate:g}s", id="period")
        yield UsageMeter(id="usage-meter")
        yield Footer()

    def on_mount(self) -> None:
        """Start the sampler when the app is mounted."""
        self._monitor.start()
        self.set_interval(0.25, self._check_for_updates)

    def _check_for_updates(self) -> None:
        """Drain the queue and show the most recent report."""
        report = None
        while True:
            try:
                report = self._update_queue.get_nowait()
            except Empty:
                break

        if report is not None:
            self.query_one("#usage-meter", UsageMeter).update_usage(report)

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._monitor.stop()
        self.exit()


def build_parser() -> argparse.ArgumentParser:
    """Build the command-line parser."""
    parser = argparse.ArgumentParser(description="Show CPU usage sampled from cumulative counters.")
    parser.add_argument(
        "-i",
        "--interval",
        type=float,
        default=1.0,
        help="Sampling period in seconds (minimum 0.1). Default 1.0.",
    )
    parser.add_argument(
        "--source",
        choices=["procfs", "psutil"],
        default="procfs",
        help="Where to read counters from. Default procfs.",
    )
    parser.add_argument(
        "--proc-stat",
        default=PROC_STAT_PATH,
        help=f"Path of the stat file for the procfs source. Default {PROC_STAT_PATH}.",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level. Default WARNING.",
    )
    return parser


def make_source(name: str, proc_stat: str = PROC_STAT_PATH) -> CounterSource:
    """Create the counter source selected on the command line."""
    if name == "psutil":
        return PsutilSource()
    return ProcStatSource(proc_stat)


def main(argv: list[str] | None = None) -> None:
    """Entry point for cpumonitor application."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=args.log_level,
        format="%(asctime)s [%(levelname)-5.5s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )

    source = make_source(args.source, args.proc_stat)
    logger.info("Starting cpumonitor with %s source, interval %.2fs", args.source, args.interval)
    app = CpuMonitorApp(source=source, interval=args.interval)
    app.run()


if __name__ == "__main__":
    main()
