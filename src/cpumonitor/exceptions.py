"""Exceptions raised by cpumonitor."""


class DataSourceError(Exception):
    """
    Raised when CPU counters cannot be read or parsed.

    Covers a missing or unreadable source as well as malformed content.
    """

    def __init__(self, reason: str, source: str | None = None) -> None:
        super().__init__(reason if source is None else f"{source}: {reason}")
        self.reason = reason
        self.source = source
