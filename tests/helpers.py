"""Test helpers for VALIS."""

from datetime import datetime, timedelta


class TickingClock:
    """A deterministic clock advancing one minute per call."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, 9, 0)):
        self.current = start

    def __call__(self) -> datetime:
        now = self.current
        self.current += timedelta(minutes=1)
        return now
