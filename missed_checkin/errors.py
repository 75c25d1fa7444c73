class MissedCheckinError(Exception):
    """Base class for errors raised by the missed check-in scheduler."""


class ScanAborted(MissedCheckinError):
    """A page of overdue users could not be fetched; the scan stopped early."""

    def __init__(self, message: str, pages_done: int = 0):
        super().__init__(message)
        self.pages_done = pages_done
