"""Exceptions raised by procrate."""


class ProcRateError(Exception):
    """Base class for all procrate errors."""


class SourceUnavailableError(ProcRateError, OSError):
    """A root listing or required file could not be opened at all."""


class MalformedRecordError(ProcRateError, ValueError):
    """A record is missing a required structural element."""

    def __init__(self, message: str, identifier: int | str | None = None) -> None:
        super().__init__(message)
        self.identifier = identifier


class DegenerateIntervalError(ProcRateError, ZeroDivisionError):
    """The elapsed time between two samples is zero or negative."""

    def __init__(self, elapsed: float) -> None:
        super().__init__(
            f"Sample interval too short: {elapsed!r} seconds elapsed, retry with a larger interval"
        )
        self.elapsed = elapsed
