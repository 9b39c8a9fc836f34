"""Exceptions raised by cronplus."""

from __future__ import annotations


class CronPlusError(Exception):
    """Base class for all cronplus errors."""


class UnknownRecurrenceKey(CronPlusError, ValueError):
    """The requested recurrence is not known to the cron engine."""

    def __init__(self, recurrence: str, known: list[str] | None = None) -> None:
        self.recurrence = recurrence
        self.known = sorted(known or [])
        message = f"Unknown recurrence: {recurrence!r}"
        if self.known:
            message += f" (known: {', '.join(self.known)})"
        super().__init__(message)


class RegistrationFailure(CronPlusError, RuntimeError):
    """The cron engine refused to store a job."""

    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        self.reason = reason
        super().__init__(f"Could not schedule '{name}': {reason}")


class NoPendingFiring(CronPlusError, LookupError):
    """No upcoming firing exists for a job."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"No pending firing for '{name}'")
