"""Error taxonomy for the access and engagement core.

  ConfigurationMissing   content flags needed for a decision are absent
  TransientFetchError    a collaborator lookup (profile, enrollment,
                         completion, catalog) failed
  PersistenceWriteError  a durable write failed or could not be verified
  WatchTimeNotMet        completion requested before the required watch time

The eligibility resolver never raises these: callers turn fetch failures
into UNAVAILABLE inputs and the resolver blocks.  HTTP handlers translate
what escapes into short HTTPException responses.
"""

from __future__ import annotations


class LessonGateError(Exception):
    """Base class for errors raised by this service."""


class ConfigurationMissing(LessonGateError):
    pass


class TransientFetchError(LessonGateError):
    def __init__(self, source: str, detail: str = "") -> None:
        self.source = source
        message = f"{source} lookup failed"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class PersistenceWriteError(LessonGateError):
    pass


class WatchTimeNotMet(LessonGateError):
    """A learner tried to complete a lesson before watching long enough."""

    def __init__(self, remaining_seconds: int) -> None:
        self.remaining_seconds = remaining_seconds
        super().__init__(f"{remaining_seconds}s of watch time remaining")
