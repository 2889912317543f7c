"""
Error taxonomy for knightrank.

- ValidationError: malformed or self-referential input. Never retried.
- NotFoundError: a referenced player does not exist. Never retried.
- ConcurrencyConflict: a transaction lost a race with a concurrent write.
  Callers retry the whole read-compute-write transaction a bounded number
  of times.
- ProcessingError: a decay run failed part way. Carries the run report so
  the caller can see which players were updated and which were not.
"""

from __future__ import annotations

from typing import Any


class KnightrankError(Exception):
    """Base class for all knightrank errors."""


class ValidationError(KnightrankError):
    """Input failed validation (missing id, same player twice, bad winner)."""


class InvalidInput(ValidationError):
    """Rating math was handed a value outside its domain (e.g. winner token)."""


class NotFoundError(KnightrankError):
    """A referenced player does not exist."""

    def __init__(self, message: str, player_id: Any = None):
        super().__init__(message)
        self.player_id = player_id


class ConcurrencyConflict(KnightrankError):
    """A concurrent write invalidated the data this transaction read."""


class ProcessingError(KnightrankError):
    """Unexpected failure during a decay run; ``report`` holds partial results."""

    def __init__(self, message: str, report: Any = None):
        super().__init__(message)
        self.report = report
