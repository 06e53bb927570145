"""Rewards error taxonomy.

Every error carries a ``kind`` and a ``context`` dict so the caller can decide
between showing an error toast and failing silently.
"""

from __future__ import annotations

from typing import Any


class RewardsError(Exception):
    """Base class for rewards failures."""

    kind = "rewards"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "detail": self.message, "context": self.context}


class ValidationError(RewardsError):
    """Malformed event input, rejected before any state access."""

    kind = "validation"


class PersistenceError(RewardsError):
    """The stats collaborator failed to read or write.

    No XP or badge state may be assumed changed; the whole event can be retried.
    """

    kind = "persistence"


class InconsistentStateError(RewardsError):
    """An invariant check failed after computing an update. Signals a bug."""

    kind = "inconsistent_state"
