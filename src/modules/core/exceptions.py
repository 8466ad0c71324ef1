"""Error taxonomy shared by every lifecycle workflow.

Services raise these (or a module-specific subclass) before any mutation is
persisted.  The caller, typically an API layer outside this service,
translates them into its own responses.
"""

from __future__ import annotations


class OrderLifecycleError(Exception):
    """Base class for all workflow failures."""


class NotFound(OrderLifecycleError):
    """An aggregate or item id could not be resolved."""


class InvalidTransition(OrderLifecycleError):
    """The transition graph rejects the requested status move."""

    def __init__(self, lifecycle: str, from_status: str, to_status: str) -> None:
        self.lifecycle = lifecycle
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Cannot transition {lifecycle} from {from_status} to {to_status}."
        )


class InvalidState(OrderLifecycleError):
    """The operation requires a different current state (e.g. editing a
    request that is no longer pending)."""


class ValidationFailure(OrderLifecycleError):
    """Quantities, item sets or amounts are not acceptable."""


class AmountMismatch(ValidationFailure):
    """The sum of child amounts disagrees with the parent total."""


class ConcurrencyConflict(OrderLifecycleError):
    """The optimistic concurrency token was stale; re-read and retry."""


class ExternalDependencyFailure(OrderLifecycleError):
    """A collaborator (payment gateway) was unreachable or errored."""
