"""Order domain exceptions.

Raised by the Service Layer when business rules are violated.  Every class
extends the shared taxonomy in ``modules.core.exceptions`` so callers can
catch either the specific or the generic kind.
"""

from __future__ import annotations

from modules.core.exceptions import NotFound, ValidationFailure


class OrderNotFound(NotFound):
    """The requested order does not exist or has been soft-deleted."""


class InvalidOrderAmounts(ValidationFailure):
    """The order-level discount exceeds what the order is worth."""
