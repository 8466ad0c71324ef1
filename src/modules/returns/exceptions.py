"""Return domain exceptions."""

from __future__ import annotations

from modules.core.exceptions import InvalidState, NotFound


class ReturnNotFound(NotFound):
    """The requested return does not exist or has been withdrawn."""


class ReturnWindowExpired(InvalidState):
    """The order's return policy window closed before the request."""
