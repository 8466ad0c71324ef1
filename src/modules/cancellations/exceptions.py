"""Cancellation domain exceptions."""

from __future__ import annotations

from modules.core.exceptions import InvalidState, NotFound


class CancellationNotFound(NotFound):
    """The requested cancellation does not exist or has been withdrawn."""


class CancellationWindowExpired(InvalidState):
    """The order's cancellation policy window closed before the request."""
