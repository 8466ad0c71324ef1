"""Shipment domain exceptions."""

from __future__ import annotations

from modules.core.exceptions import NotFound, ValidationFailure


class ShipmentNotFound(NotFound):
    """The requested shipment does not exist."""


class DuplicateTrackingNumber(ValidationFailure):
    """Another shipment already uses the tracking number."""
