"""Refund domain exceptions."""

from __future__ import annotations

from modules.core.exceptions import ExternalDependencyFailure, NotFound, OrderLifecycleError


class RefundNotFound(NotFound):
    """The requested refund does not exist or has been soft-deleted."""


class GatewayTimeout(ExternalDependencyFailure):
    """The payment gateway did not answer in time."""


class GatewayUnavailable(ExternalDependencyFailure):
    """The payment gateway could not be reached or answered with a 5xx."""


class PaymentDeclined(OrderLifecycleError):
    """The payment gateway answered and refused the payment."""
