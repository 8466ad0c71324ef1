"""Refund statuses and transitions.

FAILED may still reach COMPLETED when a retried transfer succeeds.
"""

from types import MappingProxyType

from django.db import models


class RefundStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    PROCESSING = "PROCESSING", "Processing"
    COMPLETED = "COMPLETED", "Completed"
    FAILED = "FAILED", "Failed"
    CANCELLED = "CANCELLED", "Cancelled"


VALID_TRANSITIONS = MappingProxyType(
    {
        RefundStatus.PENDING: frozenset({RefundStatus.PROCESSING, RefundStatus.CANCELLED}),
        RefundStatus.PROCESSING: frozenset({RefundStatus.COMPLETED, RefundStatus.FAILED}),
        RefundStatus.FAILED: frozenset({RefundStatus.COMPLETED}),
        RefundStatus.COMPLETED: frozenset(),
        RefundStatus.CANCELLED: frozenset(),
    }
)

SYSTEM_ACTOR = "system"
