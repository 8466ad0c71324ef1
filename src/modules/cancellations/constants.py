"""Cancellation request statuses.

Approval and rejection are admin-only and both terminal.
"""

from types import MappingProxyType

from django.db import models


class CancellationStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    APPROVED = "APPROVED", "Approved"
    REJECTED = "REJECTED", "Rejected"


VALID_TRANSITIONS = MappingProxyType(
    {
        CancellationStatus.PENDING: frozenset(
            {CancellationStatus.APPROVED, CancellationStatus.REJECTED}
        ),
        CancellationStatus.APPROVED: frozenset(),
        CancellationStatus.REJECTED: frozenset(),
    }
)
