"""Return request statuses (same shape as cancellations)."""

from types import MappingProxyType

from django.db import models


class ReturnStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    APPROVED = "APPROVED", "Approved"
    REJECTED = "REJECTED", "Rejected"


VALID_TRANSITIONS = MappingProxyType(
    {
        ReturnStatus.PENDING: frozenset({ReturnStatus.APPROVED, ReturnStatus.REJECTED}),
        ReturnStatus.APPROVED: frozenset(),
        ReturnStatus.REJECTED: frozenset(),
    }
)
