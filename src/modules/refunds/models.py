"""Refund and RefundItem models.

A refund is authorized by exactly one approved cancellation or return
(at most one FK set, enforced by a check constraint) and carries the money
breakdown computed for it.  ``total_amount`` always equals
``base - discount + tax + shipping`` and the sum of its item amounts.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from django.core.validators import MinValueValidator
from django.db import models

from modules.core.events import DomainEventMixin
from modules.core.models import BaseModel, VersionedModel
from modules.refunds.constants import RefundStatus

_MONEY = {"max_digits": 12, "decimal_places": 2}


class Refund(DomainEventMixin, VersionedModel):
    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.PROTECT,
        related_name="refunds",
    )
    cancellation = models.ForeignKey(
        "cancellations.Cancellation",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="refunds",
    )
    return_request = models.ForeignKey(
        "returns.Return",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="refunds",
    )
    status = models.CharField(
        max_length=20,
        choices=RefundStatus.choices,
        default=RefundStatus.PENDING,
    )
    base_amount = models.DecimalField(default=Decimal("0.00"), **_MONEY)
    discount_amount = models.DecimalField(default=Decimal("0.00"), **_MONEY)
    tax_amount = models.DecimalField(default=Decimal("0.00"), **_MONEY)
    shipping_amount = models.DecimalField(default=Decimal("0.00"), **_MONEY)
    total_amount = models.DecimalField(default=Decimal("0.00"), **_MONEY)
    payment_method = models.CharField(max_length=50)
    transaction_reference = models.CharField(max_length=100, blank=True, default="")
    processing_started_at = models.DateTimeField(null=True, blank=True, default=None)
    completed_at = models.DateTimeField(null=True, blank=True, default=None)
    failure_reason = models.TextField(blank=True, default="")
    requested_by = models.CharField(max_length=150, blank=True, default="")

    class Meta:
        db_table = "refunds"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "processing_started_at"], name="refunds_status_started_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                check=models.Q(cancellation__isnull=True)
                | models.Q(return_request__isnull=True),
                name="refunds_single_source",
            ),
            models.CheckConstraint(
                check=models.Q(total_amount__gte=0),
                name="refunds_total_non_negative",
            ),
        ]

    def compute_total(self) -> Decimal:
        return self.base_amount - self.discount_amount + self.tax_amount + self.shipping_amount

    def save(self, *args: Any, **kwargs: Any) -> None:
        if self._state.adding:
            self.total_amount = self.compute_total()
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"Refund {self.id} ({self.status}) {self.total_amount}"


class RefundItem(BaseModel):
    refund = models.ForeignKey(
        "refunds.Refund",
        on_delete=models.CASCADE,
        related_name="items",
    )
    order_item = models.ForeignKey(
        "orders.OrderItem",
        on_delete=models.PROTECT,
        related_name="refund_items",
    )
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    amount = models.DecimalField(**_MONEY)

    class Meta:
        db_table = "refund_items"
        ordering = ["created_at", "id"]
