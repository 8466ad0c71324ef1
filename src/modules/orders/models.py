"""Order, OrderItem, and OrderStatusHistory models, plus the abstract
shapes shared by item-level requests (cancellations, returns).

Rules implemented here:
- Order money breakdown: ``total = subtotal - discount + tax + shipping``,
  every component non-negative (DB check constraints).
- OrderItem snapshots the product name and unit price at purchase time.
  ``line_total`` is always ``unit_price * quantity - discount_amount``
  (calculated on save).
- Each status change appends an ``OrderStatusHistory`` row; rows are never
  edited or removed.
- ``version`` (from ``VersionedModel``) guards every status write.
- Order number auto-generated as human-readable identifier.
"""

from __future__ import annotations

import secrets
from decimal import Decimal
from typing import Any

import structlog
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from modules.core.events import DomainEventMixin
from modules.core.models import BaseModel, VersionedModel
from modules.core.transitions import Lifecycle, is_allowed, is_terminal
from modules.orders.constants import PAYMENT_METHOD_MAX_LENGTH, OrderStatus

logger = structlog.get_logger(__name__)

ORDER_NUMBER_MAX_RETRIES = 5

_MONEY = {"max_digits": 12, "decimal_places": 2}


class Order(DomainEventMixin, VersionedModel):
    """Order aggregate root.

    ``order_number`` (``ORD-YYYYMMDD-XXXXXX``) is generated on first save;
    the UUIDv7 ``id`` is used for every internal reference.  ``user_id`` is
    the owner; user accounts live outside this service.
    """

    order_number = models.CharField(max_length=20, unique=True, editable=False)
    user_id = models.UUIDField(db_index=True)
    status = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
    )
    subtotal_amount = models.DecimalField(default=Decimal("0.00"), **_MONEY)
    discount_amount = models.DecimalField(default=Decimal("0.00"), **_MONEY)
    tax_amount = models.DecimalField(default=Decimal("0.00"), **_MONEY)
    shipping_charges = models.DecimalField(default=Decimal("0.00"), **_MONEY)
    total_amount = models.DecimalField(default=Decimal("0.00"), **_MONEY)
    payment_method = models.CharField(max_length=PAYMENT_METHOD_MAX_LENGTH)
    shipping_address = models.TextField()
    billing_address = models.TextField()
    cancellation_policy = models.ForeignKey(
        "masterdata.Policy",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="+",
    )
    return_policy = models.ForeignKey(
        "masterdata.Policy",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="+",
    )
    notes = models.TextField(blank=True, default="")

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="orders_status_idx"),
            models.Index(fields=["-created_at"], name="orders_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                check=models.Q(subtotal_amount__gte=0)
                & models.Q(discount_amount__gte=0)
                & models.Q(tax_amount__gte=0)
                & models.Q(shipping_charges__gte=0)
                & models.Q(total_amount__gte=0),
                name="orders_amounts_non_negative",
            ),
        ]

    # ------------------------------------------------------------------
    # State Machine helpers
    # ------------------------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        return is_terminal(Lifecycle.ORDER, self.status)

    def can_transition_to(self, new_status: str) -> bool:
        return is_allowed(Lifecycle.ORDER, self.status, new_status)

    # ------------------------------------------------------------------
    # Money
    # ------------------------------------------------------------------

    @staticmethod
    def compute_total(
        subtotal: Decimal, discount: Decimal, tax: Decimal, shipping: Decimal
    ) -> Decimal:
        return subtotal - discount + tax + shipping

    # ------------------------------------------------------------------
    # Order number generation
    # ------------------------------------------------------------------

    @staticmethod
    def generate_order_number() -> str:
        """Generate a human-readable order number: ``ORD-YYYYMMDD-XXXXXX``."""
        now = timezone.now()
        suffix = secrets.token_hex(3).upper()
        return f"ORD-{now:%Y%m%d}-{suffix}"

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self.order_number:
            for _ in range(ORDER_NUMBER_MAX_RETRIES):
                candidate = self.generate_order_number()
                if not Order.objects.filter(order_number=candidate).exists():
                    self.order_number = candidate
                    break
            else:
                raise RuntimeError(
                    f"Failed to generate unique order_number after "
                    f"{ORDER_NUMBER_MAX_RETRIES} attempts"
                )
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.order_number} ({self.status})"


class OrderItem(BaseModel):
    """Line item of an order.

    ``product_name`` and ``unit_price`` are **snapshots** taken at purchase
    time; the catalog may change afterwards.  ``discount_amount`` is the
    discount applied to the whole line.
    """

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="items",
    )
    product_id = models.UUIDField()
    product_name = models.CharField(max_length=250)
    unit_price = models.DecimalField(**_MONEY)
    quantity = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1)],
    )
    discount_amount = models.DecimalField(default=Decimal("0.00"), **_MONEY)
    line_total = models.DecimalField(editable=False, **_MONEY)

    class Meta:
        db_table = "order_items"
        ordering = ["created_at", "id"]
        constraints = [
            models.CheckConstraint(
                check=models.Q(quantity__gte=1),
                name="order_items_quantity_positive",
            ),
            models.CheckConstraint(
                check=models.Q(discount_amount__gte=0),
                name="order_items_discount_non_negative",
            ),
        ]

    def clean(self) -> None:
        super().clean()
        if self.quantity is not None and self.quantity < 1:
            raise ValidationError({"quantity": "Quantity must be at least 1."})

    def compute_line_total(self) -> Decimal:
        return self.unit_price * self.quantity - self.discount_amount

    def save(self, *args: Any, **kwargs: Any) -> None:
        self.line_total = self.compute_line_total()
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.product_name} x{self.quantity} (${self.line_total})"


class OrderStatusHistory(BaseModel):
    """Append-only audit trail for order status transitions.

    ``old_status`` is ``None`` for the entry written at creation.
    ``changed_by`` is the acting identity ("system" for automated moves).
    """

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="status_history",
    )
    old_status = models.CharField(  # noqa: DJ01
        max_length=20,
        choices=OrderStatus.choices,
        null=True,
        blank=True,
    )
    new_status = models.CharField(max_length=20, choices=OrderStatus.choices)
    changed_by = models.CharField(max_length=150, blank=True, default="")
    remarks = models.TextField(blank=True, default="")

    class Meta:
        db_table = "order_status_history"
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(
                fields=["order", "-created_at"],
                name="osh_order_created_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.order} : {self.old_status} -> {self.new_status}"


# ---------------------------------------------------------------------------
# Item-level request shapes (cancellations, returns)
# ---------------------------------------------------------------------------


class OrderItemRequest(DomainEventMixin, VersionedModel):
    """Abstract header of a request that targets some units of an order.

    Concrete subclasses add ``order`` (FK) and ``status`` with their own
    choices.  Approval/rejection stamp who processed the request and when.
    """

    reason = models.CharField(max_length=50)
    is_partial = models.BooleanField(default=False)
    requested_by = models.CharField(max_length=150, blank=True, default="")
    requested_at = models.DateTimeField(default=timezone.now)
    processed_at = models.DateTimeField(null=True, blank=True, default=None)
    approved_by = models.CharField(max_length=150, blank=True, default="")
    approved_at = models.DateTimeField(null=True, blank=True, default=None)
    rejected_by = models.CharField(max_length=150, blank=True, default="")
    rejected_at = models.DateTimeField(null=True, blank=True, default=None)
    remarks = models.TextField(blank=True, default="")
    processing_remarks = models.TextField(blank=True, default="")
    total_refundable_amount = models.DecimalField(
        null=True, blank=True, default=None, **_MONEY
    )

    class Meta:
        abstract = True
        ordering = ["-requested_at"]


class OrderItemRequestLine(BaseModel):
    """Abstract line of an item-level request.

    Subclasses add the FK to their header and to ``orders.OrderItem``.
    """

    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    refundable_amount = models.DecimalField(default=Decimal("0.00"), **_MONEY)

    class Meta:
        abstract = True
        ordering = ["created_at", "id"]
