"""Order DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.  DTOs are
immutable (``frozen=True``).

- ``CreateOrderItemDTO``: input for a single order line item.
- ``CreateOrderDTO``: input for order creation (nested items + money).
- ``OrderItemOutputDTO``: output for a single line item.
- ``StatusHistoryDTO``: output for a status history record.
- ``OrderOutputDTO``: output with items and history.
- ``ItemRequestLineDTO`` / ``ItemRequestDTO`` / ``UpdateItemRequestDTO``:
  input shapes shared by cancellations and returns.
- ``ItemRequestLineOutputDTO`` / ``ItemRequestOutputDTO``: their outputs.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from modules.orders.constants import PAYMENT_METHOD_MAX_LENGTH

if TYPE_CHECKING:
    from modules.orders.models import Order, OrderStatusHistory


# ---------------------------------------------------------------------------
# Input DTOs
# ---------------------------------------------------------------------------


class CreateOrderItemDTO(BaseModel):
    """Immutable DTO for a single order item in a creation request.

    ``product_name`` and ``unit_price`` are the catalog snapshot supplied by
    the caller; the catalog itself lives outside this service.
    """

    model_config = ConfigDict(frozen=True)

    product_id: UUID
    product_name: str = Field(min_length=1, max_length=250)
    unit_price: Decimal = Field(ge=0, decimal_places=2)
    quantity: int
    discount_amount: Decimal = Field(default=Decimal("0.00"), ge=0, decimal_places=2)

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Quantity must be at least 1.")
        return v

    @model_validator(mode="after")
    def discount_within_line(self):
        if self.discount_amount > self.unit_price * self.quantity:
            raise ValueError("Line discount cannot exceed the line amount.")
        return self


class CreateOrderDTO(BaseModel):
    """Immutable DTO for order creation requests.

    Validates:
    - ``items`` must contain at least one item.
    - Order-level money components are non-negative.
    """

    model_config = ConfigDict(frozen=True)

    user_id: UUID
    items: List[CreateOrderItemDTO]
    payment_method: str = Field(min_length=1, max_length=PAYMENT_METHOD_MAX_LENGTH)
    shipping_address: str = Field(min_length=1)
    billing_address: str = Field(min_length=1)
    discount_amount: Decimal = Field(default=Decimal("0.00"), ge=0, decimal_places=2)
    tax_amount: Decimal = Field(default=Decimal("0.00"), ge=0, decimal_places=2)
    shipping_charges: Decimal = Field(default=Decimal("0.00"), ge=0, decimal_places=2)
    cancellation_policy_id: Optional[UUID] = None
    return_policy_id: Optional[UUID] = None
    notes: Optional[str] = ""
    created_by: str = ""

    @field_validator("items")
    @classmethod
    def items_must_not_be_empty(
        cls, v: List[CreateOrderItemDTO]
    ) -> List[CreateOrderItemDTO]:
        if not v:
            raise ValueError("Order must have at least one item.")
        return v


# ---------------------------------------------------------------------------
# Output DTOs
# ---------------------------------------------------------------------------


class OrderItemOutputDTO(BaseModel):
    """Immutable DTO for a single order line."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    product_id: UUID
    product_name: str
    quantity: int
    unit_price: Decimal
    discount_amount: Decimal
    line_total: Decimal


class StatusHistoryDTO(BaseModel):
    """Immutable DTO for an order status history record."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    old_status: Optional[str]
    new_status: str
    changed_by: str
    remarks: str
    created_at: datetime

    @classmethod
    def from_entity(cls, history: OrderStatusHistory) -> StatusHistoryDTO:
        return cls(
            id=history.id,
            old_status=history.old_status,
            new_status=history.new_status,
            changed_by=history.changed_by,
            remarks=history.remarks,
            created_at=history.created_at,
        )


class OrderOutputDTO(BaseModel):
    """Immutable DTO for an order with its lines and history."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    order_number: str
    user_id: UUID
    status: str
    subtotal_amount: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    shipping_charges: Decimal
    total_amount: Decimal
    payment_method: str
    shipping_address: str
    billing_address: str
    version: int
    created_at: datetime
    updated_at: datetime
    items: List[OrderItemOutputDTO]
    history: List[StatusHistoryDTO]

    @classmethod
    def from_entity(cls, order: Order) -> OrderOutputDTO:
        """Build an output DTO from an Order model instance.

        Assumes ``items`` and ``status_history`` are prefetched.
        """
        items = [
            OrderItemOutputDTO(
                id=item.id,
                product_id=item.product_id,
                product_name=item.product_name,
                quantity=item.quantity,
                unit_price=item.unit_price,
                discount_amount=item.discount_amount,
                line_total=item.line_total,
            )
            for item in order.items.all()
        ]
        history = [StatusHistoryDTO.from_entity(h) for h in order.status_history.all()]
        return cls(
            id=order.id,
            order_number=order.order_number,
            user_id=order.user_id,
            status=order.status,
            subtotal_amount=order.subtotal_amount,
            discount_amount=order.discount_amount,
            tax_amount=order.tax_amount,
            shipping_charges=order.shipping_charges,
            total_amount=order.total_amount,
            payment_method=order.payment_method,
            shipping_address=order.shipping_address,
            billing_address=order.billing_address,
            version=order.version,
            created_at=order.created_at,
            updated_at=order.updated_at,
            items=items,
            history=history,
        )


# ---------------------------------------------------------------------------
# Item-level requests (cancellations, returns)
# ---------------------------------------------------------------------------


class ItemRequestLineDTO(BaseModel):
    """One order item and the number of its units a request targets."""

    model_config = ConfigDict(frozen=True)

    order_item_id: UUID
    quantity: int

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Quantity must be at least 1.")
        return v


def _ensure_unique_items(items: List[Any]) -> None:
    if not items:
        raise ValueError("At least one item is required.")
    ids = [item.order_item_id for item in items]
    if len(ids) != len(set(ids)):
        raise ValueError("Duplicate order items are not allowed in the same request.")


class ItemRequestDTO(BaseModel):
    """Base input for opening a cancellation or a return."""

    model_config = ConfigDict(frozen=True)

    order_id: UUID
    reason: str = Field(min_length=1, max_length=50)
    items: List[ItemRequestLineDTO]
    remarks: str = ""
    requested_by: str = ""

    @model_validator(mode="after")
    def items_must_be_unique(self):
        _ensure_unique_items(self.items)
        return self


class UpdateItemRequestDTO(BaseModel):
    """Base input for editing a pending request.

    ``items`` is the complete desired item set.
    """

    model_config = ConfigDict(frozen=True)

    reason: str = Field(min_length=1, max_length=50)
    items: List[ItemRequestLineDTO]
    remarks: str = ""

    @model_validator(mode="after")
    def items_must_be_unique(self):
        _ensure_unique_items(self.items)
        return self


class ItemRequestLineOutputDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID
    order_item_id: UUID
    quantity: int
    refundable_amount: Decimal
    remarks: str = ""


class ItemRequestOutputDTO(BaseModel):
    """Output shared by cancellations and returns."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    order_id: UUID
    status: str
    reason: str
    is_partial: bool
    requested_by: str
    requested_at: datetime
    processed_at: Optional[datetime]
    approved_by: str
    approved_at: Optional[datetime]
    rejected_by: str
    rejected_at: Optional[datetime]
    remarks: str
    processing_remarks: str
    total_refundable_amount: Optional[Decimal]
    version: int
    items: List[ItemRequestLineOutputDTO]

    @classmethod
    def from_entity(cls, request: Any) -> ItemRequestOutputDTO:
        items = [
            ItemRequestLineOutputDTO(
                id=item.id,
                order_item_id=item.order_item_id,
                quantity=item.quantity,
                refundable_amount=item.refundable_amount,
                remarks=getattr(item, "remarks", ""),
            )
            for item in request.items.all()
        ]
        return cls(
            id=request.id,
            order_id=request.order_id,
            status=request.status,
            reason=request.reason,
            is_partial=request.is_partial,
            requested_by=request.requested_by,
            requested_at=request.requested_at,
            processed_at=request.processed_at,
            approved_by=request.approved_by,
            approved_at=request.approved_at,
            rejected_by=request.rejected_by,
            rejected_at=request.rejected_at,
            remarks=request.remarks,
            processing_remarks=request.processing_remarks,
            total_refundable_amount=request.total_refundable_amount,
            version=request.version,
            items=items,
        )
