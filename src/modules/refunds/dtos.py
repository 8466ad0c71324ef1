"""Refund DTOs for the Service Layer (Pydantic v2, immutable).

- ``RefundItemDTO`` / ``CreateRefundDTO``: input used by request approval.
- ``UpdateRefundStatusDTO``: input for a status move.
- ``RefundItemOutputDTO`` / ``RefundOutputDTO``: outputs.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from modules.refunds.constants import RefundStatus

if TYPE_CHECKING:
    from modules.refunds.models import Refund


class RefundItemDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    order_item_id: UUID
    quantity: int
    amount: Decimal = Field(ge=0)

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Quantity must be at least 1.")
        return v


class CreateRefundDTO(BaseModel):
    """Input for creating a PENDING refund.

    Exactly one of ``cancellation_id`` / ``return_id`` names the approved
    request that authorizes the refund.
    """

    model_config = ConfigDict(frozen=True)

    order_id: UUID
    cancellation_id: Optional[UUID] = None
    return_id: Optional[UUID] = None
    base_amount: Decimal = Field(ge=0)
    discount_amount: Decimal = Field(default=Decimal("0.00"), ge=0)
    tax_amount: Decimal = Field(default=Decimal("0.00"), ge=0)
    shipping_amount: Decimal = Field(default=Decimal("0.00"), ge=0)
    payment_method: str = Field(min_length=1, max_length=50)
    items: List[RefundItemDTO]
    requested_by: str = ""

    @model_validator(mode="after")
    def exactly_one_source(self):
        if (self.cancellation_id is None) == (self.return_id is None):
            raise ValueError("A refund needs exactly one of cancellation_id or return_id.")
        if not self.items:
            raise ValueError("A refund needs at least one item.")
        return self

    @property
    def total_amount(self) -> Decimal:
        return self.base_amount - self.discount_amount + self.tax_amount + self.shipping_amount


class UpdateRefundStatusDTO(BaseModel):
    """Requested refund status move.

    ``transaction_reference`` and ``payment_method`` are written only when
    the move itself is allowed.
    """

    model_config = ConfigDict(frozen=True)

    status: RefundStatus
    transaction_reference: Optional[str] = Field(default=None, max_length=100)
    payment_method: Optional[str] = Field(default=None, max_length=50)
    actor: str = ""
    remarks: str = ""


class RefundItemOutputDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID
    order_item_id: UUID
    quantity: int
    amount: Decimal


class RefundOutputDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID
    order_id: UUID
    cancellation_id: Optional[UUID]
    return_id: Optional[UUID]
    status: str
    base_amount: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    shipping_amount: Decimal
    total_amount: Decimal
    payment_method: str
    transaction_reference: str
    failure_reason: str
    processing_started_at: Optional[datetime]
    completed_at: Optional[datetime]
    version: int
    created_at: datetime
    items: List[RefundItemOutputDTO]

    @classmethod
    def from_entity(cls, refund: Refund) -> RefundOutputDTO:
        return cls(
            id=refund.id,
            order_id=refund.order_id,
            cancellation_id=refund.cancellation_id,
            return_id=refund.return_request_id,
            status=refund.status,
            base_amount=refund.base_amount,
            discount_amount=refund.discount_amount,
            tax_amount=refund.tax_amount,
            shipping_amount=refund.shipping_amount,
            total_amount=refund.total_amount,
            payment_method=refund.payment_method,
            transaction_reference=refund.transaction_reference,
            failure_reason=refund.failure_reason,
            processing_started_at=refund.processing_started_at,
            completed_at=refund.completed_at,
            version=refund.version,
            created_at=refund.created_at,
            items=[
                RefundItemOutputDTO(
                    id=item.id,
                    order_item_id=item.order_item_id,
                    quantity=item.quantity,
                    amount=item.amount,
                )
                for item in refund.items.all()
            ],
        )
