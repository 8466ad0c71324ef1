"""Shipment DTOs (Pydantic v2, immutable)."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

if TYPE_CHECKING:
    from modules.shipments.models import Shipment


class ShipmentItemDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    order_item_id: UUID
    quantity: int

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Quantity must be at least 1.")
        return v


class AddShipmentDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    order_id: UUID
    carrier: str = Field(min_length=1, max_length=100)
    tracking_number: str = Field(min_length=1, max_length=100)
    estimated_delivery_at: Optional[datetime] = None
    items: List[ShipmentItemDTO]
    created_by: str = ""

    @model_validator(mode="after")
    def items_must_be_unique(self):
        if not self.items:
            raise ValueError("A shipment needs at least one item.")
        ids = [item.order_item_id for item in self.items]
        if len(ids) != len(set(ids)):
            raise ValueError("Duplicate order items are not allowed in the same shipment.")
        return self


class ShipmentItemOutputDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID
    order_item_id: UUID
    quantity: int


class ShipmentOutputDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID
    order_id: UUID
    carrier: str
    tracking_number: str
    status: str
    estimated_delivery_at: Optional[datetime]
    shipped_at: Optional[datetime]
    delivered_at: Optional[datetime]
    version: int
    created_at: datetime
    items: List[ShipmentItemOutputDTO]

    @classmethod
    def from_entity(cls, shipment: Shipment) -> ShipmentOutputDTO:
        return cls(
            id=shipment.id,
            order_id=shipment.order_id,
            carrier=shipment.carrier,
            tracking_number=shipment.tracking_number,
            status=shipment.status,
            estimated_delivery_at=shipment.estimated_delivery_at,
            shipped_at=shipment.shipped_at,
            delivered_at=shipment.delivered_at,
            version=shipment.version,
            created_at=shipment.created_at,
            items=[
                ShipmentItemOutputDTO(
                    id=item.id, order_item_id=item.order_item_id, quantity=item.quantity
                )
                for item in shipment.items.all()
            ],
        )
