"""Read projection of an order with every sub-workflow.

Per item it reports purchased, cancelled (approved), returned (approved)
and remaining units.  Withdrawn (soft-deleted) requests are left out.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Dict, List
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from modules.cancellations.constants import CancellationStatus
from modules.cancellations.dtos import CancellationOutputDTO
from modules.orders.dtos import StatusHistoryDTO
from modules.refunds.dtos import RefundOutputDTO
from modules.returns.constants import ReturnStatus
from modules.returns.dtos import ReturnOutputDTO
from modules.shipments.dtos import ShipmentOutputDTO

if TYPE_CHECKING:
    from modules.orders.models import Order


class OrderItemDetailDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID
    product_id: UUID
    product_name: str
    unit_price: Decimal
    quantity: int
    discount_amount: Decimal
    line_total: Decimal
    cancelled_quantity: int
    returned_quantity: int
    remaining_quantity: int


class OrderDetailsDTO(BaseModel):
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
    items: List[OrderItemDetailDTO]
    history: List[StatusHistoryDTO]
    cancellations: List[CancellationOutputDTO]
    returns: List[ReturnOutputDTO]
    refunds: List[RefundOutputDTO]
    shipments: List[ShipmentOutputDTO]

    @classmethod
    def from_entity(cls, order: Order) -> OrderDetailsDTO:
        """Assumes the relations listed by the repository are prefetched."""
        cancellations = [c for c in order.cancellations.all() if not c.is_deleted]
        returns = [r for r in order.returns.all() if not r.is_deleted]

        cancelled = _approved_units(cancellations, CancellationStatus.APPROVED)
        returned = _approved_units(returns, ReturnStatus.APPROVED)

        items = [
            OrderItemDetailDTO(
                id=item.id,
                product_id=item.product_id,
                product_name=item.product_name,
                unit_price=item.unit_price,
                quantity=item.quantity,
                discount_amount=item.discount_amount,
                line_total=item.line_total,
                cancelled_quantity=cancelled[item.id],
                returned_quantity=returned[item.id],
                remaining_quantity=item.quantity - cancelled[item.id] - returned[item.id],
            )
            for item in order.items.all()
        ]
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
            history=[StatusHistoryDTO.from_entity(h) for h in order.status_history.all()],
            cancellations=[CancellationOutputDTO.from_entity(c) for c in cancellations],
            returns=[ReturnOutputDTO.from_entity(r) for r in returns],
            refunds=[
                RefundOutputDTO.from_entity(r) for r in order.refunds.all() if not r.is_deleted
            ],
            shipments=[
                ShipmentOutputDTO.from_entity(s) for s in order.shipments.all() if not s.is_deleted
            ],
        )


def _approved_units(requests: List, approved_status: str) -> Dict[UUID, int]:
    units: Dict[UUID, int] = defaultdict(int)
    for request in requests:
        if request.status != approved_status:
            continue
        for line in request.items.all():
            units[line.order_item_id] += line.quantity
    return units
