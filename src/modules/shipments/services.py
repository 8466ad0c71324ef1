"""Shipment service layer (Use Cases).

Business rules enforced:
- Items belong to the shipment's order; a closed (cancelled/returned)
  order takes no new shipments.
- ``quantity <= purchased - approved cancelled - already shipped`` in
  non-cancelled shipments; the order row is locked while this is checked.
- Tracking numbers are unique.
- Carrier progress follows the shipment transition table; SHIPPED stamps
  ``shipped_at`` and DELIVERED stamps ``delivered_at``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional
from uuid import UUID

import structlog
from django.db import transaction
from django.utils import timezone

from modules.core.exceptions import InvalidState, InvalidTransition, ValidationFailure
from modules.core.ledger import StatusLedger
from modules.core.transitions import Lifecycle, ensure_allowed
from modules.orders.exceptions import OrderNotFound
from modules.shipments.constants import ShipmentStatus
from modules.shipments.events import ShipmentCreated, ShipmentStatusChanged
from modules.shipments.exceptions import DuplicateTrackingNumber, ShipmentNotFound

if TYPE_CHECKING:
    from modules.orders.repositories.interfaces import IItemRequestRepository, IOrderRepository
    from modules.shipments.dtos import AddShipmentDTO
    from modules.shipments.models import Shipment
    from modules.shipments.repositories.interfaces import IShipmentRepository

logger = structlog.get_logger(__name__)


class ShipmentService:
    """Application service for Shipment use-cases."""

    def __init__(
        self,
        shipment_repository: IShipmentRepository,
        order_repository: IOrderRepository,
        cancellation_repository: IItemRequestRepository,
        ledger: Optional[StatusLedger] = None,
    ) -> None:
        self._shipments = shipment_repository
        self._orders = order_repository
        self._cancellations = cancellation_repository
        self._ledger = ledger or StatusLedger()

    @transaction.atomic
    def add(self, dto: AddShipmentDTO) -> Shipment:
        """Create a PENDING shipment for some units of an order.

        Raises:
            OrderNotFound: the order does not exist.
            InvalidState: the order is closed.
            DuplicateTrackingNumber: the tracking number is taken.
            ValidationFailure: foreign item or too many units.
        """
        log = logger.bind(order_id=str(dto.order_id), tracking_number=dto.tracking_number)
        order = self._orders.get_for_update(str(dto.order_id))
        if not order:
            raise OrderNotFound(f"Order {dto.order_id} not found.")
        if order.is_terminal:
            log.warning("shipment.order_closed", order_status=order.status)
            raise InvalidState(f"Order {order.id} is {order.status} and takes no shipments.")
        if self._shipments.get_by_tracking_number(dto.tracking_number):
            log.warning("shipment.duplicate_tracking_number")
            raise DuplicateTrackingNumber(
                f"Tracking number {dto.tracking_number} is already in use."
            )

        purchased = {item.id: item.quantity for item in order.items.all()}
        shipped = self._shipments.shipped_quantities(order.id)
        cancelled = self._cancellations.approved_quantities(order.id)
        for line in dto.items:
            if line.order_item_id not in purchased:
                log.warning("shipment.foreign_item", order_item_id=str(line.order_item_id))
                raise ValidationFailure(
                    f"Item {line.order_item_id} does not belong to order {order.id}."
                )
            left = (
                purchased[line.order_item_id]
                - cancelled.get(line.order_item_id, 0)
                - shipped.get(line.order_item_id, 0)
            )
            if line.quantity > left:
                log.warning(
                    "shipment.quantity_exceeded",
                    order_item_id=str(line.order_item_id),
                    requested=line.quantity,
                    remaining=left,
                )
                raise ValidationFailure(
                    f"Item {line.order_item_id}: {line.quantity} unit(s) requested, "
                    f"{left} left to ship."
                )

        shipment = self._shipments.create(
            {
                "order_id": order.id,
                "carrier": dto.carrier,
                "tracking_number": dto.tracking_number,
                "estimated_delivery_at": dto.estimated_delivery_at,
                "created_by": dto.created_by,
                "items": [
                    {"order_item_id": line.order_item_id, "quantity": line.quantity}
                    for line in dto.items
                ],
            }
        )
        self._ledger.record(
            Lifecycle.SHIPMENT,
            shipment.id,
            order.id,
            shipment.status,
            actor=dto.created_by,
        )
        shipment.add_domain_event(
            ShipmentCreated(
                aggregate_id=shipment.id,
                order_id=order.id,
                tracking_number=shipment.tracking_number,
            )
        )
        self._shipments.flush_events(shipment)
        log.info("shipment.created", shipment_id=str(shipment.id))
        return shipment

    @transaction.atomic
    def update_status(
        self,
        shipment_id: UUID,
        new_status: str,
        actor: str = "",
        remarks: str = "",
    ) -> Shipment:
        """Record carrier progress.

        Raises:
            ShipmentNotFound: the shipment does not exist.
            InvalidTransition: the shipment table rejects the move.
            ConcurrencyConflict: the shipment changed since it was read.
        """
        shipment = self.get(shipment_id)
        log = logger.bind(
            shipment_id=str(shipment_id),
            current_status=shipment.status,
            new_status=new_status,
        )
        try:
            ensure_allowed(Lifecycle.SHIPMENT, shipment.status, new_status)
        except InvalidTransition:
            log.warning("shipment.invalid_transition")
            raise

        now = timezone.now()
        old_status = shipment.status
        shipment.status = new_status
        fields = ["status"]
        if new_status == ShipmentStatus.SHIPPED:
            shipment.shipped_at = now
            fields.append("shipped_at")
        if new_status == ShipmentStatus.DELIVERED:
            shipment.delivered_at = now
            fields.append("delivered_at")

        shipment.add_domain_event(
            ShipmentStatusChanged(
                aggregate_id=shipment.id,
                order_id=shipment.order_id,
                old_status=old_status,
                new_status=new_status,
                actor=actor,
            )
        )
        self._shipments.save(shipment, fields)
        self._ledger.record(
            Lifecycle.SHIPMENT,
            shipment.id,
            shipment.order_id,
            new_status,
            old_status=old_status,
            actor=actor,
            remarks=remarks,
        )
        log.info("shipment.status_updated")
        return shipment

    def get(self, shipment_id: UUID) -> Shipment:
        shipment = self._shipments.get_by_id(str(shipment_id))
        if not shipment:
            raise ShipmentNotFound(f"Shipment {shipment_id} not found.")
        return shipment

    def get_by_tracking_number(self, tracking_number: str) -> Shipment:
        shipment = self._shipments.get_by_tracking_number(tracking_number)
        if not shipment:
            raise ShipmentNotFound(f"No shipment with tracking number {tracking_number}.")
        return shipment

    def list_for_order(self, order_id: UUID) -> List[Shipment]:
        return self._shipments.list_for_order(order_id)
