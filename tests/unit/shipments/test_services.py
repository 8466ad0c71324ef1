"""Unit tests for ShipmentService.

Covers:
- Shipments for open orders only, with unique tracking numbers.
- Units shipped never exceed units purchased less approved cancellations
  (cancelled shipments free their units).
- Carrier progress follows the shipment table and stamps timestamps.
"""

from __future__ import annotations

from uuid import uuid4

import pytest
from freezegun import freeze_time

from modules.cancellations.dtos import CancellationItemDTO, RequestCancellationDTO
from modules.core.exceptions import InvalidState, InvalidTransition, ValidationFailure
from modules.core.ledger import StatusLedger
from modules.core.transitions import Lifecycle
from modules.orders.constants import OrderStatus
from modules.orders.exceptions import OrderNotFound
from modules.shipments.constants import ShipmentStatus
from modules.shipments.dtos import AddShipmentDTO, ShipmentItemDTO
from modules.shipments.exceptions import DuplicateTrackingNumber, ShipmentNotFound

pytestmark = pytest.mark.unit


def _shipment(order, *lines, tracking_number=None):
    return AddShipmentDTO(
        order_id=order.id,
        carrier="UPS",
        tracking_number=tracking_number or f"1Z{uuid4().hex[:10].upper()}",
        items=[ShipmentItemDTO(order_item_id=item.id, quantity=qty) for item, qty in lines],
        created_by="warehouse",
    )


class TestAdd:
    def test_creates_pending_shipment(self, shipment_service, make_order, items_of):
        order = make_order()
        mug, teapot = items_of(order)

        shipment = shipment_service.add(_shipment(order, (mug, 2), (teapot, 1), tracking_number="1ZTEST"))

        assert shipment.status == ShipmentStatus.PENDING
        assert shipment.items.count() == 2
        assert shipment_service.get_by_tracking_number("1ZTEST").id == shipment.id
        entries = StatusLedger().history(Lifecycle.SHIPMENT, shipment.id)
        assert [e.new_status for e in entries] == ["PENDING"]

    def test_split_shipments_up_to_purchased(self, shipment_service, make_order, items_of):
        order = make_order()
        mug, _ = items_of(order)
        shipment_service.add(_shipment(order, (mug, 2)))

        with pytest.raises(ValidationFailure, match="1 left to ship"):
            shipment_service.add(_shipment(order, (mug, 2)))
        assert shipment_service.add(_shipment(order, (mug, 1)))
        assert len(shipment_service.list_for_order(order.id)) == 2

    def test_cancelled_shipment_frees_units(self, shipment_service, make_order, items_of):
        order = make_order()
        mug, _ = items_of(order)
        first = shipment_service.add(_shipment(order, (mug, 3)))
        shipment_service.update_status(first.id, ShipmentStatus.CANCELLED)

        assert shipment_service.add(_shipment(order, (mug, 3)))

    def test_cancelled_units_are_not_shipped(
        self, shipment_service, cancellation_service, make_order, items_of
    ):
        order = make_order()
        mug, _ = items_of(order)
        cancellation = cancellation_service.request(
            RequestCancellationDTO(
                order_id=order.id,
                reason="CHANGED_MIND",
                items=[CancellationItemDTO(order_item_id=mug.id, quantity=3)],
            )
        )
        cancellation_service.approve(cancellation.id, approver="admin")

        with pytest.raises(ValidationFailure, match="0 left to ship"):
            shipment_service.add(_shipment(order, (mug, 3)))
        assert shipment_service.list_for_order(order.id) == []

    def test_partly_cancelled_item_ships_the_rest(
        self, shipment_service, cancellation_service, make_order, items_of
    ):
        order = make_order()
        mug, _ = items_of(order)
        cancellation = cancellation_service.request(
            RequestCancellationDTO(
                order_id=order.id,
                reason="CHANGED_MIND",
                items=[CancellationItemDTO(order_item_id=mug.id, quantity=2)],
            )
        )
        cancellation_service.approve(cancellation.id, approver="admin")

        with pytest.raises(ValidationFailure, match="1 left to ship"):
            shipment_service.add(_shipment(order, (mug, 2)))
        assert shipment_service.add(_shipment(order, (mug, 1)))

    def test_duplicate_tracking_number(self, shipment_service, make_order, items_of):
        order = make_order()
        mug, teapot = items_of(order)
        shipment_service.add(_shipment(order, (mug, 1), tracking_number="DUP-1"))

        with pytest.raises(DuplicateTrackingNumber):
            shipment_service.add(_shipment(order, (teapot, 1), tracking_number="DUP-1"))

    def test_foreign_item(self, shipment_service, make_order, items_of):
        order = make_order()
        foreign, _ = items_of(make_order())
        with pytest.raises(ValidationFailure, match="does not belong"):
            shipment_service.add(_shipment(order, (foreign, 1)))

    def test_closed_order(self, shipment_service, make_order, advance, items_of):
        order = advance(make_order(), OrderStatus.CANCELLED)
        mug, _ = items_of(order)
        with pytest.raises(InvalidState, match="takes no shipments"):
            shipment_service.add(_shipment(order, (mug, 1)))

    def test_unknown_order(self, shipment_service, make_order, items_of):
        mug, _ = items_of(make_order())
        dto = AddShipmentDTO(
            order_id=uuid4(),
            carrier="UPS",
            tracking_number="X",
            items=[ShipmentItemDTO(order_item_id=mug.id, quantity=1)],
        )
        with pytest.raises(OrderNotFound):
            shipment_service.add(dto)


class TestUpdateStatus:
    def test_carrier_progress(self, shipment_service, make_order, items_of):
        with freeze_time("2026-04-01 07:00:00") as frozen:
            order = make_order()
            mug, _ = items_of(order)
            shipment = shipment_service.add(_shipment(order, (mug, 3)))

            frozen.move_to("2026-04-01 08:00:00")
            shipment = shipment_service.update_status(shipment.id, ShipmentStatus.SHIPPED, actor="ups")
            frozen.move_to("2026-04-02 09:00:00")
            shipment = shipment_service.update_status(shipment.id, ShipmentStatus.IN_TRANSIT)
            frozen.move_to("2026-04-03 08:00:00")
            shipment = shipment_service.update_status(shipment.id, ShipmentStatus.OUT_FOR_DELIVERY)
            frozen.move_to("2026-04-03 17:00:00")
            shipment = shipment_service.update_status(shipment.id, ShipmentStatus.DELIVERED)

        assert shipment.version == 4
        assert shipment.shipped_at.isoformat().startswith("2026-04-01T08:00:00")
        assert shipment.delivered_at.isoformat().startswith("2026-04-03T17:00:00")
        statuses = [e.new_status for e in StatusLedger().history(Lifecycle.SHIPMENT, shipment.id)]
        assert statuses == ["PENDING", "SHIPPED", "IN_TRANSIT", "OUT_FOR_DELIVERY", "DELIVERED"]

    def test_cannot_skip_ahead(self, shipment_service, make_order, items_of):
        order = make_order()
        mug, _ = items_of(order)
        shipment = shipment_service.add(_shipment(order, (mug, 1)))

        with pytest.raises(InvalidTransition):
            shipment_service.update_status(shipment.id, ShipmentStatus.DELIVERED)

    def test_unknown_shipment(self, shipment_service):
        with pytest.raises(ShipmentNotFound):
            shipment_service.update_status(uuid4(), ShipmentStatus.SHIPPED)
