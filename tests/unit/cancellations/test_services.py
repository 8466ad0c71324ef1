"""Unit tests for CancellationService.

Covers:
- Requests on cancellable orders; rejected once DELIVERED.
- The cancellation policy window, measured from order placement.
- Reason, item ownership, busy-item and quantity checks.
- Refundable amount per line (partial and full, with order-level money).
- Update and withdraw of PENDING requests only.
- Approval creates the refund, records the ledger and closes an emptied
  order; rejection is terminal.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import uuid4

import pytest
from freezegun import freeze_time

from modules.cancellations.constants import CancellationStatus
from modules.cancellations.dtos import (
    CancellationItemDTO,
    RequestCancellationDTO,
    UpdateCancellationDTO,
)
from modules.cancellations.exceptions import CancellationNotFound, CancellationWindowExpired
from modules.core.exceptions import AmountMismatch, InvalidState, ValidationFailure
from modules.core.ledger import StatusLedger
from modules.core.models import OutboxEvent
from modules.core.transitions import Lifecycle
from modules.masterdata.constants import PolicyType
from modules.masterdata.models import Policy
from modules.orders.constants import OrderStatus
from modules.orders.exceptions import OrderNotFound
from modules.refunds.constants import RefundStatus

pytestmark = pytest.mark.unit

REASON = "CHANGED_MIND"


def _request(order, *lines, reason=REASON, **extra):
    return RequestCancellationDTO(
        order_id=order.id,
        reason=reason,
        items=[CancellationItemDTO(order_item_id=item.id, quantity=qty) for item, qty in lines],
        requested_by="customer-1",
        **extra,
    )


class TestRequest:
    def test_partial_request(self, cancellation_service, make_order, items_of):
        order = make_order()
        mug, _ = items_of(order)

        cancellation = cancellation_service.request(_request(order, (mug, 2)))

        assert cancellation.status == CancellationStatus.PENDING
        assert cancellation.is_partial is True
        assert cancellation.total_refundable_amount == Decimal("18.00")
        line = cancellation.items.get()
        assert line.quantity == 2
        assert line.refundable_amount == Decimal("18.00")

        entries = StatusLedger().history(Lifecycle.CANCELLATION, cancellation.id)
        assert [e.new_status for e in entries] == ["PENDING"]
        assert OutboxEvent.objects.filter(
            aggregate_id=str(cancellation.id), event_type="CancellationRequested"
        ).exists()

    def test_order_level_money_is_prorated(self, cancellation_service, make_order, items_of):
        order = make_order(
            discount_amount=Decimal("5.20"),
            tax_amount=Decimal("10.40"),
            shipping_charges=Decimal("8.00"),
        )
        mug, _ = items_of(order)

        cancellation = cancellation_service.request(_request(order, (mug, 3)))

        assert cancellation.total_refundable_amount == Decimal("29.70")

    def test_full_request_includes_shipping(self, cancellation_service, make_order, items_of):
        order = make_order(
            discount_amount=Decimal("5.20"),
            tax_amount=Decimal("10.40"),
            shipping_charges=Decimal("8.00"),
        )
        mug, teapot = items_of(order)

        cancellation = cancellation_service.request(_request(order, (mug, 3), (teapot, 1)))

        assert cancellation.is_partial is False
        amounts = {line.order_item_id: line.refundable_amount for line in cancellation.items.all()}
        assert amounts == {mug.id: Decimal("33.85"), teapot.id: Decimal("31.35")}
        assert cancellation.total_refundable_amount == order.total_amount

    def test_allowed_while_shipped(self, cancellation_service, make_order, advance, items_of):
        order = advance(
            make_order(), OrderStatus.CONFIRMED, OrderStatus.PACKED, OrderStatus.SHIPPED
        )
        mug, _ = items_of(order)
        assert cancellation_service.request(_request(order, (mug, 1))).status == "PENDING"

    def test_rejected_once_delivered(self, cancellation_service, make_order, advance, items_of):
        order = advance(
            make_order(),
            OrderStatus.CONFIRMED,
            OrderStatus.PACKED,
            OrderStatus.SHIPPED,
            OrderStatus.DELIVERED,
        )
        mug, _ = items_of(order)
        with pytest.raises(InvalidState, match="can no longer be cancelled"):
            cancellation_service.request(_request(order, (mug, 1)))

    def test_unknown_order(self, cancellation_service, make_order, items_of):
        mug, _ = items_of(make_order())
        dto = RequestCancellationDTO(
            order_id=uuid4(),
            reason=REASON,
            items=[CancellationItemDTO(order_item_id=mug.id, quantity=1)],
        )
        with pytest.raises(OrderNotFound):
            cancellation_service.request(dto)

    @pytest.mark.parametrize("reason", ["NO_SUCH_REASON", "RETIRED", "DAMAGED"])
    def test_reason_must_be_active_cancellation_reason(
        self, reason, cancellation_service, make_order, items_of
    ):
        order = make_order()
        mug, _ = items_of(order)
        with pytest.raises(ValidationFailure, match="not an active"):
            cancellation_service.request(_request(order, (mug, 1), reason=reason))

    def test_item_from_another_order(self, cancellation_service, make_order, items_of):
        order = make_order()
        foreign, _ = items_of(make_order())
        with pytest.raises(ValidationFailure, match="does not belong"):
            cancellation_service.request(_request(order, (foreign, 1)))

    def test_quantity_above_purchased(self, cancellation_service, make_order, items_of):
        order = make_order()
        mug, _ = items_of(order)
        with pytest.raises(ValidationFailure, match="only 3 unit"):
            cancellation_service.request(_request(order, (mug, 4)))

    def test_item_in_pending_request_is_busy(self, cancellation_service, make_order, items_of):
        order = make_order()
        mug, teapot = items_of(order)
        cancellation_service.request(_request(order, (mug, 1)))

        with pytest.raises(ValidationFailure, match="already has an active request"):
            cancellation_service.request(_request(order, (mug, 1)))
        assert cancellation_service.request(_request(order, (teapot, 1)))

    def test_withdrawn_request_frees_item(self, cancellation_service, make_order, items_of):
        order = make_order()
        mug, _ = items_of(order)
        first = cancellation_service.request(_request(order, (mug, 1)))
        cancellation_service.delete(first.id)

        second = cancellation_service.request(_request(order, (mug, 2)))
        assert second.status == CancellationStatus.PENDING

    def test_approved_units_are_consumed(self, cancellation_service, make_order, items_of):
        order = make_order()
        mug, _ = items_of(order)
        first = cancellation_service.request(_request(order, (mug, 2)))
        cancellation_service.approve(first.id, approver="admin")

        with pytest.raises(ValidationFailure, match="only 1 unit"):
            cancellation_service.request(_request(order, (mug, 2)))
        assert cancellation_service.request(_request(order, (mug, 1)))


class TestCancellationWindow:
    @pytest.fixture()
    def policy(self):
        return Policy.objects.create(
            name="48 hours", policy_type=PolicyType.CANCELLATION, window_days=2
        )

    def test_within_window(self, cancellation_service, make_order, items_of, policy):
        with freeze_time("2026-03-10 09:00:00"):
            order = make_order(cancellation_policy_id=policy.id)
        mug, _ = items_of(order)

        with freeze_time("2026-03-12 08:59:00"):
            assert cancellation_service.request(_request(order, (mug, 1))).status == "PENDING"

    def test_window_expired(self, cancellation_service, make_order, items_of, policy):
        with freeze_time("2026-03-10 09:00:00"):
            order = make_order(cancellation_policy_id=policy.id)
        mug, _ = items_of(order)

        with freeze_time("2026-03-12 09:01:00"):
            with pytest.raises(CancellationWindowExpired, match="2 day"):
                cancellation_service.request(_request(order, (mug, 1)))
        assert cancellation_service.list_for_order(order.id) == []

    def test_order_without_policy(self, cancellation_service, make_order, items_of):
        with freeze_time("2020-01-01"):
            order = make_order()
        mug, _ = items_of(order)

        assert cancellation_service.request(_request(order, (mug, 1)))


class TestUpdate:
    def test_replaces_lines_and_recalculates(self, cancellation_service, make_order, items_of):
        order = make_order()
        mug, teapot = items_of(order)
        cancellation = cancellation_service.request(_request(order, (mug, 1)))

        updated = cancellation_service.update(
            cancellation.id,
            UpdateCancellationDTO(
                reason=REASON,
                items=[CancellationItemDTO(order_item_id=teapot.id, quantity=1)],
                remarks="teapot instead",
            ),
        )

        assert [line.order_item_id for line in updated.items.all()] == [teapot.id]
        assert updated.total_refundable_amount == Decimal("25.00")
        assert updated.remarks == "teapot instead"
        assert updated.version == 1

    def test_only_pending(self, cancellation_service, make_order, items_of):
        order = make_order()
        mug, _ = items_of(order)
        cancellation = cancellation_service.request(_request(order, (mug, 1)))
        cancellation_service.reject(cancellation.id, rejecter="admin")

        with pytest.raises(InvalidState, match="cannot be updated"):
            cancellation_service.update(
                cancellation.id,
                UpdateCancellationDTO(
                    reason=REASON,
                    items=[CancellationItemDTO(order_item_id=mug.id, quantity=2)],
                ),
            )


class TestApprove:
    def test_partial_approval_creates_refund(self, cancellation_service, refund_service, make_order, items_of):
        order = make_order()
        mug, _ = items_of(order)
        cancellation = cancellation_service.request(_request(order, (mug, 2)))

        approved = cancellation_service.approve(
            cancellation.id, approver="admin", refundable_amount=Decimal("18.00")
        )

        assert approved.status == CancellationStatus.APPROVED
        assert approved.approved_by == "admin"
        assert approved.approved_at is not None
        refund = refund_service.get_by_cancellation(cancellation.id)
        assert refund.status == RefundStatus.PENDING
        assert refund.total_amount == Decimal("18.00")
        assert refund.payment_method == "CARD"
        assert [(i.order_item_id, i.quantity) for i in refund.items.all()] == [(mug.id, 2)]
        assert refund_service.get(refund.id).order_id == order.id

        order.refresh_from_db()
        assert order.status == OrderStatus.PENDING

    def test_full_approval_cancels_order(self, cancellation_service, order_service, make_order, items_of):
        order = make_order()
        mug, teapot = items_of(order)
        cancellation = cancellation_service.request(_request(order, (mug, 3), (teapot, 1)))

        cancellation_service.approve(cancellation.id, approver="admin")

        assert order_service.get_order(str(order.id)).status == OrderStatus.CANCELLED
        entries = StatusLedger().for_order(order.id)
        assert {e.lifecycle for e in entries} == {
            Lifecycle.ORDER,
            Lifecycle.CANCELLATION,
            Lifecycle.REFUND,
        }

    def test_amount_mismatch(self, cancellation_service, make_order, items_of):
        order = make_order()
        mug, _ = items_of(order)
        cancellation = cancellation_service.request(_request(order, (mug, 2)))

        with pytest.raises(AmountMismatch, match="does not match"):
            cancellation_service.approve(
                cancellation.id, approver="admin", refundable_amount=Decimal("20.00")
            )
        assert cancellation_service.get(cancellation.id).status == CancellationStatus.PENDING

    def test_cannot_approve_twice(self, cancellation_service, make_order, items_of):
        order = make_order()
        mug, _ = items_of(order)
        cancellation = cancellation_service.request(_request(order, (mug, 1)))
        cancellation_service.approve(cancellation.id, approver="admin")

        with pytest.raises(InvalidState, match="cannot be approved"):
            cancellation_service.approve(cancellation.id, approver="admin")

    def test_order_delivered_meanwhile(self, cancellation_service, make_order, advance, items_of):
        order = make_order()
        mug, _ = items_of(order)
        cancellation = cancellation_service.request(_request(order, (mug, 1)))
        advance(
            order,
            OrderStatus.CONFIRMED,
            OrderStatus.PACKED,
            OrderStatus.SHIPPED,
            OrderStatus.DELIVERED,
        )

        with pytest.raises(InvalidState):
            cancellation_service.approve(cancellation.id, approver="admin")


class TestRejectAndDelete:
    def test_reject(self, cancellation_service, refund_service, make_order, items_of):
        order = make_order()
        mug, _ = items_of(order)
        cancellation = cancellation_service.request(_request(order, (mug, 1)))

        rejected = cancellation_service.reject(cancellation.id, rejecter="admin", remarks="too late")

        assert rejected.status == CancellationStatus.REJECTED
        assert rejected.rejected_by == "admin"
        assert rejected.processing_remarks == "too late"
        assert refund_service.get_by_cancellation(cancellation.id) is None
        with pytest.raises(InvalidState):
            cancellation_service.reject(cancellation.id, rejecter="admin")

    def test_delete_soft_deletes(self, cancellation_service, make_order, items_of):
        order = make_order()
        mug, _ = items_of(order)
        cancellation = cancellation_service.request(_request(order, (mug, 1)))

        cancellation_service.delete(cancellation.id)

        with pytest.raises(CancellationNotFound):
            cancellation_service.get(cancellation.id)
        assert cancellation_service.list_for_order(order.id) == []
        assert OutboxEvent.objects.filter(
            aggregate_id=str(cancellation.id), event_type="CancellationWithdrawn"
        ).exists()

    def test_delete_approved_rejected(self, cancellation_service, make_order, items_of):
        order = make_order()
        mug, _ = items_of(order)
        cancellation = cancellation_service.request(_request(order, (mug, 1)))
        cancellation_service.approve(cancellation.id, approver="admin")

        with pytest.raises(InvalidState, match="cannot be deleted"):
            cancellation_service.delete(cancellation.id)
