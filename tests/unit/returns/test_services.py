"""Unit tests for ReturnService.

Covers:
- Returns require a DELIVERED order and an active return reason.
- The return policy window, measured from delivery.
- Approved cancellations and returns consume the same purchased units.
- An item busy in a pending cancellation cannot be returned.
- Line remarks are stored; approval creates the refund and closes an
  emptied order as RETURNED.
"""

from __future__ import annotations

from decimal import Decimal

import pytest
from freezegun import freeze_time

from modules.cancellations.dtos import CancellationItemDTO, RequestCancellationDTO
from modules.core.exceptions import InvalidState, ValidationFailure
from modules.masterdata.constants import PolicyType
from modules.masterdata.models import Policy
from modules.orders.constants import OrderStatus
from modules.refunds.constants import RefundStatus
from modules.returns.constants import ReturnStatus
from modules.returns.dtos import RequestReturnDTO, ReturnItemDTO, UpdateReturnDTO
from modules.returns.exceptions import ReturnNotFound, ReturnWindowExpired

pytestmark = pytest.mark.unit

REASON = "DAMAGED"

_TO_DELIVERED = (
    OrderStatus.CONFIRMED,
    OrderStatus.PACKED,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
)


def _request(order, *lines, reason=REASON):
    return RequestReturnDTO(
        order_id=order.id,
        reason=reason,
        items=[
            ReturnItemDTO(order_item_id=item.id, quantity=qty, remarks=f"{qty} returned")
            for item, qty in lines
        ],
        requested_by="customer-1",
    )


@pytest.fixture()
def delivered_order(make_order, advance):
    return advance(make_order(), *_TO_DELIVERED)


@pytest.fixture()
def return_policy():
    return Policy.objects.create(
        name="Standard 14 days", policy_type=PolicyType.RETURN, window_days=14
    )


class TestRequest:
    def test_partial_return(self, return_service, delivered_order, items_of):
        mug, _ = items_of(delivered_order)

        returned = return_service.request(_request(delivered_order, (mug, 2)))

        assert returned.status == ReturnStatus.PENDING
        assert returned.is_partial is True
        assert returned.total_refundable_amount == Decimal("18.00")
        line = returned.items.get()
        assert line.remarks == "2 returned"

    def test_requires_delivered_order(self, return_service, make_order, advance, items_of):
        order = advance(make_order(), OrderStatus.CONFIRMED, OrderStatus.PACKED, OrderStatus.SHIPPED)
        mug, _ = items_of(order)
        with pytest.raises(InvalidState, match="only delivered orders"):
            return_service.request(_request(order, (mug, 1)))

    def test_cancellation_reason_not_accepted(self, return_service, delivered_order, items_of):
        mug, _ = items_of(delivered_order)
        with pytest.raises(ValidationFailure, match="not an active"):
            return_service.request(_request(delivered_order, (mug, 1), reason="CHANGED_MIND"))

    def test_item_busy_in_pending_cancellation(
        self, return_service, cancellation_service, make_order, advance, items_of
    ):
        order = advance(make_order(), OrderStatus.CONFIRMED)
        mug, teapot = items_of(order)
        cancellation_service.request(
            RequestCancellationDTO(
                order_id=order.id,
                reason="CHANGED_MIND",
                items=[CancellationItemDTO(order_item_id=mug.id, quantity=1)],
            )
        )
        order = advance(order, *_TO_DELIVERED[1:])

        with pytest.raises(ValidationFailure, match="already has an active request"):
            return_service.request(_request(order, (mug, 1)))
        assert return_service.request(_request(order, (teapot, 1)))


class TestReturnWindow:
    def test_within_window(self, return_service, make_order, advance, items_of, return_policy):
        with freeze_time("2026-05-01 12:00:00"):
            order = advance(make_order(return_policy_id=return_policy.id), *_TO_DELIVERED)
        mug, _ = items_of(order)

        with freeze_time("2026-05-15 11:00:00"):
            assert return_service.request(_request(order, (mug, 1))).status == "PENDING"

    def test_window_expired(self, return_service, make_order, advance, items_of, return_policy):
        with freeze_time("2026-05-01 12:00:00"):
            order = advance(make_order(return_policy_id=return_policy.id), *_TO_DELIVERED)
        mug, _ = items_of(order)

        with freeze_time("2026-05-16 12:00:00"):
            with pytest.raises(ReturnWindowExpired, match="14 day"):
                return_service.request(_request(order, (mug, 1)))

    def test_policy_without_window(self, return_service, make_order, advance, items_of):
        policy = Policy.objects.create(name="Lifetime", policy_type=PolicyType.RETURN)
        with freeze_time("2020-01-01"):
            order = advance(make_order(return_policy_id=policy.id), *_TO_DELIVERED)
        mug, _ = items_of(order)

        assert return_service.request(_request(order, (mug, 1)))


class TestCumulativeQuantities:
    def test_cancel_then_return_rest(
        self,
        return_service,
        cancellation_service,
        order_service,
        refund_service,
        make_order,
        advance,
        items_of,
    ):
        order = make_order()
        mug, teapot = items_of(order)
        cancellation = cancellation_service.request(
            RequestCancellationDTO(
                order_id=order.id,
                reason="CHANGED_MIND",
                items=[CancellationItemDTO(order_item_id=mug.id, quantity=1)],
            )
        )
        cancellation_service.approve(cancellation.id, approver="admin")
        order = advance(order, *_TO_DELIVERED)

        with pytest.raises(ValidationFailure, match="only 2 unit"):
            return_service.request(_request(order, (mug, 3)))

        returned = return_service.request(_request(order, (mug, 2), (teapot, 1)))
        assert returned.is_partial is False
        assert returned.total_refundable_amount == Decimal("43.00")

        return_service.approve(returned.id, approver="admin", refundable_amount=Decimal("43.00"))

        assert order_service.get_order(str(order.id)).status == OrderStatus.RETURNED
        details = order_service.get_with_details(order.id)
        by_item = {i.id: i for i in details.items}
        assert (by_item[mug.id].cancelled_quantity, by_item[mug.id].returned_quantity) == (1, 2)
        assert by_item[mug.id].remaining_quantity == 0
        assert by_item[teapot.id].remaining_quantity == 0
        assert {r.total_amount for r in details.refunds} == {Decimal("9.00"), Decimal("43.00")}
        refund = refund_service.get_by_return(returned.id)
        assert refund.status == RefundStatus.PENDING
        assert refund.return_request_id == returned.id


class TestLifecycle:
    def test_update_keeps_remarks(self, return_service, delivered_order, items_of):
        mug, _ = items_of(delivered_order)
        returned = return_service.request(_request(delivered_order, (mug, 1)))

        updated = return_service.update(
            returned.id,
            UpdateReturnDTO(
                reason=REASON,
                items=[ReturnItemDTO(order_item_id=mug.id, quantity=2, remarks="both cracked")],
            ),
        )

        line = updated.items.get()
        assert (line.quantity, line.remarks) == (2, "both cracked")
        assert updated.total_refundable_amount == Decimal("18.00")

    def test_reject_then_request_again(self, return_service, delivered_order, items_of):
        mug, _ = items_of(delivered_order)
        returned = return_service.request(_request(delivered_order, (mug, 1)))
        return_service.reject(returned.id, rejecter="admin")

        again = return_service.request(_request(delivered_order, (mug, 1)))
        assert again.id != returned.id

    def test_delete(self, return_service, delivered_order, items_of):
        mug, _ = items_of(delivered_order)
        returned = return_service.request(_request(delivered_order, (mug, 1)))

        return_service.delete(returned.id)

        with pytest.raises(ReturnNotFound):
            return_service.get(returned.id)
