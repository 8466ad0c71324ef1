from __future__ import annotations

from decimal import Decimal
from uuid import uuid4

import pytest

from modules.masterdata.constants import ReasonType
from modules.masterdata.models import Reason
from modules.orders.constants import OrderStatus
from modules.orders.dtos import CreateOrderDTO, CreateOrderItemDTO
from modules.refunds.gateway import PaymentInfo, PaymentResult, RefundResult
from modules.wiring import (
    build_cancellation_service,
    build_order_service,
    build_refund_service,
    build_return_service,
    build_shipment_service,
)

CANCEL_REASON = "CHANGED_MIND"
RETURN_REASON = "DAMAGED"

DELIVERY_PATH = (
    OrderStatus.CONFIRMED,
    OrderStatus.PACKED,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
)


class FakeGateway:
    """In-memory ``PaymentGateway``.

    ``outcome`` is returned by ``initiate_refund`` or raised when it is an
    exception.
    """

    def __init__(self):
        self.outcome = RefundResult(success=True, transaction_reference="TX-0001")
        self.refund_calls = []

    def initiate_payment(self, request):
        return PaymentResult(payment_id="PAY-1", status="CREATED")

    def get_payment_info(self, payment_id):
        return PaymentInfo(payment_id=payment_id, status="CAPTURED")

    def initiate_refund(self, request):
        self.refund_calls.append(request)
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture()
def reasons():
    return [
        Reason.objects.create(code=CANCEL_REASON, reason_type=ReasonType.CANCELLATION),
        Reason.objects.create(code=RETURN_REASON, reason_type=ReasonType.RETURN),
        Reason.objects.create(
            code="RETIRED", reason_type=ReasonType.CANCELLATION, is_active=False
        ),
    ]


@pytest.fixture()
def gateway():
    return FakeGateway()


@pytest.fixture()
def order_service():
    return build_order_service()


@pytest.fixture()
def refund_service(gateway):
    return build_refund_service(gateway)


@pytest.fixture()
def cancellation_service(gateway, reasons):
    return build_cancellation_service(gateway)


@pytest.fixture()
def return_service(gateway, reasons):
    return build_return_service(gateway)


@pytest.fixture()
def shipment_service():
    return build_shipment_service()


@pytest.fixture()
def make_order(order_service):
    """Factory for orders.

    Default lines: 3 x 10.00 with a 3.00 line discount (27.00) and
    1 x 25.00 (25.00); subtotal 52.00.
    """

    def _make(**overrides):
        data = {
            "user_id": uuid4(),
            "payment_method": "CARD",
            "shipping_address": "1 Main St",
            "billing_address": "1 Main St",
            "items": [
                CreateOrderItemDTO(
                    product_id=uuid4(),
                    product_name="Mug",
                    unit_price=Decimal("10.00"),
                    quantity=3,
                    discount_amount=Decimal("3.00"),
                ),
                CreateOrderItemDTO(
                    product_id=uuid4(),
                    product_name="Teapot",
                    unit_price=Decimal("25.00"),
                    quantity=1,
                ),
            ],
        }
        data.update(overrides)
        return order_service.create_order(CreateOrderDTO(**data))

    return _make


@pytest.fixture()
def advance(order_service):
    """Walk an order through the given statuses."""

    def _advance(order, *statuses):
        for status in statuses:
            order = order_service.change_status(order.id, status, actor="ops")
        return order

    return _advance


@pytest.fixture()
def items_of():
    """Order items in creation order: (mug, teapot) for the default order."""

    def _items(order):
        return list(order.items.order_by("created_at", "id"))

    return _items
