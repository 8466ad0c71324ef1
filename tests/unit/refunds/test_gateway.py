"""Unit tests for HttpPaymentGateway against ``httpx.MockTransport``.

Covers:
- Bearer authentication and JSON request bodies.
- Envelope parsing for payments, payment info and refunds.
- Failure classification: timeout, unreachable, 5xx, 4xx, declined,
  malformed body.
"""

from __future__ import annotations

import json
from decimal import Decimal
from uuid import uuid4

import httpx
import pytest

from modules.core.exceptions import ExternalDependencyFailure
from modules.refunds.exceptions import GatewayTimeout, GatewayUnavailable, PaymentDeclined
from modules.refunds.gateway import HttpPaymentGateway, PaymentRequest, RefundRequest

pytestmark = pytest.mark.unit


def _gateway(handler) -> HttpPaymentGateway:
    return HttpPaymentGateway(
        base_url="http://gateway.test/",
        access_token="secret-token",
        transport=httpx.MockTransport(handler),
    )


def _refund_request() -> RefundRequest:
    return RefundRequest(
        refund_id=uuid4(),
        order_id=uuid4(),
        amount=Decimal("18.00"),
        payment_method="CARD",
    )


class TestInitiateRefund:
    def test_success(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={"success": True, "message": "ok", "data": {"transaction_reference": "TX-9"}},
            )

        refund = _refund_request()
        result = _gateway(handler).initiate_refund(refund)

        assert result.success is True
        assert result.transaction_reference == "TX-9"
        assert seen["path"] == "/api/payments/refund"
        assert seen["auth"] == "Bearer secret-token"
        assert seen["body"]["refund_id"] == str(refund.refund_id)
        assert seen["body"]["amount"] == "18.00"

    def test_declined(self):
        def handler(request):
            return httpx.Response(200, json={"success": False, "message": "card closed"})

        result = _gateway(handler).initiate_refund(_refund_request())

        assert result.success is False
        assert result.message == "card closed"

    def test_client_error_is_a_failure_result(self):
        def handler(request):
            return httpx.Response(422, json={"success": False, "message": "bad amount"})

        result = _gateway(handler).initiate_refund(_refund_request())

        assert result.success is False
        assert result.message == "bad amount"

    def test_client_error_without_json(self):
        def handler(request):
            return httpx.Response(404, text="not here")

        result = _gateway(handler).initiate_refund(_refund_request())

        assert result.success is False

    def test_accepted_without_reference_is_a_failure(self):
        def handler(request):
            return httpx.Response(200, json={"success": True, "data": {}})

        result = _gateway(handler).initiate_refund(_refund_request())

        assert result.success is False
        assert "without a transaction reference" in result.message

    def test_server_error(self):
        def handler(request):
            return httpx.Response(503, json={"success": False})

        with pytest.raises(GatewayUnavailable, match="HTTP 503"):
            _gateway(handler).initiate_refund(_refund_request())

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(GatewayTimeout):
            _gateway(handler).initiate_refund(_refund_request())

    def test_unreachable(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(GatewayUnavailable, match="unreachable"):
            _gateway(handler).initiate_refund(_refund_request())

    def test_malformed_success_body(self):
        def handler(request):
            return httpx.Response(200, text="<html>")

        with pytest.raises(GatewayUnavailable, match="malformed"):
            _gateway(handler).initiate_refund(_refund_request())


class TestPayments:
    def test_initiate_payment(self):
        def handler(request):
            assert request.url.path == "/api/payments/create"
            return httpx.Response(
                200,
                json={"success": True, "data": {"payment_id": "PAY-1", "status": "CREATED"}},
            )

        result = _gateway(handler).initiate_payment(
            PaymentRequest(order_id=uuid4(), amount=Decimal("52.00"), payment_method="CARD")
        )

        assert result.payment_id == "PAY-1"

    def test_initiate_payment_rejected(self):
        def handler(request):
            return httpx.Response(400, json={"success": False, "message": "invalid card"})

        with pytest.raises(PaymentDeclined, match="invalid card") as excinfo:
            _gateway(handler).initiate_payment(
                PaymentRequest(order_id=uuid4(), amount=Decimal("1.00"), payment_method="CARD")
            )
        assert not isinstance(excinfo.value, ExternalDependencyFailure)

    def test_payment_info(self):
        def handler(request):
            assert json.loads(request.content) == {"payment_id": "PAY-1"}
            return httpx.Response(
                200,
                json={"success": True, "data": {"payment_id": "PAY-1", "status": "CAPTURED"}},
            )

        info = _gateway(handler).get_payment_info("PAY-1")

        assert info.status == "CAPTURED"

    def test_unknown_payment(self):
        def handler(request):
            return httpx.Response(404, json={"success": False, "message": "unknown"})

        assert _gateway(handler).get_payment_info("PAY-404") is None


def test_from_settings(settings):
    settings.PAYMENT_GATEWAY_URL = "http://payments.internal"
    gateway = HttpPaymentGateway.from_settings()
    try:
        assert gateway._client.base_url.host == "payments.internal"
    finally:
        gateway.close()
