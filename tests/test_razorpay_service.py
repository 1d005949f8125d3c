import pytest
import requests
from razorpay.errors import BadRequestError, GatewayError as RazorpayGatewayError, ServerError

from upipay.errors import GatewayError, InvalidInput
from upipay.razorpay_service import RazorpayGateway


@pytest.fixture
def sdk(mocker):
    return mocker.Mock()


@pytest.fixture
def gateway(sdk):
    return RazorpayGateway("rzp_test_key", "secret", timeout=7, client=sdk)


def test_create_order(gateway, sdk):
    sdk.order.create.return_value = {
        "id": "order_IluGWxBm9U8zJ8", "amount": 5000, "currency": "INR", "status": "created", "receipt": "rcpt_1",
    }

    order = gateway.create_order(5000, "INR", {"receipt": "rcpt_1"})

    assert order.id == "order_IluGWxBm9U8zJ8"
    assert order.amount_minor == 5000
    assert order.receipt == "rcpt_1"
    sdk.order.create.assert_called_once_with(
        data={
            "amount": 5000,
            "currency": "INR",
            "payment_capture": 1,
            "notes": {"receipt": "rcpt_1"},
            "receipt": "rcpt_1",
        },
        timeout=7,
    )


def test_create_order_manual_capture(gateway, sdk):
    sdk.order.create.return_value = {"id": "order_1", "amount": 100, "currency": "INR", "status": "created"}

    gateway.create_order(100, capture=False)

    assert sdk.order.create.call_args.kwargs["data"]["payment_capture"] == 0


@pytest.mark.parametrize("amount", [0, -100, 10.5, True, None])
def test_invalid_amount_never_reaches_gateway(gateway, sdk, amount):
    with pytest.raises(InvalidInput):
        gateway.create_order(amount)
    assert sdk.method_calls == []


@pytest.mark.parametrize("payment_id", [None, "", "   "])
def test_missing_identifiers_fail_fast(gateway, sdk, payment_id):
    with pytest.raises(InvalidInput):
        gateway.fetch_payment(payment_id)
    with pytest.raises(InvalidInput):
        gateway.capture_payment(payment_id, 100)
    with pytest.raises(InvalidInput):
        gateway.fetch_order(payment_id)
    assert sdk.method_calls == []


def test_fetch_payment_is_stable(gateway, sdk):
    sdk.payment.fetch.return_value = {
        "id": "pay_1", "order_id": "order_1", "amount": 100, "currency": "INR", "status": "authorized",
    }

    first = gateway.fetch_payment("pay_1")
    second = gateway.fetch_payment("pay_1")

    assert first.status == second.status == "authorized"
    assert first == second
    sdk.payment.fetch.assert_called_with("pay_1", timeout=7)


def test_capture_payment(gateway, sdk):
    sdk.payment.capture.return_value = {
        "id": "pay_1", "order_id": "order_1", "amount": 100, "currency": "INR", "status": "captured",
    }

    payment = gateway.capture_payment("pay_1", 100)

    assert payment.is_captured
    sdk.payment.capture.assert_called_once_with("pay_1", 100, data={"currency": "INR"}, timeout=7)


def test_create_payment_link_drops_empty_customer_fields(gateway, sdk):
    sdk.payment_link.create.return_value = {
        "id": "plink_1", "short_url": "https://rzp.io/i/abc", "status": "created", "amount": 100, "currency": "INR",
    }

    link = gateway.create_payment_link(
        100, "INR", {"name": "Asha", "email": None, "contact": ""}, "https://shop.example/done"
    )

    assert link.short_url == "https://rzp.io/i/abc"
    data = sdk.payment_link.create.call_args.kwargs["data"]
    assert data["customer"] == {"name": "Asha"}
    assert data["callback_url"] == "https://shop.example/done"
    assert data["upi_link"] is True


def test_create_qr_code(gateway, sdk):
    sdk.qrcode.create.return_value = {"id": "qr_1", "image_url": "https://rzp.io/i/qr", "status": "active"}

    qr = gateway.create_qr_code(2500, description="Snacks")

    assert qr.id == "qr_1"
    data = sdk.qrcode.create.call_args.kwargs["data"]
    assert data["type"] == "upi_qr"
    assert data["usage"] == "single_use"
    assert data["fixed_amount"] is True
    assert data["payment_amount"] == 2500


@pytest.mark.parametrize("error, status", [
    (BadRequestError("The id provided does not exist"), 400),
    (ServerError("The server encountered an error"), 502),
    (RazorpayGatewayError("Gateway timed out"), 502),
    (requests.ConnectionError("connection refused"), None),
    (requests.Timeout("read timed out"), None),
])
def test_sdk_errors_become_gateway_error(gateway, sdk, error, status):
    sdk.payment.fetch.side_effect = error

    with pytest.raises(GatewayError) as exc_info:
        gateway.fetch_payment("pay_1")

    assert exc_info.value.status_code == status
    assert exc_info.value.http_status == 500
