import logging
from typing import Any, Callable, Dict, Optional

import razorpay
import requests
from razorpay.errors import BadRequestError, GatewayError as RazorpayGatewayError, ServerError

from upipay.config import Settings
from upipay.entities import Order, Payment, PaymentLink, QrCode
from upipay.errors import GatewayError, InvalidInput

logger = logging.getLogger(__name__)


def _require(**identifiers: Any) -> None:
    for name, value in identifiers.items():
        if value is None or (isinstance(value, str) and not value.strip()):
            raise InvalidInput(f"Missing {name}")


def _require_amount(amount_minor: Any) -> None:
    if isinstance(amount_minor, bool) or not isinstance(amount_minor, int) or amount_minor <= 0:
        raise InvalidInput("Amount must be a positive integer in the smallest currency unit")


class RazorpayGateway:
    """Thin wrapper over the Razorpay SDK.

    One instance lives for the whole process and is handed to request
    handlers. Every call is a single attempt with a bounded timeout; any
    failure surfaces as ``GatewayError``.
    """

    def __init__(self, key_id: str, key_secret: str, timeout: float = 10.0, client=None):
        self.timeout = timeout
        self.client = client or razorpay.Client(auth=(key_id, key_secret))

    @classmethod
    def from_settings(cls, settings: Settings) -> "RazorpayGateway":
        return cls(
            settings.razorpay_key_id,
            settings.razorpay_key_secret,
            timeout=settings.gateway_timeout_seconds,
        )

    def _call(self, operation: str, fn: Callable[..., Dict[str, Any]], *args, **kwargs) -> Dict[str, Any]:
        try:
            return fn(*args, timeout=self.timeout, **kwargs)
        except BadRequestError as exc:
            logger.error(f"Razorpay rejected {operation}: {exc}")
            raise GatewayError(f"Gateway rejected {operation}: {exc}", status_code=400, body=str(exc)) from exc
        except (ServerError, RazorpayGatewayError) as exc:
            logger.error(f"Razorpay failed on {operation}: {exc}")
            raise GatewayError(f"Gateway error during {operation}: {exc}", status_code=502, body=str(exc)) from exc
        except requests.RequestException as exc:
            logger.error(f"Network error calling Razorpay for {operation}: {exc}")
            raise GatewayError(f"Could not reach gateway during {operation}") from exc

    def create_order(self, amount_minor: int, currency: str = "INR", metadata: Optional[Dict[str, Any]] = None,
                     capture: bool = True) -> Order:
        _require_amount(amount_minor)
        _require(currency=currency)
        data = {
            "amount": amount_minor,
            "currency": currency,
            "payment_capture": 1 if capture else 0,
            "notes": metadata or {},
        }
        receipt = (metadata or {}).get("receipt")
        if receipt:
            data["receipt"] = receipt
        order = self._call("create_order", self.client.order.create, data=data)
        logger.info(f"Created order {order.get('id')} for {amount_minor} {currency}")
        return Order.from_gateway(order)

    def fetch_order(self, order_id: str) -> Order:
        _require(order_id=order_id)
        return Order.from_gateway(self._call("fetch_order", self.client.order.fetch, order_id))

    def create_payment_link(self, amount_minor: int, currency: str = "INR",
                            customer_info: Optional[Dict[str, str]] = None,
                            callback_url: Optional[str] = None,
                            description: str = "Payment") -> PaymentLink:
        _require_amount(amount_minor)
        data: Dict[str, Any] = {
            "amount": amount_minor,
            "currency": currency,
            "description": description,
            "upi_link": True,
        }
        customer = {k: v for k, v in (customer_info or {}).items() if v}
        if customer:
            data["customer"] = customer
        if callback_url:
            data["callback_url"] = callback_url
            data["callback_method"] = "get"
        link = self._call("create_payment_link", self.client.payment_link.create, data=data)
        logger.info(f"Created payment link {link.get('id')} for {amount_minor} {currency}")
        return PaymentLink.from_gateway(link)

    def create_qr_code(self, amount_minor: int, description: str = "Payment", name: Optional[str] = None) -> QrCode:
        _require_amount(amount_minor)
        data = {
            "type": "upi_qr",
            "name": name or description,
            "usage": "single_use",
            "fixed_amount": True,
            "payment_amount": amount_minor,
            "description": description,
        }
        qr = self._call("create_qr_code", self.client.qrcode.create, data=data)
        logger.info(f"Created gateway QR code {qr.get('id')}")
        return QrCode.from_gateway(qr)

    def fetch_payment(self, payment_id: str) -> Payment:
        _require(payment_id=payment_id)
        return Payment.from_gateway(self._call("fetch_payment", self.client.payment.fetch, payment_id))

    def capture_payment(self, payment_id: str, amount_minor: int, currency: str = "INR") -> Payment:
        _require(payment_id=payment_id)
        _require_amount(amount_minor)
        payment = self._call(
            "capture_payment", self.client.payment.capture, payment_id, amount_minor, data={"currency": currency}
        )
        logger.info(f"Captured payment {payment_id} for {amount_minor} {currency}")
        return Payment.from_gateway(payment)
