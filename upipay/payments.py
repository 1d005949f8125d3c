"""Payment flows behind the HTTP endpoints. Nothing is stored between requests."""
import asyncio
import json
import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, Optional

from starlette.concurrency import run_in_threadpool

from upipay.config import Settings
from upipay.entities import (
    PENDING_PAYMENT_STATUSES,
    Payment,
    PaymentLookup,
    SignatureClaim,
    VerificationRequest,
    WebhookEvent,
)
from upipay.errors import ConfigurationError, InvalidInput, InvalidSignature
from upipay.razorpay_service import RazorpayGateway
from upipay.signatures import verify_order_payment_signature, verify_webhook_signature
from upipay.upi import QrRenderer, build_upi_link, new_transaction_id
from upipay.webhook_store import WebhookStore

logger = logging.getLogger(__name__)

CONFIRMED = "confirmed"
PENDING = "pending"
REJECTED = "rejected"

# keeps paise well inside the default 28-digit Decimal context
MAX_AMOUNT = Decimal(10) ** 15


def parse_amount(value: Any) -> Decimal:
    """Validate an amount in major currency units (rupees)."""
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InvalidInput("Amount is required")
    if isinstance(value, bool):
        raise InvalidInput("Amount must be a number")
    if isinstance(value, (int, float, Decimal)):
        amount = Decimal(str(value))
    elif isinstance(value, str):
        try:
            amount = Decimal(value.strip())
        except InvalidOperation:
            raise InvalidInput("Amount must be a number")
    else:
        raise InvalidInput("Amount must be a number")
    if not amount.is_finite():
        raise InvalidInput("Amount must be a number")
    if amount <= 0:
        raise InvalidInput("Amount must be greater than zero")
    if amount >= MAX_AMOUNT:
        raise InvalidInput("Amount is too large")
    if amount.normalize().as_tuple().exponent < -2:
        raise InvalidInput("Amount cannot have more than 2 decimal places")
    return amount


def to_minor_units(amount: Decimal) -> int:
    try:
        minor = int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    except InvalidOperation:
        raise InvalidInput("Amount is too large")
    if minor <= 0:
        raise InvalidInput("Amount must be greater than zero")
    return minor


@dataclass(frozen=True)
class VerificationResult:
    outcome: str
    payment: Payment
    message: str

    @property
    def success(self) -> bool:
        return self.outcome == CONFIRMED

    def to_response(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "status": self.payment.status,
            "message": self.message,
            "payment_id": self.payment.id,
        }


class PaymentFlow:
    def __init__(self, settings: Settings, gateway: RazorpayGateway, qr: QrRenderer,
                 webhook_store: Optional[WebhookStore] = None):
        self.settings = settings
        self.gateway = gateway
        self.qr = qr
        self.webhook_store = webhook_store

    # --- creation -------------------------------------------------------

    async def create_order(self, amount: Any) -> Dict[str, Any]:
        major = parse_amount(amount)
        minor = to_minor_units(major)
        order = await run_in_threadpool(
            self.gateway.create_order,
            minor,
            self.settings.currency,
            {"channel": "upi"},
            capture=not self.settings.manual_capture,
        )

        response: Dict[str, Any] = {"success": True, "order_id": order.id}
        if self.settings.upi_id:
            link = build_upi_link(
                self.settings.upi_id,
                self.settings.upi_payee_name,
                self.settings.upi_note,
                major,
                currency=self.settings.currency,
                transaction_id=order.id,
                reference=f"order_{order.id}",
                merchant_code=self.settings.upi_merchant_code,
            )
            response["upiPaymentLink"] = link
            response["qrCodeURL"] = self.qr.render(link, name=order.id).url
        return response

    async def create_upi_payment(self, amount: Any, transaction_id: Optional[str] = None,
                                 customer_name: Optional[str] = None) -> Dict[str, Any]:
        major = parse_amount(amount)
        if not self.settings.upi_id:
            raise ConfigurationError("UPI_ID is not configured")

        txn = transaction_id or new_transaction_id()
        note = f"Payment from {customer_name}" if customer_name else self.settings.upi_note
        link = build_upi_link(
            self.settings.upi_id,
            self.settings.upi_payee_name,
            note,
            major,
            currency=self.settings.currency,
            transaction_id=txn,
            reference=txn,
            merchant_code=self.settings.upi_merchant_code,
        )
        qr = self.qr.render(link, name=txn)
        return {"success": True, "upiPaymentUrl": link, "qrCodeUrl": qr.url, "transactionId": txn}

    async def create_payment_link(self, amount: Any, customer: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        minor = to_minor_units(parse_amount(amount))
        link = await run_in_threadpool(
            self.gateway.create_payment_link,
            minor,
            self.settings.currency,
            customer,
            self.settings.payment_callback_url,
            description=self.settings.upi_note,
        )
        qr = self.qr.render(link.short_url, name=link.id)
        return {
            "success": True,
            "paymentLink": link.short_url,
            "qrCodeUrl": qr.url,
            "payment_link_id": link.id,
        }

    async def create_qr(self, amount: Any) -> Dict[str, Any]:
        minor = to_minor_units(parse_amount(amount))
        qr = await run_in_threadpool(
            self.gateway.create_qr_code, minor, description=self.settings.upi_note,
            name=self.settings.upi_payee_name,
        )
        return {"success": True, "qr_code_id": qr.id, "qr_code_url": qr.image_url}

    # --- verification ---------------------------------------------------

    async def verify_payment(self, request: VerificationRequest) -> VerificationResult:
        if isinstance(request, SignatureClaim):
            valid = verify_order_payment_signature(
                request.order_id, request.payment_id, request.signature, self.settings.razorpay_key_secret
            )
            if not valid:
                logger.warning(f"Signature mismatch for order {request.order_id} payment {request.payment_id}")
                raise InvalidSignature("Invalid payment signature")

            payment = await run_in_threadpool(self.gateway.fetch_payment, request.payment_id)
            if payment.order_id and payment.order_id != request.order_id:
                logger.warning(f"Payment {payment.id} belongs to {payment.order_id}, not {request.order_id}")
                return VerificationResult(REJECTED, payment, "Payment does not belong to this order")
            return await self._resolve(payment, allow_capture=True)

        if isinstance(request, PaymentLookup):
            payment = await run_in_threadpool(self.gateway.fetch_payment, request.payment_id)
            return await self._resolve(payment, allow_capture=False)

        raise InvalidInput("Missing payment details")

    async def _resolve(self, payment: Payment, allow_capture: bool) -> VerificationResult:
        if payment.is_captured:
            return VerificationResult(CONFIRMED, payment, "Payment verified")

        if payment.status == "authorized" and allow_capture and self.settings.manual_capture:
            payment = await self._capture(payment)
            if payment.is_captured:
                return VerificationResult(CONFIRMED, payment, "Payment verified")

        if payment.status in PENDING_PAYMENT_STATUSES:
            return VerificationResult(PENDING, payment, "Payment pending")
        return VerificationResult(REJECTED, payment, f"Payment {payment.status}")

    async def _capture(self, payment: Payment) -> Payment:
        # the gateway is the source of truth; skip if someone else captured it
        current = await run_in_threadpool(self.gateway.fetch_payment, payment.id)
        if current.is_captured or current.status != "authorized":
            return current
        return await asyncio.shield(
            run_in_threadpool(self.gateway.capture_payment, current.id, current.amount_minor, current.currency)
        )

    # --- webhooks -------------------------------------------------------

    async def handle_webhook(self, raw_body: bytes, signature: Optional[str],
                             event_id: Optional[str] = None) -> Dict[str, Any]:
        secret = self.settings.razorpay_webhook_secret
        if not secret:
            raise ConfigurationError("Webhook secret not configured")
        if not verify_webhook_signature(raw_body, signature, secret):
            logger.warning("Rejected webhook with invalid signature")
            raise InvalidSignature("Invalid signature")

        try:
            payload = json.loads(raw_body)
        except ValueError:
            raise InvalidInput("Invalid payload")
        if not isinstance(payload, dict) or not isinstance(payload.get("event"), str):
            raise InvalidInput("Invalid payload")
        try:
            event = WebhookEvent.from_payload(payload, signature, event_id)
        except ValueError as exc:
            logger.warning(f"Rejected malformed webhook: {exc}")
            raise InvalidInput("Invalid payload")
        dedup = self.webhook_store is not None and bool(event.event_id)
        if dedup and await run_in_threadpool(self.webhook_store.seen, event.event_id):
            logger.info(f"Ignoring redelivered webhook {event.event_id} ({event.event_name})")
            return {"status": "success"}

        await self._process(event)

        if dedup:
            await run_in_threadpool(
                self.webhook_store.record, event.event_id, event.event_name, event.entity.get("id")
            )
        return {"status": "success"}

    async def _process(self, event: WebhookEvent) -> None:
        name = event.event_name
        entity_id = event.entity.get("id")
        if name == "payment.captured":
            logger.info(f"Payment {entity_id} captured")
        elif name == "payment.failed":
            logger.warning(f"Payment {entity_id} failed: {event.entity.get('error_description')}")
        elif name == "order.paid":
            logger.info(f"Order {entity_id} paid")
        elif name == "payment.authorized":
            if self.settings.manual_capture and entity_id:
                payment = await self._capture(Payment.from_gateway(event.entity))
                logger.info(f"Payment {payment.id} is {payment.status} after authorization webhook")
            else:
                logger.info(f"Payment {entity_id} authorized")
        else:
            logger.info(f"Unhandled webhook event {name}")

    # --- status ---------------------------------------------------------

    async def order_status(self, order_id: str) -> Dict[str, Any]:
        if not order_id or not order_id.strip():
            raise InvalidInput("Missing order_id")
        order = await run_in_threadpool(self.gateway.fetch_order, order_id)
        return {"success": True, "order": order.to_dict()}

    async def payment_status(self, payment_id: Optional[str]) -> Dict[str, Any]:
        if not payment_id or not payment_id.strip():
            raise InvalidInput("Missing payment_id")
        payment = await run_in_threadpool(self.gateway.fetch_payment, payment_id)
        return {"success": payment.is_captured, "status": payment.status}
