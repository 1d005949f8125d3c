"""Transient views of gateway objects. Nothing here is persisted."""
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional, Union

ORDER_STATUSES = ("created", "attempted", "paid", "expired")
PAYMENT_LINK_STATUSES = ("created", "paid", "expired", "cancelled")
PAYMENT_STATUSES = ("created", "authorized", "captured", "failed", "refunded")
# "attempted" is an order status; a payment reported with it is still pending
PENDING_PAYMENT_STATUSES = ("created", "authorized", "attempted")


@dataclass(frozen=True)
class Order:
    id: str
    amount_minor: int
    currency: str
    status: str
    receipt: Optional[str] = None
    notes: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_gateway(cls, data: Dict[str, Any]) -> "Order":
        return cls(
            id=data["id"],
            amount_minor=int(data.get("amount", 0)),
            currency=data.get("currency", "INR"),
            status=data.get("status", "created"),
            receipt=data.get("receipt"),
            notes=data.get("notes") or {},
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class PaymentLink:
    id: str
    short_url: str
    status: str
    amount_minor: int
    currency: str

    @classmethod
    def from_gateway(cls, data: Dict[str, Any]) -> "PaymentLink":
        return cls(
            id=data["id"],
            short_url=data["short_url"],
            status=data.get("status", "created"),
            amount_minor=int(data.get("amount", 0)),
            currency=data.get("currency", "INR"),
        )


@dataclass(frozen=True)
class Payment:
    id: str
    order_id: Optional[str]
    amount_minor: int
    currency: str
    status: str
    method: Optional[str] = None

    @classmethod
    def from_gateway(cls, data: Dict[str, Any]) -> "Payment":
        return cls(
            id=data["id"],
            order_id=data.get("order_id"),
            amount_minor=int(data.get("amount", 0)),
            currency=data.get("currency", "INR"),
            status=data.get("status", "created"),
            method=data.get("method"),
        )

    @property
    def is_captured(self) -> bool:
        return self.status == "captured"


@dataclass(frozen=True)
class QrCode:
    """QR code hosted by the gateway."""

    id: str
    image_url: str
    status: str = "active"

    @classmethod
    def from_gateway(cls, data: Dict[str, Any]) -> "QrCode":
        return cls(id=data["id"], image_url=data["image_url"], status=data.get("status", "active"))


@dataclass(frozen=True)
class QrImageRef:
    """QR image produced by this service: a data URL, a served file or a hosted render URL."""

    url: str
    png: Optional[bytes] = None


@dataclass(frozen=True)
class WebhookEvent:
    event_name: str
    entity: Dict[str, Any]
    delivery_signature: str
    event_id: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any], signature: str, event_id: Optional[str]) -> "WebhookEvent":
        # "payment.captured" -> payload.payment.entity, "order.paid" -> payload.order.entity
        event_name = payload.get("event", "")
        body = payload.get("payload") or {}
        if not isinstance(body, dict):
            raise ValueError("payload must be an object")
        kind = event_name.split(".")[0]
        wrapper = body.get(kind) or body.get("payment") or {}
        if not isinstance(wrapper, dict):
            raise ValueError(f"payload.{kind} must be an object")
        entity = wrapper.get("entity") or {}
        if not isinstance(entity, dict):
            raise ValueError("entity must be an object")
        return cls(
            event_name=event_name,
            entity=entity,
            delivery_signature=signature,
            event_id=event_id,
        )


@dataclass(frozen=True)
class SignatureClaim:
    order_id: str
    payment_id: str
    signature: str


@dataclass(frozen=True)
class PaymentLookup:
    payment_id: str


VerificationRequest = Union[SignatureClaim, PaymentLookup]
