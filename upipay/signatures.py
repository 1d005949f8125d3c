"""Razorpay HMAC-SHA256 checks. Webhook digests cover the raw request bytes."""
import hashlib
import hmac
from typing import Union

from upipay.errors import ConfigurationError

Secret = Union[bytes, str]


def _secret_bytes(secret: Secret) -> bytes:
    if isinstance(secret, str):
        secret = secret.encode("utf-8")
    if not secret:
        raise ConfigurationError("Signature secret is not configured")
    return secret


def compute_signature(message: bytes, secret: Secret) -> str:
    """Lowercase hex HMAC-SHA256 of ``message``."""
    return hmac.new(_secret_bytes(secret), message, hashlib.sha256).hexdigest()


def _matches(expected: str, signature_hex) -> bool:
    if not isinstance(signature_hex, str) or not signature_hex:
        return False
    try:
        candidate = signature_hex.encode("ascii")
    except UnicodeEncodeError:
        return False
    return hmac.compare_digest(expected.encode("ascii"), candidate)


def order_payment_message(order_id: str, payment_id: str) -> bytes:
    return f"{order_id}|{payment_id}".encode("utf-8")


def verify_order_payment_signature(
    order_id: str,
    payment_id: str,
    signature_hex: str,
    secret: Secret,
) -> bool:
    expected = compute_signature(order_payment_message(order_id, payment_id), secret)
    return _matches(expected, signature_hex)


def verify_webhook_signature(raw_body: bytes, signature_hex: str, secret: Secret) -> bool:
    if not isinstance(raw_body, (bytes, bytearray)):
        raise TypeError("raw_body must be the raw request bytes")
    expected = compute_signature(bytes(raw_body), secret)
    return _matches(expected, signature_hex)
