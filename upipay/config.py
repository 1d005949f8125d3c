import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Mapping, Optional

from dotenv import load_dotenv

from upipay.errors import ConfigurationError

# Force-load .env from the project root
BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(dotenv_path=BASE_DIR / ".env")

QR_STRATEGIES = ("inline", "file", "hosted")
DEFAULT_QR_TEMPLATE = "https://api.qrserver.com/v1/create-qr-code/?size=300x300&data={data}"


def _flag(value: Optional[str], default: bool = False) -> bool:
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    razorpay_key_id: str
    razorpay_key_secret: str
    razorpay_webhook_secret: Optional[str] = None

    # payee details for raw UPI deep links
    upi_id: Optional[str] = None
    upi_payee_name: str = "VendMaster"
    upi_merchant_code: Optional[str] = None
    upi_note: str = "Payment"
    currency: str = "INR"

    port: int = 5000
    server_url: str = "http://localhost:5000"
    payment_callback_url: Optional[str] = None
    allowed_origins: List[str] = field(default_factory=lambda: ["*"])

    manual_capture: bool = False
    gateway_timeout_seconds: float = 10.0

    qr_strategy: str = "inline"
    qr_dir: Path = BASE_DIR / "qrcodes"
    qr_hosted_template: str = DEFAULT_QR_TEMPLATE

    database_url: str = "sqlite:///./webhooks.db"
    webhook_dedup: bool = True

    log_level: str = "INFO"


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build settings from the environment.

    Raises ConfigurationError when the gateway credentials are missing or a
    value cannot be parsed; the service must not start in that case.
    """
    env = os.environ if env is None else env

    key_id = env.get("RAZORPAY_KEY_ID")
    key_secret = env.get("RAZORPAY_KEY_SECRET") or env.get("RAZORPAY_SECRET_KEY")
    if not key_id or not key_secret:
        raise ConfigurationError(
            "RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET must be set. Check your .env file."
        )

    port_raw = env.get("PORT", "5000")
    timeout_raw = env.get("GATEWAY_TIMEOUT_SECONDS", "10")
    try:
        port = int(port_raw)
        timeout = float(timeout_raw)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid numeric setting: {exc}") from exc
    if timeout <= 0:
        raise ConfigurationError("GATEWAY_TIMEOUT_SECONDS must be positive")

    qr_strategy = env.get("QR_STRATEGY", "inline").strip().lower()
    if qr_strategy not in QR_STRATEGIES:
        raise ConfigurationError(
            f"QR_STRATEGY must be one of {', '.join(QR_STRATEGIES)}, got {qr_strategy!r}"
        )

    origins_raw = env.get("ALLOWED_ORIGINS", "*")
    origins = [o.strip() for o in origins_raw.split(",") if o.strip()] or ["*"]

    return Settings(
        razorpay_key_id=key_id,
        razorpay_key_secret=key_secret,
        razorpay_webhook_secret=env.get("RAZORPAY_WEBHOOK_SECRET") or None,
        upi_id=env.get("UPI_ID") or env.get("UPI_RECIPIENT_ID") or None,
        upi_payee_name=env.get("UPI_PAYEE_NAME", "VendMaster"),
        upi_merchant_code=env.get("UPI_MERCHANT_CODE") or None,
        upi_note=env.get("UPI_NOTE", "Payment"),
        currency=env.get("CURRENCY", "INR").upper(),
        port=port,
        server_url=env.get("SERVER_URL", f"http://localhost:{port}").rstrip("/"),
        payment_callback_url=env.get("PAYMENT_CALLBACK_URL") or None,
        allowed_origins=origins,
        manual_capture=_flag(env.get("RAZORPAY_MANUAL_CAPTURE")),
        gateway_timeout_seconds=timeout,
        qr_strategy=qr_strategy,
        qr_dir=Path(env.get("QR_DIR") or BASE_DIR / "qrcodes"),
        qr_hosted_template=env.get("QR_HOSTED_TEMPLATE", DEFAULT_QR_TEMPLATE),
        database_url=env.get("DATABASE_URL", "sqlite:///./webhooks.db"),
        webhook_dedup=_flag(env.get("WEBHOOK_DEDUP"), default=True),
        log_level=env.get("LOG_LEVEL", "INFO").upper(),
    )
