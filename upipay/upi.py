"""UPI deep links and QR images for them."""
import base64
import io
import logging
import re
import uuid
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path
from typing import Optional, Union
from urllib.parse import quote

import qrcode
from qrcode.constants import ERROR_CORRECT_M

from upipay.entities import QrImageRef

logger = logging.getLogger(__name__)

# characters encodeURIComponent leaves alone
_URI_COMPONENT_SAFE = "-_.!~*'()"
_FILE_NAME = re.compile(r"^[A-Za-z0-9_-]+$")


def encode_component(value: str) -> str:
    return quote(str(value), safe=_URI_COMPONENT_SAFE)


def format_major_amount(amount: Union[int, float, Decimal]) -> str:
    """100 -> "100", 99.5 -> "99.50"."""
    value = Decimal(str(amount))
    if value == value.to_integral_value():
        return str(int(value))
    return f"{value.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)}"


def build_upi_link(
    payee_vpa: str,
    payee_name: str,
    note: str,
    amount: Union[int, float, Decimal],
    currency: str = "INR",
    transaction_id: Optional[str] = None,
    reference: Optional[str] = None,
    merchant_code: Optional[str] = None,
) -> str:
    link = (
        f"upi://pay?pa={payee_vpa}"
        f"&pn={encode_component(payee_name)}"
        f"&tn={encode_component(note)}"
        f"&am={format_major_amount(amount)}"
        f"&cu={currency}"
    )
    if transaction_id:
        link += f"&tid={encode_component(transaction_id)}"
    if reference:
        link += f"&tr={encode_component(reference)}"
    if merchant_code:
        link += f"&mc={encode_component(merchant_code)}"
    return link


def new_transaction_id() -> str:
    return f"TXN{uuid.uuid4().hex[:16].upper()}"


def generate_qr_png(data: str, box_size: int = 8, border: int = 4) -> bytes:
    qr = qrcode.QRCode(
        version=None,
        error_correction=ERROR_CORRECT_M,
        box_size=box_size,
        border=border,
    )
    qr.add_data(data)
    qr.make(fit=True)
    image = qr.make_image(fill_color="black", back_color="white")
    buffer = io.BytesIO()
    image.save(buffer)
    return buffer.getvalue()


def png_data_url(png: bytes) -> str:
    return "data:image/png;base64," + base64.b64encode(png).decode("ascii")


class QrRenderer:
    """Renders a payload as an inline data URL, a served PNG file or a hosted render URL."""

    def __init__(self, strategy: str, qr_dir: Path, server_url: str, hosted_template: str):
        self.strategy = strategy
        self.qr_dir = Path(qr_dir)
        self.server_url = server_url.rstrip("/")
        self.hosted_template = hosted_template

    @classmethod
    def from_settings(cls, settings) -> "QrRenderer":
        return cls(settings.qr_strategy, settings.qr_dir, settings.server_url, settings.qr_hosted_template)

    def data_url(self, payload: str) -> str:
        return png_data_url(generate_qr_png(payload))

    def render(self, payload: str, name: Optional[str] = None) -> QrImageRef:
        if self.strategy == "hosted":
            return QrImageRef(url=self.hosted_template.format(data=encode_component(payload)))

        png = generate_qr_png(payload)
        if self.strategy == "file":
            return QrImageRef(url=self._write(png, name or uuid.uuid4().hex), png=png)
        return QrImageRef(url=png_data_url(png), png=png)

    def _write(self, png: bytes, name: str) -> str:
        if not _FILE_NAME.match(name):
            name = uuid.uuid4().hex
        self.qr_dir.mkdir(parents=True, exist_ok=True)
        path = self.qr_dir / f"{name}.png"
        with open(path, "wb") as fh:
            fh.write(png)
        logger.info(f"Wrote QR image {path.name}")
        return f"{self.server_url}/qrcodes/{path.name}"
