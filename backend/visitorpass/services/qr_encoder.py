import base64
import io
import json
import logging
from dataclasses import dataclass
from datetime import datetime

import qrcode
from qrcode.constants import ERROR_CORRECT_H
from qrcode.exceptions import DataOverflowError

from visitorpass.core.config import settings
from visitorpass.core.exceptions import QREncodeError, InvalidPassPayload
from visitorpass.services.expiry import to_iso

logger = logging.getLogger(__name__)

PASS_TYPE = "visitor_pass"


@dataclass(frozen=True)
class EncodedQR:
    payload_text: str  # raw JSON, for copy/share
    png: bytes
    data_url: str


def describe_validity(seconds: int) -> str:
    minutes, secs = divmod(int(seconds), 60)
    if secs:
        return f"{seconds} seconds"
    return "1 minute" if minutes == 1 else f"{minutes} minutes"


def build_payload(
    code: str,
    visitor_name: str,
    created_at: datetime,
    expires_at: datetime,
    validity_seconds: int = 1800,
) -> dict:
    return {
        "code": code,
        "visitorName": visitor_name,
        "expiresAt": to_iso(expires_at),
        "createdAt": to_iso(created_at),
        "validityDuration": describe_validity(validity_seconds),
        "type": PASS_TYPE,
    }


def serialize_payload(payload: dict) -> str:
    # no whitespace between tokens
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


def encode_pass(payload: dict) -> EncodedQR:
    """
    Render a pass payload as a PNG QR code.

    Uses error correction level H (~30% recoverable) so printed or partly
    covered codes still scan. Raises QREncodeError when the payload does
    not fit in any QR version.
    """
    text = serialize_payload(payload)

    qr = qrcode.QRCode(
        version=None,  # Auto-size
        error_correction=ERROR_CORRECT_H,
        box_size=settings.QR_BOX_SIZE,
        border=settings.QR_BORDER,
    )
    try:
        qr.add_data(text)
        qr.make(fit=True)
    except (DataOverflowError, ValueError) as e:
        logger.warning(f"QR encoding failed for {len(text)} byte payload: {e}")
        raise QREncodeError() from e

    img = qr.make_image(fill_color=settings.QR_FILL_COLOR, back_color=settings.QR_BACK_COLOR)

    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    png = buffer.getvalue()

    data_url = "data:image/png;base64," + base64.b64encode(png).decode("ascii")
    logger.debug(f"Encoded pass {payload.get('code')} as QR version {qr.version}")

    return EncodedQR(payload_text=text, png=png, data_url=data_url)


def decode_payload(text: str) -> dict:
    """Parse a scanned QR string back into a pass payload"""
    try:
        payload = json.loads(text)
    except (TypeError, ValueError):
        raise InvalidPassPayload()

    if not isinstance(payload, dict) or payload.get("type") != PASS_TYPE:
        raise InvalidPassPayload()
    if not str(payload.get("code") or "").strip():
        raise InvalidPassPayload("QR code does not contain a pass code")
    return payload


def png_from_data_url(data_url: str) -> bytes:
    """Inverse of the data URL produced by encode_pass"""
    if not data_url or not data_url.startswith("data:image/png;base64,"):
        raise InvalidPassPayload("Stored QR image is not a PNG data URL")
    try:
        return base64.b64decode(data_url.split(",", 1)[1], validate=True)
    except ValueError as e:
        raise InvalidPassPayload("Stored QR image is corrupted") from e
