from __future__ import annotations

import base64
import io
from typing import IO

import qrcode
from PIL import Image
from pyzbar.pyzbar import decode as pyzbar_decode


def render_png(data: str, *, box_size: int = 10, border: int = 2) -> bytes:
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_L,
        box_size=box_size,
        border=border,
    )
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def render_png_data_url(data: str) -> str:
    return "data:image/png;base64," + base64.b64encode(render_png(data)).decode("ascii")


def decode_image(stream: IO[bytes]) -> list[str]:
    """Decode every QR symbol found in an uploaded image."""
    img = Image.open(stream).convert("RGB")
    return [symbol.data.decode("utf-8").strip() for symbol in pyzbar_decode(img)]
