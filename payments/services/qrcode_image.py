from __future__ import annotations

import base64
from io import BytesIO

import qrcode
from qrcode.constants import ERROR_CORRECT_M

DATA_URL_PREFIX = "data:image/png;base64,"


def render_data_url(payload: str, box_size: int = 10, border: int = 2) -> str:
    """Renderiza o payload como PNG e devolve um data URL pronto para <img src>."""
    qr = qrcode.QRCode(error_correction=ERROR_CORRECT_M, box_size=box_size, border=border)
    qr.add_data(payload)
    qr.make(fit=True)
    image = qr.make_image(fill_color="black", back_color="white")

    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return DATA_URL_PREFIX + base64.b64encode(buffer.getvalue()).decode("ascii")


def as_data_url(image_base64: str | None) -> str:
    """Normaliza um PNG em base64 vindo do gateway para data URL."""
    if not image_base64:
        return ""
    if image_base64.startswith("data:"):
        return image_base64
    return DATA_URL_PREFIX + image_base64
