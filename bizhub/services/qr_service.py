# bizhub/services/qr_service.py

import base64
import io

import qrcode
from PIL import Image
from qrcode.constants import ERROR_CORRECT_M

QR_WIDTH = 300


def encode_qr_data_url(text: str, width: int = QR_WIDTH) -> str:
    """Renders text as a PNG QR code and returns it as a base64 data URL."""
    qr = qrcode.QRCode(error_correction=ERROR_CORRECT_M, box_size=10, border=2)
    qr.add_data(text)
    qr.make(fit=True)
    image = qr.make_image(fill_color="black", back_color="white").get_image()
    image = image.convert("RGB").resize((width, width), Image.Resampling.NEAREST)
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")
