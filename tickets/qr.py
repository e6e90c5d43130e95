"""PNG QR codes for issued tickets."""

import io

import qrcode
from PIL import Image
from qrcode.constants import ERROR_CORRECT_H, ERROR_CORRECT_L, ERROR_CORRECT_M, ERROR_CORRECT_Q
from qrcode.image.pil import PilImage

from .constants import QR_PAYLOAD

RECOVERY_LEVELS = {
    "Low": ERROR_CORRECT_L,
    "Medium": ERROR_CORRECT_M,
    "High": ERROR_CORRECT_Q,
    "Highest": ERROR_CORRECT_H,
}


def recovery_level(name: str) -> int:
    return RECOVERY_LEVELS.get(name, ERROR_CORRECT_M)


def qr_payload(ticket_id: int, owner_id: int) -> str:
    return QR_PAYLOAD.format(ticket_id=ticket_id, owner_id=owner_id)


class QRCodeEncoder:
    def __init__(self, level: str = "Medium", size: int = 256):
        self.level = recovery_level(level)
        self.size = size

    def encode(self, ticket_id: int, owner_id: int) -> bytes:
        """Render the ticket/owner pair as a square PNG of ``size`` pixels."""
        qr = qrcode.QRCode(error_correction=self.level, box_size=1, border=4)
        qr.add_data(qr_payload(ticket_id, owner_id))
        qr.make(fit=True)
        image = qr.make_image(image_factory=PilImage).get_image()
        if self.size > 0:
            image = image.resize((self.size, self.size), Image.Resampling.NEAREST)
        buffer = io.BytesIO()
        image.save(buffer, format="PNG")
        return buffer.getvalue()
