import io

import qrcode
from qrcode.constants import ERROR_CORRECT_Q


def make_qr_png(value: str, box_size: int = 8) -> bytes:
    """PNG of a voucher's QR code value, sized to fit a phone screen."""
    code = qrcode.QRCode(error_correction=ERROR_CORRECT_Q, box_size=box_size, border=4)
    code.add_data(value)
    code.make(fit=True)
    out = io.BytesIO()
    code.make_image(fill_color='black', back_color='white').save(out, format='PNG')
    return out.getvalue()
