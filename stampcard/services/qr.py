import base64
import io

import qrcode


def make_qr_bytes(url: str, box_size: int = 8) -> bytes:
    """Return QR PNG bytes for the provided URL."""
    qr = qrcode.QRCode(box_size=box_size, border=4)
    qr.add_data(url)
    qr.make(fit=True)
    img = qr.make_image()
    buf = io.BytesIO()
    img.save(buf, format='PNG')
    return buf.getvalue()

def make_qr_data_url(url: str) -> str:
    png = make_qr_bytes(url)
    return 'data:image/png;base64,' + base64.b64encode(png).decode('ascii')
