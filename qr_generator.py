# Developed in Jan 2026, author carlos.netto@gmail.com.
# Purpose: Render a Payment Link as a QR code image for desktop checkouts.

import argparse
import base64
import io

import qrcode
from qrcode.constants import ERROR_CORRECT_M
from PIL import Image

# --- CONFIGURATION ---
QR_IMAGE_FILE = "qrcode.png"
QR_SIZE = 256
QR_BORDER = 2
DARK_COLOR = "#000000"
LIGHT_COLOR = "#FFFFFF"


def render_qr_image(data):
    """Builds the QR image (PIL) at the fixed size, error correction and palette."""
    qr = qrcode.QRCode(error_correction=ERROR_CORRECT_M, box_size=10, border=QR_BORDER)
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(fill_color=DARK_COLOR, back_color=LIGHT_COLOR).get_image()
    return img.convert("RGB").resize((QR_SIZE, QR_SIZE), Image.NEAREST)


def generate_qr_code(data):
    """
    Returns the QR code as a PNG data URL.
    On failure returns an empty string; callers treat that as "no QR".
    """
    try:
        img = render_qr_image(data)
        buffer = io.BytesIO()
        img.save(buffer, format="PNG")
        encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
        return f"data:image/png;base64,{encoded}"
    except Exception as e:
        print(f"QR_GENERATOR: [!] Error generating QR code: {e}")
        return ""


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Payment Link QR Code Generator")
    parser.add_argument("link", help="Payment Link to encode")
    parser.add_argument("output", nargs="?", default=QR_IMAGE_FILE, help="Output PNG file")
    args = parser.parse_args()

    print("[*] Generating QR Code Image...")
    render_qr_image(args.link).save(args.output)
    print(f"[*] QR Code image saved as '{args.output}'.")
