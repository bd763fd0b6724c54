"""Tests for QR code rendering."""

import base64
import io

from PIL import Image

import qr_generator
from qr_generator import generate_qr_code


def test_png_data_url_with_fixed_size():
    data_url = generate_qr_code("https://payme.sk/?V=1&IBAN=SK7811000000002944276572&AM=0.01")

    assert data_url.startswith("data:image/png;base64,")
    png = base64.b64decode(data_url.split(",", 1)[1])
    img = Image.open(io.BytesIO(png))
    assert img.size == (256, 256)
    colors = {color for _count, color in img.convert("RGB").getcolors()}
    assert colors == {(0, 0, 0), (255, 255, 255)}


def test_failure_returns_empty_string(monkeypatch):
    def broken(data):
        raise RuntimeError("encoder exploded")

    monkeypatch.setattr(qr_generator, "render_qr_image", broken)

    assert generate_qr_code("anything") == ""
