"""Pytest configuration and fixtures."""

import io
import socket

import numpy as np
import pytest
from PIL import Image

from idextract.models import FieldSet, ImageFormat, ImageMetadata


def encode_image(pixels: np.ndarray, fmt: str = "JPEG") -> bytes:
    """Encode an RGB array with Pillow."""
    buffer = io.BytesIO()
    Image.fromarray(pixels).save(buffer, format=fmt)
    return buffer.getvalue()


def gradient_pixels(width: int, height: int) -> np.ndarray:
    """Smooth RGB gradient (low noise, mid brightness)."""
    x = np.linspace(60, 200, width, dtype=np.float32)
    y = np.linspace(0, 40, height, dtype=np.float32)
    gray = (y[:, None] + x[None, :]).clip(0, 255).astype(np.uint8)
    return np.stack([gray, gray, gray], axis=-1)


def card_pixels(width: int = 800, height: int = 500) -> np.ndarray:
    """Light card with dark horizontal text lines."""
    pixels = np.full((height, width, 3), 230, dtype=np.uint8)
    for top in range(40, height - 40, 40):
        pixels[top : top + 6, 40 : width - 40] = 20
    return pixels


def metadata_for(width: int, height: int, fmt: ImageFormat = ImageFormat.JPEG) -> ImageMetadata:
    return ImageMetadata(
        width=width,
        height=height,
        size_bytes=100_000,
        format=fmt,
        aspect_ratio=width / height,
    )


@pytest.fixture
def jpeg_bytes():
    """Small landscape JPEG."""
    return encode_image(gradient_pixels(640, 400))


@pytest.fixture
def png_bytes():
    return encode_image(gradient_pixels(640, 400), "PNG")


@pytest.fixture
def portrait_jpeg(tmp_path):
    """2000x3000 portrait photo on disk."""
    path = tmp_path / "portrait.jpg"
    path.write_bytes(encode_image(gradient_pixels(2000, 3000)))
    return path


@pytest.fixture
def complete_fields():
    """A consistent, fully populated field set."""
    return FieldSet(
        nume="POPESCU",
        prenume="MARIA ELENA",
        cnp="2850315401233",
        nationalitate="ROMÂNĂ",
        sex="F",
        data_nasterii="15.03.1985",
        locul_nasterii="MUN. BUCUREȘTI",
        domiciliul="STR. VICTORIEI NR. 25, BUCUREȘTI",
        seria="RX",
        numar="123456",
        data_eliberarii="20.06.2020",
        eliberat_de="SPCLEP SECTOR 1",
        valabil_pana_la="15.03.2030",
    )


@pytest.fixture
def output_dir(tmp_path):
    """Create a temporary output directory."""
    out_dir = tmp_path / "output"
    out_dir.mkdir()
    return out_dir


@pytest.fixture
def silent_server():
    """Base URL of a TCP listener that takes connections and never answers."""
    server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server.bind(("127.0.0.1", 0))
    server.listen(8)
    host, port = server.getsockname()
    yield f"http://{host}:{port}"
    server.close()
