"""Owned RGB pixel buffer shared by the pipeline stages.

Stages take a ``RasterImage`` and return a new one; the input buffer is
never modified. Decoding uses Pillow for raster formats and PyMuPDF for
the first page of a PDF.
"""

import io
from typing import Optional

import fitz  # PyMuPDF
import numpy as np
from PIL import Image, ImageOps

from idextract.config import settings
from idextract.models import ImageFormat, ImageMetadata

PDF_MAGIC = b"%PDF"

_PIL_FORMATS = {
    "JPEG": ImageFormat.JPEG,
    "MPO": ImageFormat.JPEG,
    "PNG": ImageFormat.PNG,
    "WEBP": ImageFormat.WEBP,
}


class RasterImage:
    """RGB image stored row-major as a ``(height, width, 3)`` uint8 array."""

    channels = 3

    def __init__(
        self,
        pixels: np.ndarray,
        format: ImageFormat = ImageFormat.PNG,
        color_space: str = "srgb",
    ):
        if pixels.ndim != 3 or pixels.shape[2] != self.channels:
            raise ValueError(f"Expected HxWx3 pixel array, got shape {pixels.shape}")
        if pixels.dtype != np.uint8:
            raise ValueError(f"Expected uint8 pixels, got {pixels.dtype}")
        if pixels.shape[0] == 0 or pixels.shape[1] == 0:
            raise ValueError("Image has no pixels")
        self.pixels = np.ascontiguousarray(pixels)
        self.format = format
        self.color_space = color_space

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def stride(self) -> int:
        """Bytes per row."""
        return self.width * self.channels

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height

    def pixel(self, x: int, y: int) -> tuple[int, int, int]:
        """Read one pixel.

        Raises:
            IndexError: If (x, y) lies outside the image.
        """
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"Pixel ({x}, {y}) outside {self.width}x{self.height} image")
        r, g, b = self.pixels[y, x]
        return int(r), int(g), int(b)

    def copy(self) -> "RasterImage":
        return RasterImage(self.pixels.copy(), self.format, self.color_space)

    def with_pixels(self, pixels: np.ndarray) -> "RasterImage":
        """New image with the same encoding metadata and different pixels."""
        return RasterImage(pixels, self.format, self.color_space)

    @classmethod
    def from_pil(cls, image: Image.Image, format: ImageFormat = ImageFormat.PNG) -> "RasterImage":
        return cls(np.asarray(image.convert("RGB"), dtype=np.uint8).copy(), format)

    def to_pil(self) -> Image.Image:
        return Image.fromarray(self.pixels)

    @classmethod
    def from_bytes(cls, data: bytes, dpi: Optional[int] = None) -> "RasterImage":
        """Decode an encoded image.

        Args:
            data: JPEG, PNG, WEBP or PDF bytes. For a PDF only the first
                page is rendered.
            dpi: Render resolution for PDF input (default from settings).

        Returns:
            Decoded RGB image with EXIF orientation applied.

        Raises:
            ValueError: If the data holds no decodable image.
        """
        if data.startswith(PDF_MAGIC):
            return cls._from_pdf(data, dpi or settings.render_dpi)

        with Image.open(io.BytesIO(data)) as image:
            image.load()
            format = _PIL_FORMATS.get(image.format or "")
            if format is None:
                raise ValueError(f"Unsupported image encoding: {image.format}")
            image = ImageOps.exif_transpose(image)
            return cls.from_pil(image, format)

    @classmethod
    def _from_pdf(cls, data: bytes, dpi: int) -> "RasterImage":
        pdf_doc = fitz.open(stream=data, filetype="pdf")
        try:
            if len(pdf_doc) == 0:
                raise ValueError("PDF has no pages")
            page = pdf_doc[0]

            # PDF base resolution is 72 DPI
            zoom = dpi / 72.0
            pixmap = page.get_pixmap(matrix=fitz.Matrix(zoom, zoom), alpha=False)
            pixels = np.frombuffer(pixmap.samples, dtype=np.uint8).reshape(
                pixmap.height, pixmap.width, pixmap.n
            )
            return cls(pixels[:, :, :3].copy(), ImageFormat.PDF)
        finally:
            pdf_doc.close()

    def encode(self, format: ImageFormat = ImageFormat.JPEG, quality: float = 0.9) -> bytes:
        """Encode to bytes.

        Args:
            format: Output encoding. PDF output is not supported.
            quality: Quality factor in (0, 1] for lossy encoders.
        """
        buffer = io.BytesIO()
        image = self.to_pil()
        level = max(1, min(100, int(round(quality * 100))))
        if format is ImageFormat.JPEG:
            image.save(buffer, format="JPEG", quality=level, optimize=True)
        elif format is ImageFormat.WEBP:
            image.save(buffer, format="WEBP", quality=level)
        elif format is ImageFormat.PNG:
            image.save(buffer, format="PNG", optimize=True)
        else:
            raise ValueError(f"Cannot encode to {format.value}")
        return buffer.getvalue()

    def metadata(self, size_bytes: int, format: Optional[ImageFormat] = None) -> ImageMetadata:
        """Describe this image as stored in ``size_bytes`` bytes."""
        return ImageMetadata(
            width=self.width,
            height=self.height,
            size_bytes=size_bytes,
            format=format or self.format,
            aspect_ratio=self.aspect_ratio,
        )
