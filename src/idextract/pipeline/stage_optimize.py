"""Optimize Stage - Resize to the target box and re-encode.

Always runs. Output dimensions fit inside the target box while keeping the
aspect ratio; encoding uses the configured quality factor and is lowered
stepwise when the result exceeds the size limit.
"""

import logging

from PIL import Image

from idextract.models import ImageFormat, ProcessingOptions
from idextract.pipeline.raster import RasterImage

logger = logging.getLogger(__name__)

MIN_QUALITY = 0.3
QUALITY_STEP = 0.1


def compute_target_dimensions(
    width: int,
    height: int,
    options: ProcessingOptions,
) -> tuple[int, int]:
    """Output size for a source image.

    Args:
        width: Source width in pixels.
        height: Source height in pixels.
        options: Target box and aspect policy.

    Returns:
        Tuple of (width, height). Images already inside the box keep their
        size; larger ones are fitted to width when wider than the box's
        aspect ratio, otherwise to height.
    """
    target_width, target_height = options.target_width, options.target_height
    if not options.preserve_aspect_ratio:
        return target_width, target_height
    if width <= target_width and height <= target_height:
        return width, height

    source_aspect = width / height
    target_aspect = target_width / target_height
    if source_aspect > target_aspect:
        return target_width, max(1, round(target_width / source_aspect))
    return max(1, round(target_height * source_aspect)), target_height


def resize_image(image: RasterImage, width: int, height: int) -> RasterImage:
    """High-quality (Lanczos) resampling to an exact size."""
    if (width, height) == (image.width, image.height):
        return image.copy()
    resized = image.to_pil().resize((width, height), Image.Resampling.LANCZOS)
    return RasterImage.from_pil(resized, image.format)


def encode_within_limit(
    image: RasterImage,
    format: ImageFormat,
    quality: float,
    max_size: int,
) -> tuple[bytes, float]:
    """Encode, lowering lossy quality until the output fits ``max_size``.

    Returns:
        Tuple of (encoded_bytes, quality_used). The last attempt is returned
        even if it is still over the limit.
    """
    data = image.encode(format, quality)
    while len(data) > max_size and format is not ImageFormat.PNG and quality > MIN_QUALITY:
        quality = max(MIN_QUALITY, round(quality - QUALITY_STEP, 2))
        data = image.encode(format, quality)
        logger.debug("Re-encoded at quality %.2f: %d bytes", quality, len(data))
    return data, quality


def optimize_image(image: RasterImage, options: ProcessingOptions) -> tuple[RasterImage, bytes, float]:
    """Resize into the target box and encode.

    Returns:
        Tuple of (resized_image, encoded_bytes, quality_used)
    """
    width, height = compute_target_dimensions(image.width, image.height, options)
    resized = resize_image(image, width, height)
    data, quality = encode_within_limit(
        resized, options.output_format, options.quality, options.max_file_size
    )
    return resized, data, quality
