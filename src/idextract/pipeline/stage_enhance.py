"""Enhancement Stage - Conditional exposure, contrast, sharpening and denoising.

Runs after resizing so the kernels work on the target resolution. Each
operation is a pure function from one RasterImage to a new one.

Gates:
- exposure when correct_exposure is set and the image is too dark or too bright
- enhancement when enhance_quality is set and the quality score is low
- denoise when reduce_noise is set and the noise level is high
- grayscale when requested
"""

from typing import Optional

import cv2
import numpy as np
from PIL import ImageFilter

from idextract.config import settings
from idextract.models import EnhancementMode, ProcessingOptions, QualityMetrics
from idextract.pipeline.raster import RasterImage

DEFAULT_SHARPEN_CENTER = 9.0
ADAPTIVE_BLOCK_SIZE = 25
ADAPTIVE_C = 10
DENOISE_RADIUS = 0.5

# Exposure gates match the "too dark" and "too bright" quality hints
DARK_THRESHOLD = 0.4
BRIGHT_THRESHOLD = 0.8
BRIGHTNESS_BOOST = 1.1
DARK_GAMMA = 1.5
BRIGHT_GAMMA = 0.7


def should_enhance(
    metrics: QualityMetrics,
    options: ProcessingOptions,
    quality_gate: Optional[float] = None,
) -> bool:
    gate = settings.quality_gate if quality_gate is None else quality_gate
    return options.enhance_quality and metrics.overall_score < gate


def should_denoise(
    metrics: QualityMetrics,
    options: ProcessingOptions,
    noise_threshold: Optional[float] = None,
) -> bool:
    threshold = settings.noise_threshold if noise_threshold is None else noise_threshold
    return options.reduce_noise and metrics.noise_level > threshold


def enhance_contrast(image: RasterImage, factor: float) -> RasterImage:
    """Linear stretch around mid-gray: ``128 + factor * (v - 128)``."""
    stretched = 128.0 + factor * (image.pixels.astype(np.float32) - 128.0)
    return image.with_pixels(np.clip(stretched, 0, 255).astype(np.uint8))


def sharpen_kernel(center: float = DEFAULT_SHARPEN_CENTER) -> np.ndarray:
    """3x3 kernel with a strong centre and -1 neighbours, scaled to unit sum."""
    if center <= 8:
        raise ValueError("Sharpen centre weight must exceed 8")
    kernel = -np.ones((3, 3), dtype=np.float32)
    kernel[1, 1] = center
    return kernel / kernel.sum()


def sharpen(image: RasterImage, center: float = DEFAULT_SHARPEN_CENTER) -> RasterImage:
    """Convolve with a sharpening kernel; results are clamped to 0-255."""
    response = cv2.filter2D(
        image.pixels.astype(np.float32),
        cv2.CV_32F,
        sharpen_kernel(center),
        borderType=cv2.BORDER_REPLICATE,
    )
    return image.with_pixels(np.clip(response, 0, 255).astype(np.uint8))


def adaptive_threshold(
    image: RasterImage,
    block_size: int = ADAPTIVE_BLOCK_SIZE,
    c: int = ADAPTIVE_C,
) -> RasterImage:
    """Binarize against the local mean minus ``c``.

    More robust than a global cutoff when lighting varies across the card.
    """
    if block_size % 2 == 0 or block_size < 3:
        raise ValueError("block_size must be an odd number >= 3")
    gray = cv2.cvtColor(image.pixels, cv2.COLOR_RGB2GRAY)
    binary = cv2.adaptiveThreshold(
        gray, 255, cv2.ADAPTIVE_THRESH_MEAN_C, cv2.THRESH_BINARY, block_size, c
    )
    return image.with_pixels(cv2.cvtColor(binary, cv2.COLOR_GRAY2RGB))


def denoise(image: RasterImage, radius: float = DENOISE_RADIUS) -> RasterImage:
    """Light Gaussian blur; kept minimal so thin strokes survive."""
    blurred = image.to_pil().filter(ImageFilter.GaussianBlur(radius=radius))
    return RasterImage.from_pil(blurred, image.format)


def enhance_image(
    image: RasterImage,
    mode: EnhancementMode = EnhancementMode.STANDARD,
    sharpen_center: float = DEFAULT_SHARPEN_CENTER,
) -> RasterImage:
    """Contrast stretch followed by sharpening."""
    return sharpen(enhance_contrast(image, mode.contrast_factor), sharpen_center)


def adjust_brightness(image: RasterImage, factor: float) -> RasterImage:
    """Scale every channel by ``factor``; results are clamped to 0-255."""
    if factor <= 0:
        raise ValueError("Brightness factor must be positive")
    return _apply_lut(image, np.arange(256, dtype=np.float32) * factor)


def gamma_correct(image: RasterImage, gamma: float) -> RasterImage:
    """Map ``v`` to ``255 * (v / 255) ** (1 / gamma)``.

    Gamma above 1 lifts midtones, below 1 darkens them; black and white are
    fixed points.
    """
    if gamma <= 0:
        raise ValueError("Gamma must be positive")
    levels = np.arange(256, dtype=np.float32) / 255.0
    return _apply_lut(image, np.round(255.0 * levels ** (1.0 / gamma)))


def _apply_lut(image: RasterImage, table: np.ndarray) -> RasterImage:
    lut = np.clip(table, 0, 255).astype(np.uint8)
    return image.with_pixels(cv2.LUT(image.pixels, lut))


def exposure_gamma(brightness: float) -> Optional[float]:
    """Gamma that corrects the measured brightness, or None when it is fine."""
    if brightness < DARK_THRESHOLD:
        return DARK_GAMMA
    if brightness > BRIGHT_THRESHOLD:
        return BRIGHT_GAMMA
    return None


def should_correct_exposure(metrics: QualityMetrics, options: ProcessingOptions) -> bool:
    return options.correct_exposure and exposure_gamma(metrics.brightness) is not None


def correct_exposure(image: RasterImage, brightness: float) -> RasterImage:
    """Brighten then lift a dark image, or pull down an overexposed one.

    Args:
        image: Image to correct.
        brightness: Mean luminance of the source image, 0-1.

    Returns:
        Corrected image, or the input unchanged when exposure is acceptable.
    """
    gamma = exposure_gamma(brightness)
    if gamma is None:
        return image
    if brightness < DARK_THRESHOLD:
        image = adjust_brightness(image, BRIGHTNESS_BOOST)
    return gamma_correct(image, gamma)


def to_grayscale(image: RasterImage) -> RasterImage:
    """Rec. 601 luma replicated over the three channels."""
    gray = cv2.cvtColor(image.pixels, cv2.COLOR_RGB2GRAY)
    return image.with_pixels(cv2.cvtColor(gray, cv2.COLOR_GRAY2RGB))
