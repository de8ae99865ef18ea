"""Quality Stage - Pixel statistics that gate optional enhancement.

Computes brightness, contrast, sharpness, noise, resolution and color
balance on a down-sampled copy of the image and combines them into a single
score. The score only decides whether enhancement and denoising run; it
never rejects a file. All computations are deterministic.
"""

import logging

import cv2
import numpy as np

from idextract.models import ImageMetadata, QualityMetrics
from idextract.pipeline.raster import RasterImage

logger = logging.getLogger(__name__)

ANALYSIS_MAX_WIDTH = 800
ANALYSIS_MAX_HEIGHT = 600

LUMINANCE_WEIGHTS = np.array([0.2126, 0.7152, 0.0722], dtype=np.float32)
LAPLACIAN_KERNEL = np.array([[0, -1, 0], [-1, 4, -1], [0, -1, 0]], dtype=np.float32)

SHARPNESS_SCALE = 1000.0
NOISE_SCALE = 500.0
NOISE_WINDOW_RADIUS = 5
NOISE_STEP = 5

QUALITY_WEIGHTS = {
    "sharpness": 0.25,
    "contrast": 0.20,
    "brightness": 0.15,
    "noise": 0.15,
    "resolution": 0.15,
    "color_balance": 0.10,
}


def _clamp(value: float) -> float:
    return float(min(1.0, max(0.0, value)))


def downsample_for_analysis(
    image: RasterImage,
    max_width: int = ANALYSIS_MAX_WIDTH,
    max_height: int = ANALYSIS_MAX_HEIGHT,
) -> np.ndarray:
    """Shrink into a bounded canvas; each side is capped independently."""
    width = min(image.width, max_width)
    height = min(image.height, max_height)
    if (width, height) == (image.width, image.height):
        return image.pixels
    return cv2.resize(image.pixels, (width, height), interpolation=cv2.INTER_AREA)


def luminance(pixels: np.ndarray) -> np.ndarray:
    """Rec. 709 luminance of an RGB array, float32."""
    return pixels.astype(np.float32) @ LUMINANCE_WEIGHTS


def mean_gray(pixels: np.ndarray) -> np.ndarray:
    """Unweighted channel mean, float32."""
    return pixels.astype(np.float32).mean(axis=2)


def measure_brightness(luma: np.ndarray) -> float:
    return _clamp(float(luma.mean()) / 255.0)


def measure_contrast(luma: np.ndarray) -> float:
    return _clamp(float(luma.std()) / 128.0)


def measure_sharpness(gray: np.ndarray) -> float:
    """Variance of the Laplacian response, border excluded."""
    if gray.shape[0] < 3 or gray.shape[1] < 3:
        return 0.0
    response = cv2.filter2D(gray, cv2.CV_32F, LAPLACIAN_KERNEL)[1:-1, 1:-1]
    return _clamp(float(response.var()) / SHARPNESS_SCALE)


def measure_noise(gray: np.ndarray) -> float:
    """Mean local variance over 11x11 windows sampled on a 5px grid.

    A rough proxy: it also rises on dense fine detail, which is acceptable
    because it only gates an optional light blur.
    """
    radius = NOISE_WINDOW_RADIUS
    height, width = gray.shape
    if height <= 2 * radius or width <= 2 * radius:
        return 0.0
    size = 2 * radius + 1
    local_mean = cv2.blur(gray, (size, size), borderType=cv2.BORDER_REFLECT)
    local_sq = cv2.blur(gray * gray, (size, size), borderType=cv2.BORDER_REFLECT)
    variance = np.clip(local_sq - local_mean * local_mean, 0.0, None)
    samples = variance[radius : height - radius : NOISE_STEP, radius : width - radius : NOISE_STEP]
    if samples.size == 0:
        return 0.0
    return _clamp(float(samples.mean()) / NOISE_SCALE)


def measure_resolution(width: int, height: int) -> float:
    """Score the original resolution for text legibility."""
    long_side, short_side = max(width, height), min(width, height)
    pixels = width * height
    if long_side < 640 or short_side < 480:
        return 0.0
    if long_side < 1024 or short_side < 768:
        return _clamp(pixels / (1024 * 768) * 0.8)
    if pixels <= 2048 * 1536:
        return 1.0
    excess = pixels / (2048 * 1536) - 1.0
    return max(0.6, 1.0 - excess * 0.3)


def measure_color_balance(pixels: np.ndarray) -> float:
    """1 for neutral images, lower when one channel dominates."""
    channel_means = pixels.reshape(-1, 3).astype(np.float32).mean(axis=0)
    average = float(channel_means.mean())
    deviation = float(np.abs(channel_means - average).mean()) / 255.0
    return _clamp(1.0 - deviation * 2.0)


def brightness_score(brightness: float) -> float:
    """Penalize distance from a comfortable mid-bright exposure (0.6)."""
    if brightness < 0.3 or brightness > 0.8:
        return max(0.0, 1.0 - abs(brightness - 0.6) * 2.0)
    return 1.0 - abs(brightness - 0.6)


def overall_score(
    sharpness: float,
    contrast: float,
    brightness: float,
    noise_level: float,
    resolution: float,
    color_balance: float,
) -> float:
    """Weighted combination favouring sharpness and contrast."""
    score = (
        QUALITY_WEIGHTS["sharpness"] * sharpness
        + QUALITY_WEIGHTS["contrast"] * contrast
        + QUALITY_WEIGHTS["brightness"] * brightness_score(brightness)
        + QUALITY_WEIGHTS["noise"] * (1.0 - noise_level)
        + QUALITY_WEIGHTS["resolution"] * resolution
        + QUALITY_WEIGHTS["color_balance"] * color_balance
    )
    return _clamp(score)


def assess(score: float) -> str:
    if score >= 0.9:
        return "Excellent"
    elif score >= 0.7:
        return "Good"
    elif score >= 0.5:
        return "Fair"
    return "Poor"


def recommendations(
    sharpness: float,
    contrast: float,
    brightness: float,
    noise_level: float,
    resolution: float,
    color_balance: float,
) -> list[str]:
    """Human-readable hints for retaking the photo."""
    hints = []
    if sharpness < 0.5:
        hints.append("Image appears blurry. Hold the camera steady and make sure the text is in focus.")
    if contrast < 0.4:
        hints.append("Low contrast. Photograph the document against a plain, contrasting background.")
    if brightness < 0.4:
        hints.append("Image is too dark. Use better lighting.")
    elif brightness > 0.8:
        hints.append("Image is too bright. Avoid direct flash and glare.")
    if noise_level > 0.6:
        hints.append("High noise level. Use better lighting or a lower ISO setting.")
    if resolution < 0.5:
        hints.append("Low resolution. Move closer to the document or use a higher camera resolution.")
    if color_balance < 0.5:
        hints.append("Color balance issues. Avoid colored lighting.")
    if not hints:
        hints.append("Image quality is good for processing.")
    return hints


def analyze_quality(image: RasterImage, metadata: ImageMetadata) -> QualityMetrics:
    """Compute quality metrics for a decoded image.

    Args:
        image: Decoded image at original resolution.
        metadata: Metadata of the original file (for the resolution score).

    Returns:
        QualityMetrics with all values in [0, 1].
    """
    pixels = downsample_for_analysis(image)
    luma = luminance(pixels)
    gray = mean_gray(pixels)

    brightness = measure_brightness(luma)
    contrast = measure_contrast(luma)
    sharpness = measure_sharpness(gray)
    noise_level = measure_noise(gray)
    resolution = measure_resolution(metadata.width, metadata.height)
    color_balance = measure_color_balance(pixels)

    score = overall_score(sharpness, contrast, brightness, noise_level, resolution, color_balance)
    logger.debug(
        "Quality: sharpness=%.2f contrast=%.2f brightness=%.2f noise=%.2f overall=%.2f",
        sharpness,
        contrast,
        brightness,
        noise_level,
        score,
    )

    return QualityMetrics(
        brightness=brightness,
        contrast=contrast,
        sharpness=sharpness,
        noise_level=noise_level,
        resolution=resolution,
        color_balance=color_balance,
        overall_score=score,
        assessment=assess(score),
        recommendations=recommendations(
            sharpness, contrast, brightness, noise_level, resolution, color_balance
        ),
    )
