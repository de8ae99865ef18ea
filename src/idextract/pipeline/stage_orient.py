"""Orientation Stage - Detect and correct document rotation.

Two independent estimators are combined:
- Edge density: text lines on a landscape card produce far more horizontal
  than vertical edges.
- Aspect ratio: ID cards are landscape with a ratio close to 1.6.

A cheap aspect-only quick check short-circuits the edge analysis when the
image is clearly portrait.
"""

import logging
import math

import cv2
import numpy as np

from idextract.models import DocumentOrientation, ImageMetadata, Orientation, RotationResult
from idextract.pipeline.raster import RasterImage

logger = logging.getLogger(__name__)

CONFIDENCE_THRESHOLD = 0.6
EXPECTED_ASPECT_RATIO = 1.6
ASPECT_WEIGHT = 0.7

EDGE_MAX_WIDTH = 400
EDGE_MAX_HEIGHT = 300
EDGE_THRESHOLD = 50.0

# Responds to intensity changes along y, i.e. horizontal edges
HORIZONTAL_EDGE_KERNEL = np.array([[-1, -2, -1], [0, 0, 0], [1, 2, 1]], dtype=np.float32)
VERTICAL_EDGE_KERNEL = np.array([[-1, 0, 1], [-2, 0, 2], [-1, 0, 1]], dtype=np.float32)


def _degrees_to_orientation(degrees: float) -> Orientation:
    """Snap an angle to the nearest multiple of 90 degrees.

    Args:
        degrees: Rotation in degrees, any range.

    Returns:
        Corresponding Orientation enum value
    """
    snapped = int(math.floor(degrees / 90.0 + 0.5)) * 90
    return Orientation(snapped % 360)


def _layout_for(angle: Orientation) -> DocumentOrientation:
    if angle in (Orientation.DEG_0, Orientation.DEG_180):
        return DocumentOrientation.LANDSCAPE
    return DocumentOrientation.PORTRAIT


def edge_densities(image: RasterImage) -> tuple[float, float]:
    """Fraction of pixels on horizontal and on vertical edges.

    Args:
        image: Image to analyze; a copy bounded to 400x300 is used.

    Returns:
        Tuple of (horizontal_density, vertical_density)
    """
    width = min(image.width, EDGE_MAX_WIDTH)
    height = min(image.height, EDGE_MAX_HEIGHT)
    pixels = image.pixels
    if (width, height) != (image.width, image.height):
        pixels = cv2.resize(pixels, (width, height), interpolation=cv2.INTER_AREA)

    if width < 3 or height < 3:
        return 0.0, 0.0

    gray = pixels.astype(np.float32).mean(axis=2)
    horizontal = cv2.filter2D(gray, cv2.CV_32F, HORIZONTAL_EDGE_KERNEL)[1:-1, 1:-1]
    vertical = cv2.filter2D(gray, cv2.CV_32F, VERTICAL_EDGE_KERNEL)[1:-1, 1:-1]

    total = horizontal.size
    return (
        float(np.count_nonzero(np.abs(horizontal) > EDGE_THRESHOLD)) / total,
        float(np.count_nonzero(np.abs(vertical) > EDGE_THRESHOLD)) / total,
    )


def detect_edge_orientation(image: RasterImage) -> tuple[Orientation, float]:
    """Estimate rotation from the ratio of horizontal to vertical edges.

    Args:
        image: Image to analyze.

    Returns:
        Tuple of (detected_orientation, confidence)
    """
    horizontal, vertical = edge_densities(image)
    if horizontal == 0.0 and vertical == 0.0:
        return Orientation.DEG_0, 0.3
    ratio = horizontal / (vertical + 0.001)

    if ratio > 1.5:
        return Orientation.DEG_0, min(ratio / 3.0, 1.0)
    elif ratio < 0.7:
        confidence = 1.0 if ratio <= 0 else min((1.0 / ratio) / 3.0, 1.0)
        return Orientation.DEG_90, confidence
    return Orientation.DEG_0, 0.3


def detect_aspect_orientation(metadata: ImageMetadata) -> tuple[Orientation, float]:
    """Estimate rotation by comparing the aspect ratio with an ID card's.

    The estimate is secondary to edge analysis, so its confidence is
    discounted by a fixed weight.
    """
    aspect = metadata.aspect_ratio
    normal_diff = abs(aspect - EXPECTED_ASPECT_RATIO)
    rotated_diff = abs(1.0 / aspect - EXPECTED_ASPECT_RATIO)

    if rotated_diff < normal_diff:
        return Orientation.DEG_90, max(0.0, 1.0 - rotated_diff) * ASPECT_WEIGHT
    return Orientation.DEG_0, max(0.0, 1.0 - normal_diff) * ASPECT_WEIGHT


def combine_estimates(estimates: list[tuple[Orientation, float]]) -> RotationResult:
    """Merge estimates into one rotation decision.

    The angle is the confidence-weighted mean snapped to a multiple of 90;
    the combined confidence is the strongest single confidence.
    """
    total = sum(confidence for _, confidence in estimates)
    if total <= 0:
        return RotationResult(
            angle=Orientation.DEG_0,
            confidence=0.0,
            should_correct=False,
            orientation=DocumentOrientation.LANDSCAPE,
        )

    weighted = sum(int(angle) * confidence for angle, confidence in estimates) / total
    angle = _degrees_to_orientation(weighted)
    confidence = min(1.0, max(confidence for _, confidence in estimates))

    return RotationResult(
        angle=angle,
        confidence=confidence,
        should_correct=confidence > CONFIDENCE_THRESHOLD and angle != Orientation.DEG_0,
        orientation=_layout_for(angle),
    )


def quick_check(metadata: ImageMetadata) -> RotationResult:
    """Aspect-only rotation check, no pixel access."""
    if metadata.aspect_ratio < 1.0:
        return RotationResult(
            angle=Orientation.DEG_90,
            confidence=0.8,
            should_correct=True,
            orientation=DocumentOrientation.PORTRAIT,
        )
    return RotationResult(
        angle=Orientation.DEG_0,
        confidence=0.7,
        should_correct=False,
        orientation=DocumentOrientation.LANDSCAPE,
    )


class OrientationDetector:
    """Detects document rotation.

    Uses the aspect quick check first and falls back to the combined edge
    and aspect estimators for landscape images.
    """

    def __init__(self, use_quick_check: bool = True, use_edges: bool = True):
        """Initialize orientation detector.

        Args:
            use_quick_check: Short-circuit portrait images with the quick check.
            use_edges: Include the edge-density estimator.
        """
        self.use_quick_check = use_quick_check
        self.use_edges = use_edges

    def detect(self, image: RasterImage, metadata: ImageMetadata) -> RotationResult:
        """Detect the rotation of a decoded image.

        Args:
            image: Decoded image.
            metadata: Metadata of the same image.

        Returns:
            RotationResult describing the correction to apply.
        """
        if self.use_quick_check:
            quick = quick_check(metadata)
            if quick.orientation is DocumentOrientation.PORTRAIT:
                logger.debug("Quick check: portrait image, rotating %d degrees", quick.angle)
                return quick

        estimates = [detect_aspect_orientation(metadata)]
        if self.use_edges:
            estimates.insert(0, detect_edge_orientation(image))

        result = combine_estimates(estimates)
        logger.debug(
            "Rotation estimate: angle=%d confidence=%.2f correct=%s",
            result.angle,
            result.confidence,
            result.should_correct,
        )
        return result


def rotated_dimensions(width: int, height: int, degrees: float) -> tuple[int, int]:
    """Canvas size that holds the whole image after rotation."""
    theta = math.radians(degrees)
    cos, sin = abs(math.cos(theta)), abs(math.sin(theta))
    return int(round(width * cos + height * sin)), int(round(width * sin + height * cos))


def rotate_image(image: RasterImage, degrees: float, fill: int = 255) -> RasterImage:
    """Rotate clockwise about the centre without clipping.

    Args:
        image: Image to rotate.
        degrees: Clockwise angle. Multiples of 90 are exact.
        fill: Gray level for canvas areas not covered by the image.

    Returns:
        Rotated image on a canvas recomputed to fit.
    """
    degrees = degrees % 360
    if degrees == 0:
        return image.copy()
    elif degrees == 90:
        return image.with_pixels(cv2.rotate(image.pixels, cv2.ROTATE_90_CLOCKWISE))
    elif degrees == 180:
        return image.with_pixels(cv2.rotate(image.pixels, cv2.ROTATE_180))
    elif degrees == 270:
        return image.with_pixels(cv2.rotate(image.pixels, cv2.ROTATE_90_COUNTERCLOCKWISE))

    new_width, new_height = rotated_dimensions(image.width, image.height, degrees)
    center = (image.width / 2.0, image.height / 2.0)
    # OpenCV angles are counter-clockwise
    matrix = cv2.getRotationMatrix2D(center, -degrees, 1.0)
    matrix[0, 2] += new_width / 2.0 - center[0]
    matrix[1, 2] += new_height / 2.0 - center[1]
    rotated = cv2.warpAffine(
        image.pixels,
        matrix,
        (new_width, new_height),
        flags=cv2.INTER_LINEAR,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=(fill, fill, fill),
    )
    return image.with_pixels(rotated)


def correct_orientation(image: RasterImage, rotation: RotationResult) -> RasterImage:
    """Apply a detected rotation when it should be corrected.

    Args:
        image: Image as decoded.
        rotation: Detection result.

    Returns:
        Corrected image, or the input unchanged.
    """
    if not rotation.should_correct or rotation.angle == Orientation.DEG_0:
        return image
    return rotate_image(image, int(rotation.angle))
