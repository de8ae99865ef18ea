"""Image pipeline stages for ID document preprocessing.

Deterministic stages (no model calls):
1. stage_validate - size, MIME type, magic bytes and extension checks
2. stage_quality - brightness/contrast/sharpness/noise metrics
3. stage_orient - rotation detection (edge density + aspect) and correction
4. stage_optimize - fit to the target box and re-encode
5. stage_enhance - contrast stretch, sharpening, thresholding, denoise

The orchestrator sequences the stages and records per-stage timings.
"""

from .orchestrator import ImageProcessor, recommend_options
from .raster import RasterImage
from .stage_enhance import (
    adaptive_threshold,
    denoise,
    enhance_contrast,
    enhance_image,
    sharpen,
)
from .stage_optimize import compute_target_dimensions, optimize_image
from .stage_orient import OrientationDetector, correct_orientation, quick_check, rotate_image
from .stage_quality import analyze_quality
from .stage_validate import detect_mime_type, validate_dimensions, validate_file

__all__ = [
    # Orchestration
    "ImageProcessor",
    "recommend_options",
    "RasterImage",
    # Validation
    "detect_mime_type",
    "validate_dimensions",
    "validate_file",
    # Quality
    "analyze_quality",
    # Orientation
    "OrientationDetector",
    "correct_orientation",
    "quick_check",
    "rotate_image",
    # Optimize
    "compute_target_dimensions",
    "optimize_image",
    # Enhancement
    "adaptive_threshold",
    "denoise",
    "enhance_contrast",
    "enhance_image",
    "sharpen",
]
