"""Base models and common types for the ID extraction pipeline."""

from enum import Enum

from pydantic import BaseModel


class Orientation(int, Enum):
    """Clockwise rotation in degrees."""

    DEG_0 = 0
    DEG_90 = 90
    DEG_180 = 180
    DEG_270 = 270


class DocumentOrientation(str, Enum):
    """Layout of the image as received."""

    LANDSCAPE = "landscape"
    PORTRAIT = "portrait"


class ConfidenceLevel(str, Enum):
    """Coarse confidence bucket for extracted values."""

    HIGH = "high"  # >0.8
    MEDIUM = "medium"  # 0.5-0.8
    LOW = "low"  # <=0.5


class ImageQualityHint(str, Enum):
    """Image quality context passed to the extraction prompt."""

    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


class FrozenModel(BaseModel):
    """Immutable model; produced once and never mutated."""

    class Config:
        frozen = True
        ser_json_bytes = "base64"
