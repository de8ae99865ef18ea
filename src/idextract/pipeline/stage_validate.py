"""Validation Stage - Cheap structural checks on an incoming file.

Runs before any decoding. Checks, in order: non-empty, size limit, declared
MIME type, magic bytes and file extension. Expected failures are reported
as a ``FileValidationResult`` naming the failing check; only an unreadable
input stream raises.
"""

import hashlib
import logging
from pathlib import Path
from typing import BinaryIO, Optional, Union

from idextract.config import settings
from idextract.errors import ErrorCode
from idextract.models import DimensionReport, FileCheck, FileValidationResult, ImageMetadata

logger = logging.getLogger(__name__)

# (offset, signature) pairs; every pair of one entry must match
FILE_SIGNATURES: dict[str, tuple[tuple[int, bytes], ...]] = {
    "image/jpeg": ((0, b"\xff\xd8\xff"),),
    "image/png": ((0, b"\x89PNG\r\n\x1a\n"),),
    "image/webp": ((0, b"RIFF"), (8, b"WEBP")),
    "application/pdf": ((0, b"%PDF"),),
}

EXTENSIONS: dict[str, tuple[str, ...]] = {
    "image/jpeg": (".jpg", ".jpeg"),
    "image/png": (".png",),
    "image/webp": (".webp",),
    "application/pdf": (".pdf",),
}

SUPPORTED_MIME_TYPES = tuple(FILE_SIGNATURES)

MESSAGES: dict[FileCheck, str] = {
    FileCheck.EMPTY_FILE: "File is empty.",
    FileCheck.FILE_TOO_LARGE: "File size too large. Maximum size is {limit_mb:.0f}MB.",
    FileCheck.INVALID_MIME_TYPE: "Invalid file type. Please upload JPG, PNG, WEBP, or PDF files.",
    FileCheck.INVALID_SIGNATURE: (
        "File appears to be corrupted or its content does not match the declared type."
    ),
    FileCheck.INVALID_EXTENSION: "File extension does not match the declared type.",
}

ERROR_CODES: dict[FileCheck, ErrorCode] = {
    FileCheck.EMPTY_FILE: ErrorCode.INVALID_IMAGE,
    FileCheck.FILE_TOO_LARGE: ErrorCode.IMAGE_TOO_LARGE,
    FileCheck.INVALID_MIME_TYPE: ErrorCode.UNSUPPORTED_FORMAT,
    FileCheck.INVALID_SIGNATURE: ErrorCode.INVALID_IMAGE,
    FileCheck.INVALID_EXTENSION: ErrorCode.UNSUPPORTED_FORMAT,
}

# Dimension constraints for a photographed ID card
MIN_WIDTH, MIN_HEIGHT = 300, 200
MAX_WIDTH, MAX_HEIGHT = 8000, 6000
MIN_ASPECT, MAX_ASPECT = 0.5, 3.0
ID_ASPECT_RATIO = 1.6
RECOMMENDED_WIDTH, RECOMMENDED_HEIGHT = 500, 300


def compute_content_hash(data: bytes) -> str:
    """SHA-256 hex digest of in-memory file content."""
    return hashlib.sha256(data).hexdigest()


def matches_signature(data: bytes, mime_type: str) -> bool:
    signatures = FILE_SIGNATURES.get(mime_type, ())
    return bool(signatures) and all(
        data[offset : offset + len(signature)] == signature for offset, signature in signatures
    )


def detect_mime_type(data: bytes) -> Optional[str]:
    """Identify a supported type from magic bytes."""
    for mime_type in SUPPORTED_MIME_TYPES:
        if matches_signature(data, mime_type):
            return mime_type
    return None


def _read(source: Union[bytes, BinaryIO]) -> bytes:
    if isinstance(source, (bytes, bytearray, memoryview)):
        return bytes(source)
    # OSError from an unreadable stream propagates to the caller
    return source.read()


def _fail(check: FileCheck, detected: Optional[str], **fmt) -> FileValidationResult:
    message = MESSAGES[check].format(**fmt)
    logger.info("File rejected: %s", check.value)
    return FileValidationResult(
        is_valid=False,
        failed_check=check,
        message=message,
        detected_mime_type=detected,
    )


def validate_file(
    source: Union[bytes, BinaryIO],
    mime_type: str,
    declared_size: Optional[int] = None,
    filename: Optional[str] = None,
    max_size: Optional[int] = None,
) -> FileValidationResult:
    """Run the structural checks on an incoming file.

    Args:
        source: File content or a readable binary stream.
        mime_type: MIME type declared by the uploader.
        declared_size: Size declared by the uploader; defaults to the
            actual content length.
        filename: Original file name, used for the extension check.
        max_size: Size limit in bytes (default from settings, 10MB).

    Returns:
        FileValidationResult naming the first failing check, if any.
    """
    data = _read(source)
    size = declared_size if declared_size is not None else len(data)
    limit = settings.max_upload_bytes if max_size is None else max_size
    mime_type = (mime_type or "").strip().lower()
    detected = detect_mime_type(data)

    if size <= 0 or not data:
        return _fail(FileCheck.EMPTY_FILE, detected)
    if size > limit or len(data) > limit:
        return _fail(FileCheck.FILE_TOO_LARGE, detected, limit_mb=limit / (1024 * 1024))
    if mime_type not in SUPPORTED_MIME_TYPES:
        return _fail(FileCheck.INVALID_MIME_TYPE, detected)
    if not matches_signature(data, mime_type):
        return _fail(FileCheck.INVALID_SIGNATURE, detected)
    if filename is not None and Path(filename).suffix.lower() not in EXTENSIONS[mime_type]:
        return _fail(FileCheck.INVALID_EXTENSION, detected)

    return FileValidationResult(is_valid=True, detected_mime_type=detected)


def validate_dimensions(metadata: ImageMetadata) -> DimensionReport:
    """Check decoded dimensions against ID photo constraints.

    Hard limits produce errors; properties that only hurt extraction
    accuracy (portrait layout, unusual aspect, low resolution) produce
    warnings.
    """
    errors: list[str] = []
    warnings: list[str] = []
    width, height, aspect = metadata.width, metadata.height, metadata.aspect_ratio

    if width < MIN_WIDTH or height < MIN_HEIGHT:
        errors.append(f"Image too small: {width}x{height}, minimum is {MIN_WIDTH}x{MIN_HEIGHT}")
    if width > MAX_WIDTH or height > MAX_HEIGHT:
        errors.append(f"Image too large: {width}x{height}, maximum is {MAX_WIDTH}x{MAX_HEIGHT}")
    if not MIN_ASPECT <= aspect <= MAX_ASPECT:
        errors.append(
            f"Unusual aspect ratio {aspect:.2f}, expected between {MIN_ASPECT} and {MAX_ASPECT}"
        )

    if aspect < 1.0:
        warnings.append("Image is in portrait orientation; ID cards are usually landscape")
    if abs(aspect - ID_ASPECT_RATIO) > 0.5:
        warnings.append(
            f"Aspect ratio {aspect:.2f} differs from a typical ID card ({ID_ASPECT_RATIO})"
        )
    if width < RECOMMENDED_WIDTH or height < RECOMMENDED_HEIGHT:
        warnings.append("Low resolution may reduce text recognition accuracy")

    return DimensionReport(is_valid=not errors, errors=errors, warnings=warnings)
