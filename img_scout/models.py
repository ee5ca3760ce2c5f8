"""Data models used throughout the extraction pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePosixPath
from typing import List, Optional, Tuple, Union
from urllib.parse import urlparse

from .utils import format_file_size

UNKNOWN = "Unknown"
NO_ALT_TEXT = "No alt text"


class ImageFormat(str, Enum):
    """Canonical image format tags derived from URLs and content types."""

    JPEG = "JPEG"
    PNG = "PNG"
    GIF = "GIF"
    WEBP = "WebP"
    SVG = "SVG"
    BMP = "BMP"
    ICO = "ICO"
    UNKNOWN = "Unknown"


_EXTENSION_FORMATS = {
    "jpg": ImageFormat.JPEG,
    "jpeg": ImageFormat.JPEG,
    "png": ImageFormat.PNG,
    "gif": ImageFormat.GIF,
    "webp": ImageFormat.WEBP,
    "svg": ImageFormat.SVG,
    "bmp": ImageFormat.BMP,
    "ico": ImageFormat.ICO,
}

_MIME_SUBTYPES = {
    "jpeg": "jpeg",
    "jpg": "jpg",
    "pjpeg": "jpeg",
    "png": "png",
    "gif": "gif",
    "webp": "webp",
    "svg+xml": "svg",
    "bmp": "bmp",
    "x-icon": "ico",
    "vnd.microsoft.icon": "ico",
}


def classify_format(url: Optional[str]) -> ImageFormat:
    """Map the trailing extension of a URL path to a format tag."""
    if not url:
        return ImageFormat.UNKNOWN
    try:
        path = urlparse(url).path
    except ValueError:
        return ImageFormat.UNKNOWN
    suffix = PurePosixPath(path).suffix.lower().lstrip(".")
    return _EXTENSION_FORMATS.get(suffix, ImageFormat.UNKNOWN)


def format_from_extension(extension: Optional[str]) -> ImageFormat:
    if not extension:
        return ImageFormat.UNKNOWN
    return _EXTENSION_FORMATS.get(extension.lower().lstrip("."), ImageFormat.UNKNOWN)


def format_from_content_type(content_type: Optional[str]) -> ImageFormat:
    """Guess a format tag from an HTTP Content-Type header."""
    if not content_type:
        return ImageFormat.UNKNOWN
    parts = content_type.split(";")[0].strip().lower().split("/")
    if len(parts) != 2 or parts[0] != "image":
        return ImageFormat.UNKNOWN
    return format_from_extension(_MIME_SUBTYPES.get(parts[1]))


class Bucket(str, Enum):
    """Qualitative verdict for a size reduction."""

    EXCELLENT = "excellent"
    GOOD = "good"
    MODERATE = "moderate"
    MINIMAL = "minimal"
    POOR = "poor"
    NEUTRAL = "neutral"


class Confidence(str, Enum):
    """How much of a comparison rests on estimated sizes."""

    MEASURED = "measured"
    PARTIAL = "partial"
    ESTIMATED = "estimated"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ImageDescriptor:
    """Image reference discovered on a page, keyed by its absolute URL."""

    url: str
    width: str = UNKNOWN
    height: str = UNKNOWN
    alt_text: str = NO_ALT_TEXT
    format: ImageFormat = ImageFormat.UNKNOWN

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "width": self.width,
            "height": self.height,
            "alt": self.alt_text,
            "format": self.format.value,
        }


@dataclass(frozen=True)
class Success:
    """Strategy attempt that produced markup or already-scanned images."""

    content: Optional[str] = None
    images: Optional[Tuple[ImageDescriptor, ...]] = None
    fallback_used: bool = False


@dataclass(frozen=True)
class Failure:
    """Strategy attempt that failed, with a human-readable reason."""

    reason: str


RetrievalOutcome = Union[Success, Failure]


@dataclass
class ExtractionResult:
    """Images found for a page and how they were obtained."""

    url: str
    images: List[ImageDescriptor]
    strategy: str
    fallback_used: bool = False
    failures: List[Tuple[str, str]] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "success": True,
            "url": self.url,
            "images": [image.to_dict() for image in self.images],
            "count": len(self.images),
            "strategy": self.strategy,
            "fallbackUsed": self.fallback_used,
        }


@dataclass(frozen=True)
class SizeInfo:
    """Transfer size of one image, measured or estimated."""

    byte_size: Optional[int]
    is_estimated: bool = False
    format: ImageFormat = ImageFormat.UNKNOWN
    content_type: Optional[str] = None
    is_optimized: bool = False
    source: str = "unavailable"
    note: Optional[str] = None

    def __post_init__(self) -> None:
        if self.byte_size is not None and (
            isinstance(self.byte_size, bool)
            or not isinstance(self.byte_size, int)
            or self.byte_size < 0
        ):
            raise ValueError(f"Invalid byte size: {self.byte_size!r}")

    @property
    def is_known(self) -> bool:
        return self.byte_size is not None

    @property
    def display_size(self) -> str:
        if self.byte_size is None:
            return self.note or UNKNOWN
        text = format_file_size(self.byte_size)
        if self.is_estimated:
            text += " (estimated)"
        if self.is_optimized and self.is_estimated:
            text += " (optimized)"
        return text

    def to_dict(self) -> dict:
        return {
            "size": self.display_size,
            "bytes": self.byte_size,
            "estimated": self.is_estimated,
            "format": self.format.value,
            "contentType": self.content_type or UNKNOWN,
            "source": self.source,
        }


@dataclass(frozen=True)
class ComparisonResult:
    """Percentage reduction between original and optimized sizes."""

    percent_reduction: Optional[int]
    bucket: Bucket
    confidence: Confidence = Confidence.UNKNOWN

    def to_dict(self) -> dict:
        return {
            "percentReduction": self.percent_reduction,
            "bucket": self.bucket.value,
            "confidence": self.confidence.value,
        }


@dataclass
class ImageReport:
    """Sizes and verdict for one discovered image."""

    descriptor: ImageDescriptor
    transform_url: str
    original: SizeInfo
    optimized: SizeInfo
    comparison: ComparisonResult

    def to_dict(self) -> dict:
        return {
            **self.descriptor.to_dict(),
            "transformUrl": self.transform_url,
            "original": self.original.to_dict(),
            "optimized": self.optimized.to_dict(),
            "comparison": self.comparison.to_dict(),
        }


@dataclass
class PageReport:
    """Extraction result together with one report per image."""

    extraction: ExtractionResult
    reports: List[ImageReport]

    def to_dict(self) -> dict:
        return {
            **self.extraction.to_dict(),
            "images": [report.to_dict() for report in self.reports],
        }
