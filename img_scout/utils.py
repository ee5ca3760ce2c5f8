"""Utility helpers for URL normalization and size strings."""

from __future__ import annotations

import re
from typing import Optional
from urllib.parse import quote, urlparse

from .errors import InputValidationFailure

SIZE_UNITS = ("Bytes", "KB", "MB", "GB")
UNIT_MULTIPLIERS = {"BYTES": 1, "KB": 1024, "MB": 1024**2, "GB": 1024**3}
SIZE_PATTERN = re.compile(r"(\d+\.?\d*)\s*(Bytes|KB|MB|GB)", re.IGNORECASE)

_DISCARDED_SCHEMES = ("data:", "blob:", "javascript:", "about:")


def encode_uri_component(value: str) -> str:
    """Percent-encode a value the way browsers encode a query component."""
    return quote(value, safe="-_.!~*'()")


def origin_of(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}"


def is_inline_reference(value: str) -> bool:
    """True for data:, blob: and similar URIs that have no transfer size."""
    return value.strip().lower().startswith(_DISCARDED_SCHEMES)


def _has_http_scheme(value: str) -> bool:
    try:
        return urlparse(value).scheme.lower() in ("http", "https")
    except ValueError:
        return False


def normalize_reference(reference: Optional[str], base_url: str) -> Optional[str]:
    """Resolve an image reference against the page it was found on.

    Returns None for references that cannot name a transferable image.
    """
    if reference is None:
        return None
    value = str(reference).strip()
    if not value:
        return None
    if is_inline_reference(value):
        return None
    if value.startswith("//"):
        return "https:" + value
    if value.startswith("/"):
        return origin_of(base_url) + value
    if not _has_http_scheme(value):
        return origin_of(base_url) + "/" + value.lstrip("/")
    return value


def validate_target_url(url: Optional[str]) -> str:
    """Reject target URLs that are not absolute http(s) URLs."""
    value = (url or "").strip()
    if not value:
        raise InputValidationFailure("Please enter a valid website URL")
    try:
        parsed = urlparse(value)
    except ValueError as exc:
        raise InputValidationFailure(f"Malformed URL {value!r}: {exc}") from exc
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InputValidationFailure(
            "Please enter a valid URL starting with http:// or https://"
        )
    return value


def expand_template(template: str, url: str) -> str:
    """Fill a relay or transform template with the raw or encoded URL."""
    return template.format(url=url, encoded=encode_uri_component(url))


def build_transform_url(url: str, template: str) -> str:
    """Derive the transform-service URL serving an optimized copy of an image."""
    return expand_template(template, url)


def format_file_size(size: float) -> str:
    """Render a byte count as "1.5 MB" style text."""
    if size <= 0:
        return "0 Bytes"
    value = float(size)
    index = 0
    while value >= 1024 and index < len(SIZE_UNITS) - 1:
        value /= 1024
        index += 1
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {SIZE_UNITS[index]}"


def parse_size(text: Optional[str]) -> Optional[int]:
    """Parse a size string back into bytes; ranges and unknowns yield None."""
    if not text:
        return None
    value = text.strip()
    if value.startswith("~"):
        return None
    match = SIZE_PATTERN.search(value)
    if not match:
        return None
    number = float(match.group(1))
    multiplier = UNIT_MULTIPLIERS[match.group(2).upper()]
    return int(round(number * multiplier))
