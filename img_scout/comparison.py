"""Size comparison between an original image and its optimized copy."""

from __future__ import annotations

import math
from typing import Optional, Tuple, Union

from .models import Bucket, ComparisonResult, Confidence, SizeInfo
from .utils import parse_size

SizeInput = Union[SizeInfo, str, None]

BUCKET_THRESHOLDS: Tuple[Tuple[int, Bucket], ...] = (
    (70, Bucket.EXCELLENT),
    (50, Bucket.GOOD),
    (30, Bucket.MODERATE),
    (10, Bucket.MINIMAL),
)


def bucket_for(percent: Optional[int]) -> Bucket:
    if percent is None:
        return Bucket.NEUTRAL
    for threshold, bucket in BUCKET_THRESHOLDS:
        if percent >= threshold:
            return bucket
    return Bucket.POOR


def _bytes_and_estimated(value: SizeInput) -> Tuple[Optional[int], bool]:
    if isinstance(value, SizeInfo):
        return value.byte_size, value.is_estimated
    if value is None:
        return None, False
    return parse_size(value), "(estimated)" in value


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def compare_sizes(original: SizeInput, optimized: SizeInput) -> ComparisonResult:
    """Percentage reduction from original to optimized, with its bucket.

    Sizes may be SizeInfo values or strings such as "1.5 MB". A missing size
    or a zero-byte original yields no percentage and the neutral bucket.
    """
    original_bytes, original_estimated = _bytes_and_estimated(original)
    optimized_bytes, optimized_estimated = _bytes_and_estimated(optimized)
    if original_bytes is None or optimized_bytes is None or original_bytes == 0:
        return ComparisonResult(None, Bucket.NEUTRAL, Confidence.UNKNOWN)

    percent = _round_half_up((original_bytes - optimized_bytes) * 100 / original_bytes)
    if original_estimated and optimized_estimated:
        confidence = Confidence.ESTIMATED
    elif original_estimated or optimized_estimated:
        confidence = Confidence.PARTIAL
    else:
        confidence = Confidence.MEASURED
    return ComparisonResult(percent, bucket_for(percent), confidence)


compute_reduction = compare_sizes
