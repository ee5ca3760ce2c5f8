from __future__ import annotations

import pytest

from img_scout.comparison import bucket_for, compare_sizes, compute_reduction
from img_scout.models import Bucket, Confidence, SizeInfo


def test_half_size_is_good():
    result = compute_reduction("1 MB", "512 KB")
    assert result.percent_reduction == 50
    assert result.bucket is Bucket.GOOD
    assert result.confidence is Confidence.MEASURED


def test_zero_byte_original_is_neutral():
    result = compute_reduction("0 Bytes", "10 KB")
    assert result.percent_reduction is None
    assert result.bucket is Bucket.NEUTRAL


def test_larger_optimized_copy_is_poor_not_neutral():
    result = compute_reduction("1 MB", "1.5 MB")
    assert result.percent_reduction == -50
    assert result.bucket is Bucket.POOR


@pytest.mark.parametrize(
    "original, optimized",
    [
        ("Unknown", "10 KB"),
        ("10 KB", "Unknown (CORS restricted)"),
        ("~10-50 KB", "5 KB"),
        (None, "5 KB"),
    ],
)
def test_unknown_sizes_are_neutral(original, optimized):
    result = compute_reduction(original, optimized)
    assert result.percent_reduction is None
    assert result.bucket is Bucket.NEUTRAL
    assert result.confidence is Confidence.UNKNOWN


@pytest.mark.parametrize(
    "percent, bucket",
    [
        (95, Bucket.EXCELLENT),
        (70, Bucket.EXCELLENT),
        (69, Bucket.GOOD),
        (50, Bucket.GOOD),
        (30, Bucket.MODERATE),
        (10, Bucket.MINIMAL),
        (9, Bucket.POOR),
        (-20, Bucket.POOR),
        (None, Bucket.NEUTRAL),
    ],
)
def test_bucket_thresholds(percent, bucket):
    assert bucket_for(percent) is bucket


def test_size_info_confidence_is_surfaced():
    original = SizeInfo(byte_size=40000, is_estimated=True)
    optimized = SizeInfo(byte_size=4000, is_estimated=True, is_optimized=True)
    result = compare_sizes(original, optimized)
    assert result.percent_reduction == 90
    assert result.bucket is Bucket.EXCELLENT
    assert result.confidence is Confidence.ESTIMATED

    partial = compare_sizes(SizeInfo(byte_size=1000), optimized)
    assert partial.confidence is Confidence.PARTIAL
    assert partial.percent_reduction == -300


def test_halves_round_up():
    assert compare_sizes(SizeInfo(byte_size=200), SizeInfo(byte_size=101)).percent_reduction == 50
    assert compare_sizes(SizeInfo(byte_size=200), SizeInfo(byte_size=301)).percent_reduction == -50
