"""High-level orchestration: retrieval strategy chain and per-image analysis."""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Sequence, Tuple

from .browser import RenderedStrategy
from .comparison import compare_sizes
from .config import ScanConfig
from .content import scan_markup
from .errors import ExhaustionFailure
from .fetch import Strategy, direct_strategy, relay_strategies, script_probe_strategy
from .images import resolve_optimized_size, resolve_size
from .models import (
    Bucket,
    ComparisonResult,
    ExtractionResult,
    Failure,
    ImageDescriptor,
    ImageReport,
    PageReport,
    SizeInfo,
)
from .utils import build_transform_url, validate_target_url

logger = logging.getLogger("img_scout")


def build_strategies(prefer_rendered: bool, config: ScanConfig) -> List[Strategy]:
    """Ordered retrieval strategies for the requested mode."""
    relays = relay_strategies(config)
    if prefer_rendered:
        return [
            RenderedStrategy(config),
            relays["A"],
            relays["B"],
            relays["C"],
            script_probe_strategy(config),
        ]
    return [direct_strategy(config), relays["A"], relays["B"]]


async def run_chain(url: str, strategies: Sequence[Strategy]) -> ExtractionResult:
    """Try strategies in order until one yields a non-empty image set."""
    failures: List[Tuple[str, str]] = []
    for strategy in strategies:
        logger.info("Trying %s strategy for %s", strategy.name, url)
        try:
            outcome = await strategy.attempt(url)
        except Exception as exc:  # pylint: disable=broad-except
            logger.exception("Strategy %s raised for %s", strategy.name, url)
            outcome = Failure(f"{type(exc).__name__}: {exc}")

        if isinstance(outcome, Failure):
            failures.append((strategy.name, outcome.reason))
            continue

        if outcome.images is not None:
            images = list(outcome.images)
        else:
            images = scan_markup(outcome.content or "", url)
        if not images:
            logger.warning("%s strategy found no images on %s", strategy.name, url)
            failures.append((strategy.name, "no images found"))
            continue

        if outcome.fallback_used:
            logger.warning("Browser extraction failed, using simple extraction fallback")
        return ExtractionResult(
            url=url,
            images=images,
            strategy=strategy.name,
            fallback_used=outcome.fallback_used,
            failures=failures,
        )
    raise ExhaustionFailure(url, failures)


async def extract_images(
    url: str,
    use_rendered: bool = True,
    config: Optional[ScanConfig] = None,
) -> ExtractionResult:
    """Extraction entry point: validate the URL, then run the strategy chain."""
    target = validate_target_url(url)
    config = config or ScanConfig()
    return await run_chain(target, build_strategies(use_rendered, config))


async def get_image_info(image_url: str, config: Optional[ScanConfig] = None) -> SizeInfo:
    """Per-image metadata entry point."""
    target = validate_target_url(image_url)
    return await resolve_size(target, config or ScanConfig())


async def analyze_image(descriptor: ImageDescriptor, config: ScanConfig) -> ImageReport:
    """Resolve original and optimized sizes concurrently and compare them."""
    transform_url = build_transform_url(descriptor.url, config.transform_template)
    original, optimized = await asyncio.gather(
        resolve_size(descriptor.url, config),
        resolve_optimized_size(transform_url, config),
    )
    return ImageReport(
        descriptor=descriptor,
        transform_url=transform_url,
        original=original,
        optimized=optimized,
        comparison=compare_sizes(original, optimized),
    )


def _unavailable_report(descriptor: ImageDescriptor, config: ScanConfig, error: Exception) -> ImageReport:
    note = f"Unable to fetch size data: {error}"
    return ImageReport(
        descriptor=descriptor,
        transform_url=build_transform_url(descriptor.url, config.transform_template),
        original=SizeInfo(byte_size=None, format=descriptor.format, note=note),
        optimized=SizeInfo(byte_size=None, is_optimized=True, note=note),
        comparison=ComparisonResult(None, Bucket.NEUTRAL),
    )


async def analyze_images(
    descriptors: Sequence[ImageDescriptor],
    config: ScanConfig,
) -> List[ImageReport]:
    """Analyze every image with bounded parallelism, keeping discovery order."""
    semaphore = asyncio.Semaphore(max(1, config.max_concurrency))

    async def bounded(descriptor: ImageDescriptor) -> ImageReport:
        async with semaphore:
            try:
                return await analyze_image(descriptor, config)
            except Exception as exc:  # pylint: disable=broad-except
                logger.exception("Error analyzing %s", descriptor.url)
                return _unavailable_report(descriptor, config, exc)

    return list(await asyncio.gather(*(bounded(descriptor) for descriptor in descriptors)))


async def analyze_page(
    url: str,
    use_rendered: bool = True,
    config: Optional[ScanConfig] = None,
) -> PageReport:
    """Extract a page's images and compare each against its optimized copy."""
    config = config or ScanConfig()
    extraction = await extract_images(url, use_rendered, config)
    reports = await analyze_images(extraction.images, config)
    return PageReport(extraction=extraction, reports=reports)
