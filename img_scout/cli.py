"""Command-line entry point for the image scanner."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import time
from typing import Sequence

from .config import DEFAULT_TRANSFORM_TEMPLATE, ScanConfig
from .crawler import analyze_page, extract_images
from .errors import ExhaustionFailure, InputValidationFailure
from .models import ExtractionResult, PageReport

logger = logging.getLogger("img_scout.cli")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Find every image on a web page and compare its size against an "
            "on-the-fly optimized copy."
        ),
    )
    parser.add_argument("url", help="Page URL to scan")
    parser.add_argument(
        "--simple",
        action="store_true",
        help="Skip headless browser rendering (faster, may miss lazy-loaded images)",
    )
    parser.add_argument(
        "--no-sizes",
        action="store_true",
        help="Only list discovered images without probing sizes",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=30.0,
        help="Browser navigation timeout in seconds",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=4,
        help="Maximum number of images probed at the same time",
    )
    parser.add_argument(
        "--transform-template",
        default=DEFAULT_TRANSFORM_TEMPLATE,
        help="URL template of the optimization service ({url} or {encoded})",
    )
    parser.add_argument(
        "--chrome",
        default=None,
        help="Path to a Chrome/Chromium executable to use for rendering",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print results as JSON",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    return parser.parse_args(argv)


def _print_extraction(result: ExtractionResult) -> None:
    print(f"Found {len(result.images)} images on {result.url} (via {result.strategy})")
    for image in result.images:
        print(
            f"- {image.url} | {image.format.value} | "
            f"{image.width} x {image.height} | {image.alt_text}"
        )


def _print_report(report: PageReport) -> None:
    extraction = report.extraction
    print(f"Found {len(extraction.images)} images on {extraction.url} (via {extraction.strategy})")
    for item in report.reports:
        comparison = item.comparison
        if comparison.percent_reduction is None:
            verdict = "Size reduction unknown"
        else:
            verdict = f"{comparison.percent_reduction}% smaller ({comparison.bucket.value})"
        print(
            f"- {item.descriptor.url} | {item.original.format.value} | "
            f"original: {item.original.display_size} | "
            f"optimized: {item.optimized.display_size} | {verdict}"
        )


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )

    config = ScanConfig(
        navigation_timeout=args.timeout,
        max_concurrency=args.concurrency,
        transform_template=args.transform_template,
        browser_executable=args.chrome,
    )
    use_rendered = not args.simple

    start = time.perf_counter()
    try:
        if args.no_sizes:
            result = asyncio.run(extract_images(args.url, use_rendered, config))
            payload = result.to_dict()
        else:
            report = asyncio.run(analyze_page(args.url, use_rendered, config))
            result = report.extraction
            payload = report.to_dict()
    except InputValidationFailure as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    except ExhaustionFailure as exc:
        print(f"Error: failed to extract images: {exc}", file=sys.stderr)
        return 1
    elapsed = time.perf_counter() - start

    if result.fallback_used:
        logger.warning("Browser rendering failed; results come from simple extraction")
    if args.json:
        print(json.dumps(payload, indent=2))
    elif args.no_sizes:
        _print_extraction(result)
    else:
        _print_report(report)
    logger.info("Finished in %.2fs", elapsed)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
