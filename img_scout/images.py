"""Image size discovery and dimension-based size estimation."""

from __future__ import annotations

import asyncio
import io
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import requests
from filetype import guess
from PIL import Image, UnidentifiedImageError

from .config import ScanConfig
from .errors import TransportFailure
from .fetch import head_request, parse_content_length
from .models import (
    ImageFormat,
    SizeInfo,
    classify_format,
    format_from_content_type,
    format_from_extension,
)
from .utils import expand_template

logger = logging.getLogger("img_scout")

CORS_RESTRICTED = "Unknown (CORS restricted)"
UNKNOWN_SIZE = "Unknown"


@dataclass
class TransportPath:
    """One way of asking for an image's headers."""

    name: str
    template: str
    timeout: float
    headers: Dict[str, str]


def detect_image_format(data: bytes) -> Optional[ImageFormat]:
    """Detect image type using filetype; None when the signature is not an image."""
    kind = guess(data)
    if kind and kind.mime.startswith("image/"):
        detected = format_from_extension(kind.extension)
        if detected is not ImageFormat.UNKNOWN:
            return detected
    return None


def bytes_per_pixel(image_format: ImageFormat, config: ScanConfig) -> float:
    return config.bytes_per_pixel.get(image_format.value, config.default_bytes_per_pixel)


def estimate_size(width: int, height: int, image_format: ImageFormat, config: ScanConfig) -> int:
    """Estimate transfer size from pixel dimensions and a per-format multiplier."""
    return int(round(width * height * bytes_per_pixel(image_format, config)))


def transport_paths(config: ScanConfig, optimized: bool = False) -> List[TransportPath]:
    image_headers = {
        "User-Agent": config.user_agent,
        "Accept": "image/avif,image/webp,image/apng,image/svg+xml,image/*,*/*;q=0.8",
    }
    direct_timeout = config.transform_head_timeout if optimized else config.head_timeout
    relay_timeout = config.transform_head_timeout if optimized else config.relay_head_timeout
    return [
        TransportPath("direct", "{url}", direct_timeout, image_headers),
        TransportPath("relay-a", config.relay_a, relay_timeout, image_headers),
        TransportPath(
            "relay-b",
            config.relay_b,
            relay_timeout,
            {**image_headers, "X-Requested-With": "XMLHttpRequest"},
        ),
    ]


def probe_length(
    session: requests.Session,
    url: str,
    path: TransportPath,
) -> Optional[Tuple[int, Optional[str]]]:
    """Return (content length, content type) when the path reports a length."""
    target = expand_template(path.template, url)
    try:
        response = head_request(session, target, path.headers, path.timeout)
    except TransportFailure as exc:
        logger.debug("HEAD via %s failed for %s: %s", path.name, url, exc)
        return None
    length = parse_content_length(response.headers.get("Content-Length"))
    if length is None:
        logger.debug("HEAD via %s for %s reported no length", path.name, url)
        return None
    return length, response.headers.get("Content-Type")


def read_prefix(response: requests.Response, limit: int) -> bytes:
    buffer = bytearray()
    for chunk in response.iter_content(chunk_size=16 * 1024):
        if not chunk:
            continue
        buffer.extend(chunk)
        if len(buffer) >= limit:
            break
    return bytes(buffer)


def load_dimensions(
    session: requests.Session,
    url: str,
    config: ScanConfig,
) -> Optional[Tuple[int, int, Optional[ImageFormat]]]:
    """Read just enough of an image to learn its pixel dimensions."""
    try:
        with session.get(
            url,
            headers={"User-Agent": config.user_agent},
            timeout=config.dimension_timeout,
            stream=True,
        ) as response:
            response.raise_for_status()
            data = read_prefix(response, config.max_probe_bytes)
    except requests.RequestException as exc:
        logger.debug("Failed to load %s for dimensions: %s", url, exc)
        return None
    if not data:
        return None
    detected = detect_image_format(data)
    try:
        with Image.open(io.BytesIO(data)) as image:
            width, height = image.size
    except (UnidentifiedImageError, OSError) as exc:
        logger.debug("Could not read dimensions of %s: %s", url, exc)
        return None
    if width <= 0 or height <= 0:
        return None
    return width, height, detected


def _measured(
    url: str,
    length: int,
    content_type: Optional[str],
    source: str,
    optimized: bool,
) -> SizeInfo:
    url_format = classify_format(url)
    header_format = format_from_content_type(content_type)
    if optimized:
        image_format = header_format if header_format is not ImageFormat.UNKNOWN else url_format
    else:
        image_format = url_format if url_format is not ImageFormat.UNKNOWN else header_format
    return SizeInfo(
        byte_size=length,
        format=image_format,
        content_type=content_type,
        is_optimized=optimized,
        source=source,
    )


def resolve_size_sync(url: str, config: ScanConfig, optimized: bool = False) -> SizeInfo:
    """Try each header transport in order, then fall back to an estimate."""
    url_format = classify_format(url)
    session = requests.Session()
    try:
        for path in transport_paths(config, optimized):
            probe = probe_length(session, url, path)
            if probe is not None:
                length, content_type = probe
                logger.debug("Size of %s via %s: %d bytes", url, path.name, length)
                return _measured(url, length, content_type, path.name, optimized)

        if not optimized and url_format is ImageFormat.SVG:
            return SizeInfo(
                byte_size=None,
                is_estimated=True,
                format=ImageFormat.SVG,
                source="estimate",
                note=config.svg_size_label,
            )

        dimensions = load_dimensions(session, url, config)
        if dimensions is not None:
            width, height, detected = dimensions
            if optimized:
                estimate_format = ImageFormat.WEBP
            elif url_format is not ImageFormat.UNKNOWN:
                estimate_format = url_format
            else:
                estimate_format = detected or ImageFormat.UNKNOWN
            return SizeInfo(
                byte_size=estimate_size(width, height, estimate_format, config),
                is_estimated=True,
                format=estimate_format,
                is_optimized=optimized,
                source="estimate",
            )
    finally:
        session.close()

    logger.warning("All size lookups failed for %s", url)
    return SizeInfo(
        byte_size=None,
        format=url_format,
        is_optimized=optimized,
        note=UNKNOWN_SIZE if optimized else CORS_RESTRICTED,
    )


async def resolve_size(url: str, config: ScanConfig) -> SizeInfo:
    return await asyncio.to_thread(resolve_size_sync, url, config, False)


async def resolve_optimized_size(transform_url: str, config: ScanConfig) -> SizeInfo:
    """Resolve the transform-service copy; estimates assume WebP output."""
    return await asyncio.to_thread(resolve_size_sync, transform_url, config, True)
