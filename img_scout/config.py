"""Configuration objects and constants for the image scanner."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

PAGE_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
    "Accept-Encoding": "gzip, deflate",
    "Connection": "keep-alive",
    "Upgrade-Insecure-Requests": "1",
}

# Relay templates receive either the raw target ({url}) or its
# percent-encoded form ({encoded}).
RELAY_ALLORIGINS = "https://api.allorigins.win/raw?url={encoded}"
RELAY_CORS_ANYWHERE = "https://cors-anywhere.herokuapp.com/{url}"
RELAY_BRIDGED = "https://cors.bridged.cc/{url}"

DEFAULT_TRANSFORM_TEMPLATE = (
    "https://res.cloudinary.com/demo/image/fetch/w_800,q_auto,f_auto/{encoded}"
)

# Rough bytes-per-pixel heuristics used when only dimensions are known.
BYTES_PER_PIXEL: Dict[str, float] = {
    "JPEG": 0.5,
    "PNG": 4.0,
    "WebP": 0.4,
    "GIF": 1.0,
}
DEFAULT_BYTES_PER_PIXEL = 3.0
SVG_SIZE_LABEL = "~10-50 KB"

CHROME_CANDIDATE_PATHS: Tuple[str, ...] = (
    "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
    "/Applications/Chromium.app/Contents/MacOS/Chromium",
    "/usr/bin/google-chrome",
    "/usr/bin/chromium-browser",
)

BROWSER_LAUNCH_ARGS: Tuple[str, ...] = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--no-first-run",
    "--no-zygote",
    "--disable-gpu",
    "--disable-web-security",
    "--disable-features=VizDisplayCompositor",
)


@dataclass
class ScanConfig:
    """Top-level settings that control retrieval, rendering and size probing."""

    user_agent: str = DEFAULT_USER_AGENT
    direct_timeout: float = 10.0
    relay_timeout: float = 15.0
    script_timeout: float = 5.0
    fallback_timeout: float = 15.0
    relay_a: str = RELAY_ALLORIGINS
    relay_b: str = RELAY_CORS_ANYWHERE
    relay_c: str = RELAY_BRIDGED

    navigation_timeout: float = 30.0
    wait_after_load: float = 3.0
    wait_after_scroll: float = 2.0
    scroll_step: int = 100
    scroll_pause: float = 0.1
    max_scroll_steps: int = 500
    viewport_width: int = 1920
    viewport_height: int = 1080
    browser_executable: Optional[str] = None
    chrome_candidates: Tuple[str, ...] = CHROME_CANDIDATE_PATHS
    launch_args: Tuple[str, ...] = BROWSER_LAUNCH_ARGS

    head_timeout: float = 5.0
    relay_head_timeout: float = 8.0
    transform_head_timeout: float = 10.0
    dimension_timeout: float = 5.0
    max_probe_bytes: int = 256 * 1024
    transform_template: str = DEFAULT_TRANSFORM_TEMPLATE
    bytes_per_pixel: Dict[str, float] = field(
        default_factory=lambda: dict(BYTES_PER_PIXEL)
    )
    default_bytes_per_pixel: float = DEFAULT_BYTES_PER_PIXEL
    svg_size_label: str = SVG_SIZE_LABEL

    max_concurrency: int = 4

    def page_headers(self) -> Dict[str, str]:
        """Browser-like headers sent with page requests."""
        return {"User-Agent": self.user_agent, **PAGE_HEADERS}
