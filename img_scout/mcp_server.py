"""MCP server exposing image extraction and size lookup tools."""

from __future__ import annotations

import logging

from mcp.server.fastmcp import FastMCP

from .config import ScanConfig
from .crawler import extract_images as run_extraction
from .crawler import get_image_info

logger = logging.getLogger("img_scout.mcp")
logger.setLevel(logging.ERROR)

mcp = FastMCP(name="img-scout")


@mcp.tool()
async def extract_images(url: str, use_browser: bool = True) -> dict:
    """Find every image on a web page, rendering it in Chromium by default."""
    result = await run_extraction(url, use_browser, ScanConfig())
    return result.to_dict()


@mcp.tool()
async def image_info(url: str) -> dict:
    """Report an image's transfer size, format and content type."""
    info = await get_image_info(url, ScanConfig())
    return info.to_dict()


def main() -> None:
    """Entry point for running the MCP server."""
    logging.basicConfig(level=logging.ERROR)
    mcp.run()


if __name__ == "__main__":
    main()
