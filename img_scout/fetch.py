"""HTTP transport helpers and the non-rendered retrieval strategies."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional

import requests

from .config import ScanConfig
from .errors import TransportFailure
from .models import Failure, RetrievalOutcome, Success
from .utils import expand_template

logger = logging.getLogger("img_scout")


def _describe_error(exc: requests.RequestException, timeout: float) -> str:
    if isinstance(exc, requests.Timeout):
        return f"timed out after {timeout:g}s"
    if isinstance(exc, requests.HTTPError) and exc.response is not None:
        return f"HTTP {exc.response.status_code}"
    return str(exc) or type(exc).__name__


def fetch_text(url: str, headers: Dict[str, str], timeout: float) -> str:
    """GET a document and return its body, raising TransportFailure on error."""
    try:
        response = requests.get(url, headers=headers, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as exc:
        raise TransportFailure(_describe_error(exc, timeout)) from exc
    return response.text


async def fetch_text_within(url: str, headers: Dict[str, str], timeout: float) -> str:
    """Run fetch_text in a worker thread under an overall deadline.

    The requests timeout bounds each socket read; this bounds the whole call.
    """
    try:
        return await asyncio.wait_for(
            asyncio.to_thread(fetch_text, url, headers, timeout), timeout
        )
    except asyncio.TimeoutError as exc:
        raise TransportFailure(f"timed out after {timeout:g}s") from exc


def head_request(
    session: requests.Session,
    url: str,
    headers: Dict[str, str],
    timeout: float,
) -> requests.Response:
    """Issue a HEAD request, raising TransportFailure on error or non-2xx."""
    try:
        response = session.head(url, headers=headers, timeout=timeout, allow_redirects=True)
        response.raise_for_status()
    except requests.RequestException as exc:
        raise TransportFailure(_describe_error(exc, timeout)) from exc
    return response


def parse_content_length(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    text = str(value).strip()
    if not text.isdigit():
        return None
    return int(text)


class Strategy(ABC):
    """One way of obtaining a page's content."""

    name: str = "strategy"

    @abstractmethod
    async def attempt(self, url: str) -> RetrievalOutcome:
        """Try to retrieve the page; never raise for expected failures."""


class HttpStrategy(Strategy):
    """Fetch page markup directly or through a relay URL template."""

    def __init__(
        self,
        name: str,
        template: str,
        headers: Dict[str, str],
        timeout: float,
        label: Optional[str] = None,
    ) -> None:
        self.name = name
        self.template = template
        self.headers = headers
        self.timeout = timeout
        self.label = label or name

    def target_for(self, url: str) -> str:
        return expand_template(self.template, url)

    async def attempt(self, url: str) -> RetrievalOutcome:
        target = self.target_for(url)
        logger.debug("%s: GET %s", self.name, target)
        try:
            html = await fetch_text_within(target, self.headers, self.timeout)
        except TransportFailure as exc:
            logger.warning("%s failed for %s: %s", self.label, url, exc)
            return Failure(f"{self.label} failed: {exc}")
        return Success(content=html)


def direct_strategy(config: ScanConfig) -> HttpStrategy:
    return HttpStrategy(
        "direct",
        "{url}",
        config.page_headers(),
        config.direct_timeout,
        label="Direct fetch",
    )


def relay_strategies(config: ScanConfig) -> Dict[str, HttpStrategy]:
    """Relay strategies keyed A, B and C in their fallback order."""
    return {
        "A": HttpStrategy(
            "relay-a",
            config.relay_a,
            {"User-Agent": config.user_agent, "Content-Type": "text/html"},
            config.relay_timeout,
            label="CORS proxy",
        ),
        "B": HttpStrategy(
            "relay-b",
            config.relay_b,
            {"User-Agent": config.user_agent, "X-Requested-With": "XMLHttpRequest"},
            config.relay_timeout,
            label="CORS Anywhere proxy",
        ),
        "C": HttpStrategy(
            "relay-c",
            config.relay_c,
            {"User-Agent": config.user_agent},
            config.relay_timeout,
            label="Bridged proxy",
        ),
    }


def script_probe_strategy(config: ScanConfig) -> HttpStrategy:
    """Last resort: request the page the way a browser loads a script tag."""
    headers = {
        "User-Agent": config.user_agent,
        "Accept": "*/*",
        "Sec-Fetch-Dest": "script",
        "Sec-Fetch-Mode": "no-cors",
    }
    return HttpStrategy(
        "script-probe",
        "{url}",
        headers,
        config.script_timeout,
        label="Script injection",
    )
