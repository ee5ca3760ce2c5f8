"""Shared test fixtures and fakes for network collaborators."""

from __future__ import annotations

import io
from typing import Any, Dict, List, Optional, Tuple, Union

import pytest
import requests
from PIL import Image

from img_scout.config import ScanConfig


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(
        self,
        status_code: int = 200,
        headers: Optional[Dict[str, str]] = None,
        text: str = "",
        content: bytes = b"",
    ) -> None:
        self.status_code = status_code
        self.headers = headers or {}
        self.text = text
        self.content = content or text.encode("utf-8")

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)

    def iter_content(self, chunk_size: int = 1024):
        for start in range(0, len(self.content), chunk_size):
            yield self.content[start : start + chunk_size]

    def __enter__(self) -> "FakeResponse":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        return None


Route = Union[FakeResponse, Exception]


class FakeSession:
    """Routes requests by (method, url); unknown URLs raise ConnectionError."""

    def __init__(self, routes: Optional[Dict[Tuple[str, str], Route]] = None) -> None:
        self.routes = routes or {}
        self.calls: List[Tuple[str, str]] = []
        self.closed = False

    def _dispatch(self, method: str, url: str) -> FakeResponse:
        self.calls.append((method, url))
        route = self.routes.get((method, url))
        if route is None:
            raise requests.ConnectionError(f"no route to {url}")
        if isinstance(route, Exception):
            raise route
        return route

    def head(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._dispatch("HEAD", url)

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._dispatch("GET", url)

    def close(self) -> None:
        self.closed = True


def image_bytes(width: int, height: int, fmt: str = "PNG") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color=(200, 40, 40)).save(buffer, fmt)
    return buffer.getvalue()


@pytest.fixture
def fast_config() -> ScanConfig:
    """Configuration with all waits removed."""
    return ScanConfig(
        wait_after_load=0,
        wait_after_scroll=0,
        scroll_pause=0,
        direct_timeout=1,
        relay_timeout=1,
        script_timeout=1,
        fallback_timeout=1,
        head_timeout=1,
        relay_head_timeout=1,
        transform_head_timeout=1,
        dimension_timeout=1,
        chrome_candidates=(),
    )


@pytest.fixture
def fake_session(monkeypatch: pytest.MonkeyPatch) -> FakeSession:
    """Install one FakeSession returned by every requests.Session() call."""
    session = FakeSession()
    monkeypatch.setattr(requests, "Session", lambda: session)
    return session


@pytest.fixture
def fake_get(monkeypatch: pytest.MonkeyPatch) -> FakeSession:
    """Route module-level requests.get through a FakeSession."""
    session = FakeSession()
    monkeypatch.setattr(requests, "get", lambda url, **kwargs: session.get(url, **kwargs))
    return session
