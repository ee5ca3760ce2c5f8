from __future__ import annotations

import asyncio
import time
from typing import List

import pytest
from conftest import FakeResponse

from img_scout import crawler, fetch
from img_scout.browser import RenderedStrategy
from img_scout.crawler import analyze_images, analyze_page, build_strategies, extract_images, run_chain
from img_scout.errors import ExhaustionFailure, InputValidationFailure
from img_scout.fetch import HttpStrategy, Strategy, direct_strategy, relay_strategies
from img_scout.models import (
    Bucket,
    Confidence,
    Failure,
    ImageDescriptor,
    ImageFormat,
    SizeInfo,
    Success,
)

PAGE = "https://x.com/"


class ScriptedStrategy(Strategy):
    def __init__(self, name: str, outcome, calls: List[str]) -> None:
        self.name = name
        self.outcome = outcome
        self.calls = calls

    async def attempt(self, url: str):
        self.calls.append(self.name)
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


@pytest.mark.asyncio
async def test_chain_stops_at_first_success():
    calls: List[str] = []
    strategies = [
        ScriptedStrategy("one", Failure("Direct fetch failed: HTTP 403"), calls),
        ScriptedStrategy("two", Success(content='<img src="/a.png">'), calls),
        ScriptedStrategy("three", Success(content='<img src="/b.png">'), calls),
    ]
    result = await run_chain(PAGE, strategies)
    assert calls == ["one", "two"]
    assert result.strategy == "two"
    assert [image.url for image in result.images] == ["https://x.com/a.png"]
    assert result.failures == [("one", "Direct fetch failed: HTTP 403")]
    assert result.to_dict()["count"] == 1


@pytest.mark.asyncio
async def test_empty_page_counts_as_failure():
    calls: List[str] = []
    strategies = [
        ScriptedStrategy("one", Success(content="<p>no pictures</p>"), calls),
        ScriptedStrategy("two", Success(images=(ImageDescriptor(url="https://x.com/z.gif"),)), calls),
    ]
    result = await run_chain(PAGE, strategies)
    assert result.strategy == "two"
    assert result.failures == [("one", "no images found")]


@pytest.mark.asyncio
async def test_exhaustion_lists_every_reason():
    calls: List[str] = []
    strategies = [
        ScriptedStrategy("one", Failure("Direct fetch failed: timed out after 10s"), calls),
        ScriptedStrategy("two", RuntimeError("boom"), calls),
        ScriptedStrategy("three", Success(content=""), calls),
    ]
    with pytest.raises(ExhaustionFailure) as excinfo:
        await run_chain(PAGE, strategies)
    error = excinfo.value
    assert calls == ["one", "two", "three"]
    assert error.reasons == [
        "one: Direct fetch failed: timed out after 10s",
        "two: RuntimeError: boom",
        "three: no images found",
    ]
    assert str(error).startswith("Unable to fetch images from the website. All methods failed:")


@pytest.mark.asyncio
async def test_fallback_flag_is_propagated():
    calls: List[str] = []
    image = ImageDescriptor(url="https://x.com/a.jpg", format=ImageFormat.JPEG)
    strategies = [ScriptedStrategy("rendered", Success(images=(image,), fallback_used=True), calls)]
    result = await run_chain(PAGE, strategies)
    assert result.fallback_used
    assert result.to_dict()["fallbackUsed"] is True


def test_strategy_orders(fast_config):
    rendered = build_strategies(True, fast_config)
    assert isinstance(rendered[0], RenderedStrategy)
    assert [strategy.name for strategy in rendered] == [
        "rendered",
        "relay-a",
        "relay-b",
        "relay-c",
        "script-probe",
    ]
    simple = build_strategies(False, fast_config)
    assert [strategy.name for strategy in simple] == ["direct", "relay-a", "relay-b"]


@pytest.mark.asyncio
async def test_invalid_url_fails_before_any_network(monkeypatch, fast_config):
    def explode(*args, **kwargs):
        raise AssertionError("strategies should not be built")

    monkeypatch.setattr(crawler, "build_strategies", explode)
    with pytest.raises(InputValidationFailure):
        await extract_images("not a url", config=fast_config)


@pytest.mark.asyncio
async def test_analyze_page_keeps_discovery_order(monkeypatch, fast_config):
    images = [ImageDescriptor(url=f"https://x.com/{index}.png") for index in range(6)]

    async def fake_chain(url, strategies):
        return crawler.ExtractionResult(url=url, images=images, strategy="direct")

    in_flight = 0
    peak = 0

    async def fake_resolve(url, config):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01 if url.endswith("0.png") else 0)
        in_flight -= 1
        return SizeInfo(byte_size=1000)

    async def fake_optimized(url, config):
        return SizeInfo(byte_size=250, is_estimated=True, is_optimized=True)

    monkeypatch.setattr(crawler, "run_chain", fake_chain)
    monkeypatch.setattr(crawler, "resolve_size", fake_resolve)
    monkeypatch.setattr(crawler, "resolve_optimized_size", fake_optimized)
    fast_config.max_concurrency = 2
    fast_config.transform_template = "https://t.example/{encoded}"

    report = await analyze_page(PAGE, use_rendered=False, config=fast_config)
    assert [item.descriptor.url for item in report.reports] == [image.url for image in images]
    assert peak <= 2
    first = report.reports[0]
    assert first.transform_url == "https://t.example/https%3A%2F%2Fx.com%2F0.png"
    assert first.comparison.percent_reduction == 75
    assert first.comparison.bucket is Bucket.EXCELLENT
    assert first.comparison.confidence is Confidence.PARTIAL
    assert report.to_dict()["count"] == 6


@pytest.mark.asyncio
async def test_one_failing_image_does_not_sink_the_page(monkeypatch, fast_config):
    async def fake_resolve(url, config):
        if "bad" in url:
            raise RuntimeError("socket closed")
        return SizeInfo(byte_size=100)

    async def fake_optimized(url, config):
        return SizeInfo(byte_size=50)

    monkeypatch.setattr(crawler, "resolve_size", fake_resolve)
    monkeypatch.setattr(crawler, "resolve_optimized_size", fake_optimized)
    descriptors = [ImageDescriptor(url="https://x.com/bad.png"), ImageDescriptor(url="https://x.com/ok.png")]

    reports = await analyze_images(descriptors, fast_config)
    assert reports[0].comparison.bucket is Bucket.NEUTRAL
    assert "socket closed" in reports[0].original.display_size
    assert reports[1].comparison.percent_reduction == 50


@pytest.mark.asyncio
async def test_http_strategies_fetch_through_templates(fast_config, fake_get):
    relay = relay_strategies(fast_config)["A"]
    target = relay.target_for(PAGE)
    assert target == "https://api.allorigins.win/raw?url=https%3A%2F%2Fx.com%2F"
    fake_get.routes[("GET", target)] = FakeResponse(text="<img src='/a.png'>")
    fake_get.routes[("GET", PAGE)] = FakeResponse(status_code=404)

    outcome = await relay.attempt(PAGE)
    assert outcome == Success(content="<img src='/a.png'>")
    failed = await direct_strategy(fast_config).attempt(PAGE)
    assert failed == Failure("Direct fetch failed: HTTP 404")


@pytest.mark.asyncio
async def test_get_image_info_validates_first(monkeypatch, fast_config):
    async def explode(url, config):
        raise AssertionError("no lookup expected")

    monkeypatch.setattr(crawler, "resolve_size", explode)
    with pytest.raises(InputValidationFailure):
        await crawler.get_image_info("/relative.png", fast_config)


@pytest.mark.asyncio
async def test_slow_body_counts_as_timeout(monkeypatch):
    def trickle(url, headers, timeout):
        time.sleep(0.3)
        return "<img src='/late.png'>"

    monkeypatch.setattr(fetch, "fetch_text", trickle)
    strategy = HttpStrategy("direct", "{url}", {}, 0.05, label="Direct fetch")
    outcome = await strategy.attempt(PAGE)
    assert outcome == Failure("Direct fetch failed: timed out after 0.05s")
