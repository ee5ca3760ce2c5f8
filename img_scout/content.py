"""Image discovery over parsed markup or a rendered-page snapshot."""

from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Set, Tuple

from bs4 import BeautifulSoup, NavigableString, Tag

from .errors import ParseFailure
from .models import NO_ALT_TEXT, UNKNOWN, ImageDescriptor, classify_format
from .utils import is_inline_reference, normalize_reference

logger = logging.getLogger("img_scout")

LAZY_IMG_ATTRIBUTES = (
    "data-src",
    "data-lazy-src",
    "data-original",
    "data-srcset",
    "data-image",
    "data-url",
    "data-lazy",
    "data-original-src",
    "data-full-src",
)
PICTURE_SOURCE_ATTRIBUTES = ("srcset", "data-srcset", "data-src", "data-lazy-src")
GENERIC_LAZY_ATTRIBUTES = ("data-image", "data-img", "data-src", "data-lazy")
ALT_TAGS = {"img", "area", "input"}

CSS_URL_PATTERN = re.compile(r"""url\(['"]?([^'")\s]+)['"]?\)""", re.IGNORECASE)
CSS_IMAGE_URL_PATTERN = re.compile(
    r"url\([^)]+\.(?:jpg|jpeg|png|gif|webp|svg|bmp|ico)[^)]*\)", re.IGNORECASE
)
SRCSET_FIRST_URL = re.compile(r"^([^\s,]+)")


@dataclass
class ElementView:
    """Adapter-neutral view of one element."""

    tag: str
    attrs: Dict[str, str] = field(default_factory=dict)
    text: str = ""
    in_picture: bool = False
    background: Optional[str] = None
    src: Optional[str] = None
    width: Optional[str] = None
    height: Optional[str] = None

    def get(self, name: str) -> str:
        return self.attrs.get(name) or ""

    def has(self, name: str) -> bool:
        return name in self.attrs


class DocumentQuery(ABC):
    """Minimal query capability the scanner needs from a document."""

    def __init__(self, elements: Sequence[ElementView]) -> None:
        self._elements = list(elements)

    def all(self) -> List[ElementView]:
        return list(self._elements)

    def by_tag(self, *names: str) -> List[ElementView]:
        wanted = {name.lower() for name in names}
        return [element for element in self._elements if element.tag in wanted]

    def with_attribute(self, *names: str) -> List[ElementView]:
        return [
            element
            for element in self._elements
            if any(element.has(name) for name in names)
        ]

    @abstractmethod
    def background_image(self, element: ElementView) -> Optional[str]:
        """Return the element's background-image value, if any."""


def _attribute_text(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return " ".join(str(item) for item in value)
    return "" if value is None else str(value)


def inline_background(style: str) -> Optional[str]:
    """Read the background image declared in an inline style attribute."""
    found: Optional[str] = None
    for declaration in style.split(";"):
        name, sep, value = declaration.partition(":")
        if not sep:
            continue
        name = name.strip().lower()
        value = value.strip()
        if name == "background-image":
            found = value
        elif name == "background" and "url(" in value.lower():
            found = value
    return found


class SoupDocument(DocumentQuery):
    """Document adapter backed by BeautifulSoup; reads declared styles only."""

    def __init__(self, soup: BeautifulSoup) -> None:
        super().__init__([self._view(tag) for tag in soup.find_all(True)])

    @classmethod
    def from_markup(cls, html: str) -> "SoupDocument":
        return cls(BeautifulSoup(html or "", "html.parser"))

    @staticmethod
    def _view(tag: Tag) -> ElementView:
        name = (tag.name or "").lower()
        attrs = {key.lower(): _attribute_text(value) for key, value in tag.attrs.items()}
        text = ""
        if name in ("script", "style"):
            text = "".join(
                str(child) for child in tag.contents if isinstance(child, NavigableString)
            )
        in_picture = name == "source" and tag.find_parent("picture") is not None
        return ElementView(tag=name, attrs=attrs, text=text, in_picture=in_picture)

    def background_image(self, element: ElementView) -> Optional[str]:
        style = element.get("style")
        if not style:
            return None
        return inline_background(style)


class SnapshotDocument(DocumentQuery):
    """Document adapter over an element snapshot taken inside a live page."""

    def __init__(self, snapshot: Iterable[Dict[str, Any]]) -> None:
        super().__init__([self._view(item) for item in snapshot])

    @staticmethod
    def _view(item: Dict[str, Any]) -> ElementView:
        attrs = {
            str(key).lower(): _attribute_text(value)
            for key, value in (item.get("attrs") or {}).items()
        }

        def dimension(key: str) -> Optional[str]:
            value = item.get(key)
            if value in (None, "", 0):
                return None
            return str(value)

        return ElementView(
            tag=str(item.get("tag") or "").lower(),
            attrs=attrs,
            text=item.get("text") or "",
            in_picture=bool(item.get("inPicture")),
            background=item.get("background") or None,
            src=item.get("src") or None,
            width=dimension("width"),
            height=dimension("height"),
        )

    def background_image(self, element: ElementView) -> Optional[str]:
        return element.background


class _Collector:
    """Accumulates descriptors in discovery order, first discovery wins."""

    def __init__(self, base_url: str) -> None:
        self.base_url = base_url
        self.images: List[ImageDescriptor] = []
        self._seen: Set[str] = set()

    def add(self, reference: Optional[str], element: Optional[ElementView]) -> None:
        url = normalize_reference(reference, self.base_url)
        if url is None or url in self._seen:
            return
        self._seen.add(url)
        self.images.append(_describe(url, element))


def _describe(url: str, element: Optional[ElementView]) -> ImageDescriptor:
    width = height = UNKNOWN
    alt_text = NO_ALT_TEXT
    if element is not None:
        width = element.width or element.get("width") or UNKNOWN
        height = element.height or element.get("height") or UNKNOWN
        if element.tag in ALT_TAGS:
            alt_text = element.get("alt") or NO_ALT_TEXT
    return ImageDescriptor(
        url=url,
        width=width,
        height=height,
        alt_text=alt_text,
        format=classify_format(url),
    )


Discovery = Iterator[Tuple[Optional[str], Optional[ElementView]]]


def _first_present(element: ElementView, names: Sequence[str]) -> Optional[str]:
    for name in names:
        value = element.get(name).strip()
        if value:
            return value
    return None


def _css_image_urls(css: str) -> Iterator[str]:
    for match in CSS_IMAGE_URL_PATTERN.finditer(css):
        inner = CSS_URL_PATTERN.search(match.group(0))
        if inner:
            yield inner.group(1)


def _img_candidates(element: ElementView) -> Iterator[str]:
    if element.src:
        yield element.src
    for name in ("src",) + LAZY_IMG_ATTRIBUTES:
        yield element.get(name)


def discover_img_elements(document: DocumentQuery) -> Discovery:
    # Placeholder data: URIs give way to the lazy-load attribute behind them.
    for element in document.by_tag("img"):
        for candidate in _img_candidates(element):
            value = candidate.strip()
            if value and not is_inline_reference(value):
                yield value, element
                break


def discover_picture_sources(document: DocumentQuery) -> Discovery:
    for element in document.by_tag("source"):
        if not element.in_picture:
            continue
        srcset = _first_present(element, PICTURE_SOURCE_ATTRIBUTES)
        if not srcset:
            continue
        match = SRCSET_FIRST_URL.match(srcset)
        if match:
            yield match.group(1), element


def discover_background_images(document: DocumentQuery) -> Discovery:
    for element in document.all():
        background = document.background_image(element)
        if not background or background.strip().lower() == "none":
            continue
        match = CSS_URL_PATTERN.search(background)
        if match:
            yield match.group(1), element


def discover_data_attributes(document: DocumentQuery) -> Discovery:
    for element in document.with_attribute(*GENERIC_LAZY_ATTRIBUTES):
        yield _first_present(element, GENERIC_LAZY_ATTRIBUTES), element


def parse_linked_data(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError as exc:
        raise ParseFailure(f"Invalid JSON-LD block: {exc}") from exc


def linked_data_images(payload: Any) -> Iterator[str]:
    """Yield image references from a JSON-LD payload's "image" fields."""
    nodes: List[Any] = list(payload) if isinstance(payload, list) else [payload]
    for node in list(nodes):
        if isinstance(node, dict) and isinstance(node.get("@graph"), list):
            nodes.extend(node["@graph"])
    for node in nodes:
        if not isinstance(node, dict) or "image" not in node:
            continue
        value = node["image"]
        for entry in value if isinstance(value, list) else [value]:
            if isinstance(entry, str):
                yield entry
            elif isinstance(entry, dict):
                reference = entry.get("url") or entry.get("contentUrl")
                if isinstance(reference, str):
                    yield reference


def discover_linked_data(document: DocumentQuery) -> Discovery:
    for element in document.by_tag("script"):
        if element.get("type").strip().lower() != "application/ld+json":
            continue
        try:
            payload = parse_linked_data(element.text)
        except ParseFailure as exc:
            logger.debug("Skipping structured data block: %s", exc)
            continue
        for reference in linked_data_images(payload):
            yield reference, None


def discover_meta_tags(document: DocumentQuery) -> Discovery:
    for element in document.by_tag("meta"):
        if element.get("property") == "og:image" or element.get("name") == "twitter:image":
            yield element.get("content"), element


def discover_link_tags(document: DocumentQuery) -> Discovery:
    for element in document.by_tag("link"):
        rel = element.get("rel").lower()
        if "icon" in rel or "image" in rel:
            yield element.get("href"), element


def discover_style_blocks(document: DocumentQuery) -> Discovery:
    for element in document.by_tag("style"):
        for reference in _css_image_urls(element.text):
            yield reference, element


def discover_inline_styles(document: DocumentQuery) -> Discovery:
    for element in document.with_attribute("style"):
        for reference in _css_image_urls(element.get("style")):
            yield reference, element


HEURISTICS: Tuple[Callable[[DocumentQuery], Discovery], ...] = (
    discover_img_elements,
    discover_picture_sources,
    discover_background_images,
    discover_data_attributes,
    discover_linked_data,
    discover_meta_tags,
    discover_link_tags,
    discover_style_blocks,
    discover_inline_styles,
)


def scan_document(document: DocumentQuery, base_url: str) -> List[ImageDescriptor]:
    """Run every discovery heuristic in order and return unique descriptors."""
    collector = _Collector(base_url)
    for heuristic in HEURISTICS:
        for reference, element in heuristic(document):
            collector.add(reference, element)
    return collector.images


def scan_markup(html: str, base_url: str) -> List[ImageDescriptor]:
    """Parse raw markup and scan it for image references."""
    images = scan_document(SoupDocument.from_markup(html), base_url)
    logger.info("Found %d images from %s", len(images), base_url)
    return images
