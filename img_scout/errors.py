"""Exceptions raised by the extraction pipeline."""

from __future__ import annotations

from typing import List, Sequence, Tuple


class ScanError(Exception):
    """Base class for pipeline errors."""


class InputValidationFailure(ScanError, ValueError):
    """The target URL is malformed; raised before any network activity."""


class TransportFailure(ScanError):
    """Network error, timeout or non-2xx response."""


class ParseFailure(ScanError):
    """Malformed markup or JSON in one discovery source."""


class RenderFailure(ScanError):
    """Browser launch, navigation or in-page evaluation failed."""


class ExhaustionFailure(ScanError):
    """Every retrieval strategy was tried and none produced images."""

    def __init__(self, url: str, failures: Sequence[Tuple[str, str]]) -> None:
        self.url = url
        self.failures: List[Tuple[str, str]] = list(failures)
        super().__init__(self._format_message())

    @property
    def reasons(self) -> List[str]:
        return [f"{name}: {reason}" for name, reason in self.failures]

    def _format_message(self) -> str:
        lines = "\n".join(self.reasons) or "no strategies configured"
        return (
            "Unable to fetch images from the website. All methods failed:\n"
            f"{lines}\n\n"
            "Try using a different website or check if the website allows "
            "cross-origin requests."
        )
