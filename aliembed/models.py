# aliembed/models.py
"""
Data models shared by the fetcher, the parser and the streaming responder.
Every instance lives for a single inbound request.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Final, Optional, Union


@dataclass(frozen=True, slots=True)
class FetchTarget:
    """Absolute page URL plus the identity header sent with every request."""

    url: str
    user_agent: str


@dataclass(frozen=True, slots=True)
class ItemRequest:
    """Item id taken from the inbound path and the canonical page it maps to."""

    item_id: str
    canonical_url: str


@dataclass(frozen=True, slots=True)
class PageMetadata:
    """Title, description and image of a product page."""

    title: str
    description: str
    image_url: str

    @classmethod
    def defaults_for(cls, item_id: str, title: str, image_url: str) -> PageMetadata:
        return cls(title=title, description=f"Item ID: {item_id}", image_url=image_url)

    def merged(
        self,
        title: Optional[str] = None,
        description: Optional[str] = None,
        image_url: Optional[str] = None,
    ) -> PageMetadata:
        """Return a copy where only non-empty values replace the current ones."""
        return replace(
            self,
            title=title or self.title,
            description=description or self.description,
            image_url=image_url or self.image_url,
        )


@dataclass(frozen=True, slots=True)
class Success:
    """Markup captured by one of the retrieval strategies."""

    markup: str
    strategy: str = "direct"


class _Exhausted:
    """Every strategy failed; carries no markup."""

    _instance: Optional[_Exhausted] = None

    def __new__(cls) -> _Exhausted:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "EXHAUSTED"

    def __bool__(self) -> bool:
        return False


EXHAUSTED: Final[_Exhausted] = _Exhausted()

FetchOutcome = Union[Success, _Exhausted]


@dataclass(slots=True)
class StreamState:
    """Per-response state written once by acquisition and polled by the drip loop."""

    metadata: PageMetadata
    data_ready: bool = False
    resolved: bool = False


__all__ = [
    "FetchTarget",
    "ItemRequest",
    "PageMetadata",
    "Success",
    "EXHAUSTED",
    "FetchOutcome",
    "StreamState",
]
