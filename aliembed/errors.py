# aliembed/errors.py
"""
Error taxonomy for AliEmbed.

Only :class:`MalformedRequest` ever reaches the HTTP caller (as a 400);
everything else is recovered inside the service and only logged.
"""
from __future__ import annotations


class AliEmbedError(Exception):
    """Base class for service errors."""


class MalformedRequest(AliEmbedError):
    """The inbound path does not name an item page."""

    message = "Invalid URL format"

    def __init__(self, path: str) -> None:
        super().__init__(f"{self.message}: {path}")
        self.path = path


class AcquisitionFailure(AliEmbedError):
    """Every retrieval strategy failed for a target."""

    def __init__(self, url: str) -> None:
        super().__init__(f"All fetch strategies exhausted for {url}")
        self.url = url


class StreamWriteFailure(AliEmbedError):
    """Writing to (or closing) an already opened response stream failed."""


class NotificationFailure(AliEmbedError):
    """The webhook endpoint rejected or never received a notification."""

    def __init__(self, status: int | None, detail: str = "") -> None:
        super().__init__(f"Webhook failed (status={status}) {detail}".rstrip())
        self.status = status


__all__ = [
    "AliEmbedError",
    "MalformedRequest",
    "AcquisitionFailure",
    "StreamWriteFailure",
    "NotificationFailure",
]
