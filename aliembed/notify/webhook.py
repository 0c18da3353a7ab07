# aliembed/notify/webhook.py
"""
Webhook notifications sent after an embed has been delivered.

The payload is a single Discord-style embed. Delivery is best effort:
non-2xx answers and transport errors are logged, never retried.
"""
from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Protocol

from aiohttp import ClientError, ClientSession, ClientTimeout

from aliembed.config import EmbedConfig
from aliembed.errors import NotificationFailure
from aliembed.logger import logger
from aliembed.models import ItemRequest, PageMetadata


class Notifier(Protocol):
    available: bool

    async def notify(self, item: ItemRequest, meta: PageMetadata) -> None:
        ...


class NullNotifier:
    """Absent webhook endpoint."""

    available = False

    async def notify(self, item: ItemRequest, meta: PageMetadata) -> None:
        return None


def build_payload(
    item: ItemRequest,
    meta: PageMetadata,
    color: int,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """Serialize one delivered embed into the webhook JSON body."""
    timestamp = (now or datetime.now(timezone.utc)).isoformat()
    return {
        "embeds": [
            {
                "title": meta.title,
                "description": meta.description,
                "url": item.canonical_url,
                "color": color,
                "fields": [{"name": "Item ID", "value": item.item_id, "inline": True}],
                "image": {"url": meta.image_url},
                "timestamp": timestamp,
            }
        ]
    }


class WebhookNotifier:
    """POSTs a JSON embed to a configured webhook URL."""

    available = True

    def __init__(
        self,
        session: ClientSession,
        url: str,
        color: int,
        timeout: float = 10.0,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.session = session
        self.url = url
        self.color = color
        self.timeout = timeout
        self._clock = clock

    async def send(self, item: ItemRequest, meta: PageMetadata) -> int:
        """Deliver the payload; raise NotificationFailure on transport error or non-2xx."""
        payload = build_payload(item, meta, self.color, now=self._clock())
        try:
            async with self.session.post(
                self.url,
                json=payload,
                timeout=ClientTimeout(total=self.timeout),
                raise_for_status=False,
            ) as resp:
                if not 200 <= resp.status < 300:
                    body = await resp.text(errors="replace")
                    raise NotificationFailure(resp.status, body[:200])
                return resp.status
        except (ClientError, asyncio.TimeoutError) as exc:
            raise NotificationFailure(None, str(exc)) from exc

    async def notify(self, item: ItemRequest, meta: PageMetadata) -> None:
        try:
            status = await self.send(item, meta)
        except NotificationFailure as exc:
            logger.warning("Webhook notification for item %s failed: %s", item.item_id, exc)
            return
        logger.info("Webhook notified for item %s (HTTP %s)", item.item_id, status)


def build_notifier(config: EmbedConfig, session: ClientSession) -> Notifier:
    """Choose the notifier once, from configuration."""
    if config.webhook_url is None:
        return NullNotifier()
    return WebhookNotifier(
        session,
        str(config.webhook_url),
        color=config.theme_color_int,
        timeout=config.request_timeout,
    )
