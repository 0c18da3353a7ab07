# File: tests/conftest.py
from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Optional

import pytest
import pytest_asyncio
from aiohttp import web

from aliembed.config import EmbedConfig
from aliembed.models import ItemRequest, PageMetadata

ITEM_ID = "1005006234567890"
PRODUCT_HTML = (
    "<html><head>"
    '<meta property="og:title" content="Wireless Earbuds" />'
    '<meta property="og:description" content="Bluetooth 5.3, 30h battery" />'
    '<meta property="og:image" content="https://ae01.alicdn.com/kf/earbuds.jpg" />'
    "</head><body>product</body></html>"
)


async def serve_app(app: web.Application, port: int) -> AsyncIterator[str]:
    """Start *app* on *port*, yield base URL, ensure cleanup."""
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "localhost", port)
    await site.start()
    try:
        yield f"http://localhost:{port}"
    finally:
        await runner.cleanup()


@dataclass
class Upstream:
    """Fake AliExpress: records every hit and answers through *behaviour*."""

    base_url: str = ""
    hits: list[dict[str, Any]] = field(default_factory=list)
    behaviour: Optional[Callable[[int], Awaitable[web.StreamResponse]]] = None

    @property
    def calls(self) -> int:
        return len(self.hits)


@dataclass
class Webhook:
    """Fake webhook receiver."""

    url: str = ""
    payloads: list[dict[str, Any]] = field(default_factory=list)
    status: int = 204


@pytest_asyncio.fixture
async def upstream(unused_tcp_port_factory) -> AsyncIterator[Upstream]:
    state = Upstream()

    async def handle_item(request: web.Request) -> web.StreamResponse:
        state.hits.append({"path": request.path, "user_agent": request.headers.get("User-Agent")})
        if state.behaviour is None:
            return web.Response(text=PRODUCT_HTML, content_type="text/html")
        return await state.behaviour(state.calls)

    app = web.Application()
    app.router.add_get("/item/{name}", handle_item)

    async for url in serve_app(app, unused_tcp_port_factory()):
        state.base_url = url
        yield state


@pytest_asyncio.fixture
async def webhook(unused_tcp_port_factory) -> AsyncIterator[Webhook]:
    state = Webhook()

    async def receive(request: web.Request) -> web.Response:
        state.payloads.append(await request.json())
        return web.Response(status=state.status)

    app = web.Application()
    app.router.add_post("/hook", receive)

    async for url in serve_app(app, unused_tcp_port_factory()):
        state.url = f"{url}/hook"
        yield state


@pytest.fixture()
def fast_config() -> EmbedConfig:
    """Config with timers scaled down so streams finish in well under a second."""
    return EmbedConfig(
        max_attempts=5,
        request_timeout=2.0,
        drip_interval_ms=20,
        deadline_ms=200,
        grace_ms=150,
    )


@pytest.fixture()
def item() -> ItemRequest:
    return ItemRequest(item_id=ITEM_ID, canonical_url=f"https://www.aliexpress.com/item/{ITEM_ID}.html")


@pytest.fixture()
def defaults(fast_config: EmbedConfig) -> PageMetadata:
    return PageMetadata.defaults_for(ITEM_ID, fast_config.default_title, fast_config.default_image)


def after(delay: float, response: Callable[[], web.StreamResponse]):
    """Behaviour helper: answer with *response* after *delay* seconds."""

    async def _behaviour(_: int) -> web.StreamResponse:
        await asyncio.sleep(delay)
        return response()

    return _behaviour
