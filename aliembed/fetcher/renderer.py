# aliembed/fetcher/renderer.py
"""
Headless rendering strategy: loads a page in a remote Chromium over CDP and
returns the DOM after client-side scripts had a moment to fill it in.

The backend is optional. :func:`build_renderer` picks :class:`NullRenderer`
when no endpoint is configured, so callers check ``renderer.available`` once
instead of testing the config everywhere.
"""
from __future__ import annotations

from typing import Any, Optional, Protocol

from aliembed.config import EmbedConfig
from aliembed.logger import logger
from aliembed.models import FetchTarget

#: Playwright resource types that never contribute to <meta> tags
BLOCKED_RESOURCE_TYPES: frozenset[str] = frozenset({"image", "stylesheet", "font", "media"})


class Renderer(Protocol):
    available: bool

    async def render(self, target: FetchTarget) -> Optional[str]:
        ...


class NullRenderer:
    """Absent rendering backend."""

    available = False

    async def render(self, target: FetchTarget) -> Optional[str]:
        return None


class PlaywrightRenderer:
    """Renders pages through a remote browser reachable at a CDP endpoint."""

    available = True

    def __init__(self, endpoint: str, timeout_ms: int = 8000, settle_ms: int = 500) -> None:
        self.endpoint = endpoint
        self.timeout_ms = timeout_ms
        self.settle_ms = settle_ms

    async def render(self, target: FetchTarget) -> Optional[str]:
        """
        Return the rendered markup, or *None* on any failure.

        Navigation waits for DOMContentLoaded only (not network idle) and is
        bounded by ``timeout_ms``; ``settle_ms`` is then granted to scripts.
        """
        try:
            markup = await self._render(target)
        except Exception as exc:
            logger.warning("Rendering %s failed, falling back to direct fetch: %s", target.url, exc)
            return None
        logger.info("Rendered %s (%d chars)", target.url, len(markup))
        return markup or None

    async def _render(self, target: FetchTarget) -> str:
        from playwright.async_api import async_playwright

        async with async_playwright() as playwright:
            browser = await playwright.chromium.connect_over_cdp(self.endpoint, timeout=self.timeout_ms)
            try:
                context = await browser.new_context(user_agent=target.user_agent)
                try:
                    await context.route("**/*", self._block_subresources)
                    page = await context.new_page()
                    await page.goto(target.url, wait_until="domcontentloaded", timeout=self.timeout_ms)
                    await page.wait_for_timeout(self.settle_ms)
                    return await page.content()
                finally:
                    await context.close()
            finally:
                await browser.close()

    @staticmethod
    async def _block_subresources(route: Any, request: Any) -> None:
        if request.resource_type in BLOCKED_RESOURCE_TYPES:
            await route.abort()
            return
        await route.continue_()


def build_renderer(config: EmbedConfig) -> Renderer:
    """Choose the rendering backend once, from configuration."""
    if not config.browser_endpoint:
        logger.debug("No browser endpoint configured, rendering disabled")
        return NullRenderer()
    return PlaywrightRenderer(
        config.browser_endpoint,
        timeout_ms=config.render_timeout_ms,
        settle_ms=config.render_settle_ms,
    )
