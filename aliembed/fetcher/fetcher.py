# aliembed/fetcher/fetcher.py
"""
Fetcher module: retrieves product page markup, rendering first and falling
back to a plain non-redirecting GET with bounded retry.
"""
from __future__ import annotations

import asyncio
from typing import Optional

from aiohttp import ClientError, ClientSession, ClientTimeout

from aliembed.config import EmbedConfig
from aliembed.errors import AcquisitionFailure
from aliembed.fetcher.renderer import NullRenderer, Renderer
from aliembed.logger import logger
from aliembed.models import EXHAUSTED, FetchOutcome, FetchTarget, PageMetadata, Success
from aliembed.parser import extract


class PageFetcher:
    """Tries the rendering backend, then direct retrieval with retries."""

    def __init__(
        self,
        session: ClientSession,
        config: EmbedConfig,
        renderer: Optional[Renderer] = None,
    ) -> None:
        self.session = session
        self.config = config
        self.renderer: Renderer = renderer or NullRenderer()

    async def fetch(self, target: FetchTarget) -> FetchOutcome:
        """
        Return ``Success`` with the page markup, or ``EXHAUSTED``.

        The rendering strategy never raises; when it yields nothing the
        direct strategy runs.
        """
        if self.renderer.available:
            markup = await self.renderer.render(target)
            if markup:
                return Success(markup, strategy="render")
        return await self._fetch_direct(target)

    async def _fetch_direct(self, target: FetchTarget) -> FetchOutcome:
        # no backoff between attempts
        timeout = ClientTimeout(total=self.config.request_timeout)
        for attempt in range(1, self.config.max_attempts + 1):
            try:
                async with self.session.get(
                    target.url,
                    allow_redirects=False,
                    headers={"User-Agent": target.user_agent},
                    timeout=timeout,
                    raise_for_status=False,
                ) as resp:
                    logger.info(
                        "Page response status (Attempt %d/%d): %s",
                        attempt,
                        self.config.max_attempts,
                        resp.status,
                    )
                    if 200 <= resp.status < 300:
                        text = await resp.text(errors="replace")
                        logger.debug("Page HTML length: %d", len(text))
                        return Success(text, strategy="direct")
            except (ClientError, asyncio.TimeoutError) as exc:
                logger.warning(
                    "Page request failed (Attempt %d/%d): %s",
                    attempt,
                    self.config.max_attempts,
                    exc,
                )
        return EXHAUSTED

    async def fetch_metadata(self, target: FetchTarget, defaults: PageMetadata) -> PageMetadata:
        """Fetch *target* and extract its metadata; raise AcquisitionFailure if nothing came back."""
        outcome = await self.fetch(target)
        if not isinstance(outcome, Success):
            raise AcquisitionFailure(target.url)
        return extract(outcome.markup, defaults)
