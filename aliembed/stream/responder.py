# aliembed/stream/responder.py
"""
Streaming responder: answers a preview request before the product metadata
is known.

The response is opened straight away with a document preamble. Metadata is
acquired in a background task while a drip loop writes an HTML comment every
``drip_interval_ms`` so proxies and unfurl clients keep the connection open.
Once the data is ready (or ``deadline_ms`` plus ``grace_ms`` have passed) the
rest of the document is written with whatever metadata is current and the
stream is closed. A webhook notification follows the close.

Writes per stream are strictly ordered: preamble, filler*, remainder. The
only link between the acquisition task and the drip loop is
:attr:`StreamState.data_ready`, set once by the former and polled by the
latter.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional

from aliembed.config import EmbedConfig
from aliembed.errors import AcquisitionFailure
from aliembed.fetcher import PageFetcher
from aliembed.logger import logger
from aliembed.models import FetchTarget, ItemRequest, PageMetadata, StreamState
from aliembed.notify import Notifier, NullNotifier
from aliembed.stream.background import BackgroundTasks
from aliembed.stream.document import FILLER, DocumentRenderer
from aliembed.stream.sink import ByteSink


@dataclass(slots=True)
class StreamResult:
    """How a stream ended."""

    metadata: PageMetadata
    closed: bool
    resolved: bool = False
    fillers: int = 0


class StreamingResponder:
    """Owns the keep-alive/race protocol for one service instance."""

    def __init__(
        self,
        fetcher: PageFetcher,
        config: EmbedConfig,
        documents: Optional[DocumentRenderer] = None,
        notifier: Optional[Notifier] = None,
        background: Optional[BackgroundTasks] = None,
    ) -> None:
        self.fetcher = fetcher
        self.config = config
        self.documents = documents or DocumentRenderer(config)
        self.notifier: Notifier = notifier or NullNotifier()
        self.background = background if background is not None else BackgroundTasks()

    async def respond(
        self,
        sink: ByteSink,
        item: ItemRequest,
        target: FetchTarget,
        defaults: PageMetadata,
    ) -> asyncio.Task[StreamResult]:
        """
        Open *sink*, write the preamble and return the task finishing the response.

        The returned task never raises (except on cancellation) and always
        leaves *sink* closed or aborted.
        """
        loop = asyncio.get_running_loop()
        started = loop.time()
        try:
            await sink.open()
            await sink.write(self.documents.preamble())
        except Exception as exc:
            logger.error("Opening stream for item %s failed: %s", item.item_id, exc)
            return asyncio.create_task(self._give_up(sink, item, defaults))

        state = StreamState(metadata=defaults)
        acquisition = self.background.spawn(
            self._acquire(state, target),
            name=f"acquire-{item.item_id}",
        )
        return asyncio.create_task(self._finish(sink, item, defaults, state, acquisition, started))

    async def _acquire(self, state: StreamState, target: FetchTarget) -> None:
        try:
            metadata = await self.fetcher.fetch_metadata(target, state.metadata)
        except AcquisitionFailure as exc:
            logger.warning("%s, using fallback data", exc)
        except Exception as exc:
            logger.error("Error fetching %s, using fallback data: %s", target.url, exc)
        else:
            state.metadata = metadata
            state.resolved = True
        finally:
            state.data_ready = True

    async def _drip(self, sink: ByteSink, state: StreamState, started: float) -> int:
        loop = asyncio.get_running_loop()
        interval = self.config.drip_interval_ms / 1000
        deadline = self.config.deadline_ms / 1000
        fillers = 0
        while not state.data_ready:
            await asyncio.sleep(interval)
            if state.data_ready or loop.time() - started >= deadline:
                break
            await sink.write(FILLER)
            fillers += 1
        return fillers

    async def _finish(
        self,
        sink: ByteSink,
        item: ItemRequest,
        defaults: PageMetadata,
        state: StreamState,
        acquisition: asyncio.Task[None],
        started: float,
    ) -> StreamResult:
        fillers = 0
        finished = False
        try:
            fillers = await self._drip(sink, state, started)
            if not state.data_ready:
                logger.warning(
                    "Deadline of %d ms reached for item %s, waiting %d ms more",
                    self.config.deadline_ms,
                    item.item_id,
                    self.config.grace_ms,
                )
                # asyncio.wait does not cancel the task on timeout
                await asyncio.wait({acquisition}, timeout=self.config.grace_ms / 1000)
            final = state.metadata
            resolved = state.resolved
            await sink.write(self.documents.remainder(item, final))
            finished = True
            await sink.close()
        except asyncio.CancelledError:
            sink.abort()
            raise
        except Exception as exc:
            if finished:
                # the document is complete, only the close failed
                logger.error("Closing stream for item %s failed, aborting: %s", item.item_id, exc)
                sink.abort()
                return StreamResult(metadata=final, closed=False, resolved=resolved, fillers=fillers)
            logger.error("Streaming item %s failed: %s", item.item_id, exc)
            return await self._give_up(sink, item, defaults, fillers)

        logger.info(
            "Embed for item %s delivered (%s data, %d filler(s))",
            item.item_id,
            "fetched" if resolved else "fallback",
            fillers,
        )
        self.background.spawn(self.notifier.notify(item, final), name=f"notify-{item.item_id}")
        return StreamResult(metadata=final, closed=True, resolved=resolved, fillers=fillers)

    async def _give_up(
        self,
        sink: ByteSink,
        item: ItemRequest,
        defaults: PageMetadata,
        fillers: int = 0,
    ) -> StreamResult:
        try:
            await sink.write(self.documents.fallback(item, defaults))
            await sink.close()
        except Exception as exc:
            logger.error("Fallback write for item %s failed, aborting stream: %s", item.item_id, exc)
            sink.abort()
            return StreamResult(metadata=defaults, closed=False, fillers=fillers)
        return StreamResult(metadata=defaults, closed=True, fillers=fillers)
