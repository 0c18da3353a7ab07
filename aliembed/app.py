# File: aliembed/app.py
"""aliembed.app: aiohttp-приложение, связывающее разбор пути, редирект и потоковое превью."""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Optional

from aiohttp import ClientSession, web

from aliembed.config import EmbedConfig
from aliembed.errors import MalformedRequest
from aliembed.fetcher import PageFetcher, Renderer, build_renderer
from aliembed.logger import logger
from aliembed.models import FetchTarget, PageMetadata
from aliembed.notify import Notifier, build_notifier
from aliembed.routing import RequestKind, classify, require_item
from aliembed.stream import BackgroundTasks, ResponseSink, StreamingResponder

__all__ = ["create_app", "run", "CONFIG_KEY", "RESPONDER_KEY", "BACKGROUND_KEY"]

CONFIG_KEY = web.AppKey("config", EmbedConfig)
RESPONDER_KEY = web.AppKey("responder", StreamingResponder)
BACKGROUND_KEY = web.AppKey("background", BackgroundTasks)

_Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


@web.middleware
async def malformed_request_middleware(request: web.Request, handler: _Handler) -> web.StreamResponse:
    """Единственная ошибка, видимая клиенту: неверный путь → 400 с фиксированным текстом."""
    try:
        return await handler(request)
    except MalformedRequest as exc:
        logger.info("Invalid URL format: %s", exc.path)
        return web.Response(status=400, text=MalformedRequest.message)


async def handle_item(request: web.Request) -> web.StreamResponse:
    """Редирект для обычных клиентов, потоковый HTML-документ для клиентов превью."""
    config = request.app[CONFIG_KEY]
    logger.info("Request %s (User-Agent: %s)", request.path, request.headers.get("User-Agent"))

    item = require_item(request.path, config)
    if classify(request.headers, config.preview_marker) is RequestKind.STANDARD:
        logger.info("Redirecting to %s", item.canonical_url)
        raise web.HTTPFound(item.canonical_url)

    logger.info("Preparing embed for item %s", item.item_id)
    defaults = PageMetadata.defaults_for(item.item_id, config.default_title, config.default_image)
    target = FetchTarget(url=item.canonical_url, user_agent=config.user_agent)
    sink = ResponseSink(request)
    finishing = await request.app[RESPONDER_KEY].respond(sink, item, target, defaults)
    # the connection stays open only while the handler runs
    await finishing
    return sink.response


def create_app(
    config: EmbedConfig,
    *,
    renderer: Optional[Renderer] = None,
    notifier: Optional[Notifier] = None,
) -> web.Application:
    """Собирает web.Application; внешние зависимости создаются при старте и закрываются при остановке."""
    app = web.Application(middlewares=[malformed_request_middleware])
    app[CONFIG_KEY] = config
    app[BACKGROUND_KEY] = BackgroundTasks()

    async def _lifecycle(app: web.Application) -> AsyncIterator[None]:
        session = ClientSession(headers={"User-Agent": config.user_agent})
        fetcher = PageFetcher(session, config, renderer or build_renderer(config))
        app[RESPONDER_KEY] = StreamingResponder(
            fetcher,
            config,
            notifier=notifier or build_notifier(config, session),
            background=app[BACKGROUND_KEY],
        )
        try:
            yield
        finally:
            await app[BACKGROUND_KEY].drain(timeout=config.request_timeout)
            await session.close()

    app.cleanup_ctx.append(_lifecycle)
    app.router.add_get("/{tail:.*}", handle_item)
    return app


def run(config: EmbedConfig, host: Optional[str] = None, port: Optional[int] = None) -> None:
    """Запускает HTTP-сервер до остановки процесса."""
    logger.info("Starting AliEmbed on %s:%s", host or config.host, port or config.port)
    web.run_app(create_app(config), host=host or config.host, port=port or config.port, print=None)
