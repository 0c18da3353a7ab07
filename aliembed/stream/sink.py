# aliembed/stream/sink.py
"""
Output streams the responder writes to.

:class:`ByteSink` is the minimal surface the responder needs; the aiohttp
adapter maps it onto a chunked :class:`aiohttp.web.StreamResponse`.
"""
from __future__ import annotations

from typing import Protocol

from aiohttp import web

from aliembed.errors import StreamWriteFailure


class ByteSink(Protocol):
    async def open(self) -> None:
        ...

    async def write(self, data: bytes) -> None:
        ...

    async def close(self) -> None:
        ...

    def abort(self) -> None:
        ...


class ResponseSink:
    """Streams into an aiohttp ``StreamResponse`` bound to *request*."""

    def __init__(self, request: web.Request, response: web.StreamResponse | None = None) -> None:
        self.request = request
        self.response = response or web.StreamResponse(
            status=200,
            headers={"Content-Type": "text/html; charset=UTF-8"},
        )

    async def open(self) -> None:
        await self.response.prepare(self.request)

    async def write(self, data: bytes) -> None:
        try:
            await self.response.write(data)
        except (ConnectionError, RuntimeError) as exc:
            raise StreamWriteFailure(str(exc)) from exc

    async def close(self) -> None:
        try:
            await self.response.write_eof()
        except (ConnectionError, RuntimeError) as exc:
            raise StreamWriteFailure(str(exc)) from exc

    def abort(self) -> None:
        transport = self.request.transport
        if transport is not None and not transport.is_closing():
            transport.abort()
