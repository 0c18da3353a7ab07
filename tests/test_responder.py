# File: tests/test_responder.py
# Streaming responder against an in-memory sink and a scripted fetcher
from __future__ import annotations

import asyncio
import time
from typing import Optional

import pytest
from bs4 import BeautifulSoup

from aliembed.errors import AcquisitionFailure, StreamWriteFailure
from aliembed.models import FetchTarget, ItemRequest, PageMetadata
from aliembed.stream import FILLER, BackgroundTasks, StreamingResponder

FETCHED = PageMetadata(title="Wireless Earbuds", description="30h battery", image_url="https://img/earbuds.jpg")


# --------------------------------------------------------------------------- #
#                               Test doubles                                  #
# --------------------------------------------------------------------------- #


class MemorySink:
    """Records every operation; can be told to fail from the n-th write on."""

    def __init__(self, log: list[str], fail_from_write: Optional[int] = None, fail_open: bool = False) -> None:
        self.log = log
        self.chunks: list[bytes] = []
        self.closed = 0
        self.aborted = 0
        self._writes = 0
        self._fail_from_write = fail_from_write
        self._fail_open = fail_open

    async def open(self) -> None:
        if self._fail_open:
            raise StreamWriteFailure("prepare failed")
        self.log.append("open")

    async def write(self, data: bytes) -> None:
        self._writes += 1
        if self._fail_from_write is not None and self._writes >= self._fail_from_write:
            raise StreamWriteFailure("connection reset")
        self.chunks.append(data)
        self.log.append("filler" if data == FILLER else "write")

    async def close(self) -> None:
        self.closed += 1
        self.log.append("close")

    def abort(self) -> None:
        self.aborted += 1
        self.log.append("abort")

    @property
    def body(self) -> str:
        return b"".join(self.chunks).decode("utf-8")

    @property
    def terminations(self) -> int:
        return self.closed + self.aborted


class CloseFailsOnceSink(MemorySink):
    """Accepts every write but fails the first close."""

    close_failures = 0

    async def close(self) -> None:
        if not self.close_failures:
            self.close_failures += 1
            raise StreamWriteFailure("connection reset on close")
        await super().close()


class ScriptedFetcher:
    """Completes after *delay* seconds with FETCHED, or raises *error*."""

    def __init__(self, log: list[str], delay: float = 0.0, error: Optional[Exception] = None) -> None:
        self.log = log
        self.delay = delay
        self.error = error

    async def fetch_metadata(self, target: FetchTarget, defaults: PageMetadata) -> PageMetadata:
        await asyncio.sleep(self.delay)
        self.log.append("ready")
        if self.error is not None:
            raise self.error
        return FETCHED


class RecordingNotifier:
    available = True

    def __init__(self, sink: MemorySink) -> None:
        self.sink = sink
        self.calls: list[tuple[ItemRequest, PageMetadata, int]] = []

    async def notify(self, item: ItemRequest, meta: PageMetadata) -> None:
        self.calls.append((item, meta, self.sink.closed))


async def run_stream(config, item, defaults, *, delay=0.0, error=None, fail_from_write=None, fail_open=False):
    log: list[str] = []
    sink = MemorySink(log, fail_from_write=fail_from_write, fail_open=fail_open)
    notifier = RecordingNotifier(sink)
    responder = StreamingResponder(ScriptedFetcher(log, delay, error), config, notifier=notifier)
    target = FetchTarget(url=item.canonical_url, user_agent=config.user_agent)
    started = time.perf_counter()
    task = await responder.respond(sink, item, target, defaults)
    result = await task
    elapsed = time.perf_counter() - started
    await responder.background.drain(timeout=1.0)
    return result, sink, notifier, log, elapsed


def soup_of(sink: MemorySink) -> BeautifulSoup:
    return BeautifulSoup(sink.body, "html.parser")


# --------------------------------------------------------------------------- #
#                                   Tests                                     #
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio()
async def test_respond_returns_before_acquisition_completes(fast_config, item, defaults):
    log: list[str] = []
    sink = MemorySink(log)
    responder = StreamingResponder(ScriptedFetcher(log, delay=0.1), fast_config)
    task = await responder.respond(sink, item, FetchTarget(item.canonical_url, "UA"), defaults)

    assert not task.done()
    assert log == ["open", "write"]
    assert sink.body.startswith("<html>")
    assert "Content-Type" in sink.body
    await task
    await responder.background.drain()


@pytest.mark.asyncio()
async def test_fast_acquisition_uses_fetched_metadata(fast_config, item, defaults):
    result, sink, _, log, _ = await run_stream(fast_config, item, defaults, delay=0.05)

    assert result.closed and result.resolved
    assert result.metadata == FETCHED
    soup = soup_of(sink)
    assert soup.title.string == "Wireless Earbuds"
    assert soup.find("meta", attrs={"name": "twitter:image"})["content"] == FETCHED.image_url
    assert soup.find("meta", attrs={"name": "twitter:title"})["content"] == f"AliExpress - {item.item_id}"
    assert soup.h1.string == "Wireless Earbuds"
    assert log[0] == "open" and log[-1] == "close"
    assert sink.closed == 1 and sink.aborted == 0


@pytest.mark.asyncio()
async def test_writes_are_ordered_preamble_fillers_remainder(fast_config, item, defaults):
    result, sink, _, log, _ = await run_stream(fast_config, item, defaults, delay=0.12)

    writes = [entry for entry in log if entry in ("write", "filler")]
    assert writes[0] == "write" and writes[-1] == "write"
    assert set(writes[1:-1]) == {"filler"}
    assert result.fillers == len(writes) - 2 >= 1
    assert sink.body.count("<!-- -->") == result.fillers


@pytest.mark.asyncio()
async def test_no_filler_after_data_ready(fast_config, item, defaults):
    _, _, _, log, _ = await run_stream(fast_config, item, defaults, delay=0.1)

    ready_at = log.index("ready")
    assert "filler" not in log[ready_at:]


@pytest.mark.asyncio()
async def test_failed_acquisition_falls_back_to_defaults(fast_config, item, defaults):
    result, sink, notifier, _, _ = await run_stream(
        fast_config, item, defaults, error=AcquisitionFailure(item.canonical_url)
    )

    assert result.closed and not result.resolved
    assert result.metadata == defaults
    assert soup_of(sink).title.string == "AliExpress Product"
    assert f"Item ID: {item.item_id}" in sink.body
    assert len(notifier.calls) == 1


@pytest.mark.asyncio()
async def test_unexpected_acquisition_error_is_contained(fast_config, item, defaults):
    result, sink, _, _, _ = await run_stream(fast_config, item, defaults, error=RuntimeError("boom"))

    assert result.closed
    assert result.metadata == defaults
    assert sink.terminations == 1


@pytest.mark.asyncio()
async def test_completion_within_grace_period_uses_fetched_metadata(fast_config, item, defaults):
    # deadline 200 ms, grace 150 ms: ready at 280 ms lands inside the grace window
    result, _, _, log, elapsed = await run_stream(fast_config, item, defaults, delay=0.28)

    assert result.resolved
    assert result.metadata == FETCHED
    assert log.index("ready") < log.index("close")
    assert elapsed < 0.45


@pytest.mark.asyncio()
async def test_acquisition_past_deadline_and_grace_uses_defaults(fast_config, item, defaults):
    result, sink, notifier, _, elapsed = await run_stream(fast_config, item, defaults, delay=0.7)

    assert result.closed and not result.resolved
    assert result.metadata == defaults
    assert soup_of(sink).title.string == "AliExpress Product"
    # deadline + one drip interval + grace, with scheduling slack
    assert 0.33 <= elapsed < 0.6
    assert notifier.calls[0][1] == defaults


@pytest.mark.asyncio()
async def test_fillers_stop_at_deadline(fast_config, item, defaults):
    result, _, _, _, _ = await run_stream(fast_config, item, defaults, delay=0.7)

    # 200 ms deadline / 20 ms interval
    assert 1 <= result.fillers <= 10


@pytest.mark.asyncio()
async def test_notification_fires_once_after_close(fast_config, item, defaults):
    _, _, notifier, _, _ = await run_stream(fast_config, item, defaults, delay=0.02)

    assert len(notifier.calls) == 1
    notified_item, meta, closed_at_call = notifier.calls[0]
    assert notified_item == item
    assert meta == FETCHED
    assert closed_at_call == 1


@pytest.mark.asyncio()
async def test_write_failure_mid_stream_writes_fallback(fast_config, item, defaults):
    # second write is the first filler
    log: list[str] = []
    sink = MemorySink(log)
    original_write = sink.write
    failed = {"done": False}

    async def flaky_write(data: bytes) -> None:
        if data == FILLER and not failed["done"]:
            failed["done"] = True
            raise StreamWriteFailure("hiccup")
        await original_write(data)

    sink.write = flaky_write
    responder = StreamingResponder(ScriptedFetcher(log, delay=0.1), fast_config)
    task = await responder.respond(sink, item, FetchTarget(item.canonical_url, "UA"), defaults)
    result = await task
    await responder.background.drain()

    assert result.closed
    assert result.metadata == defaults
    assert sink.closed == 1 and sink.aborted == 0
    assert soup_of(sink).title.string == "AliExpress Product"


@pytest.mark.asyncio()
async def test_broken_stream_is_aborted(fast_config, item, defaults):
    result, sink, notifier, _, _ = await run_stream(fast_config, item, defaults, delay=0.1, fail_from_write=2)

    assert not result.closed
    assert sink.aborted == 1
    assert sink.closed == 0
    assert notifier.calls == []


@pytest.mark.asyncio()
async def test_failed_open_is_aborted_without_acquisition(fast_config, item, defaults):
    result, sink, notifier, log, _ = await run_stream(
        fast_config, item, defaults, fail_open=True, fail_from_write=1
    )

    assert not result.closed
    assert sink.terminations == 1
    assert "ready" not in log
    assert notifier.calls == []


@pytest.mark.asyncio()
async def test_cancelled_stream_is_aborted(fast_config, item, defaults):
    log: list[str] = []
    sink = MemorySink(log)
    responder = StreamingResponder(ScriptedFetcher(log, delay=5.0), fast_config)
    task = await responder.respond(sink, item, FetchTarget(item.canonical_url, "UA"), defaults)
    await asyncio.sleep(0.05)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert sink.aborted == 1
    assert sink.closed == 0
    await responder.background.drain(timeout=0)


@pytest.mark.asyncio()
@pytest.mark.parametrize(
    "delay,error",
    [(0.0, None), (0.05, None), (0.3, None), (0.7, None), (0.0, AcquisitionFailure("x")), (0.1, ValueError("y"))],
)
async def test_stream_always_terminates_exactly_once(fast_config, item, defaults, delay, error):
    _, sink, _, _, _ = await run_stream(fast_config, item, defaults, delay=delay, error=error)

    assert sink.terminations == 1


def test_shared_background_registry_is_kept(fast_config):
    shared = BackgroundTasks()
    responder = StreamingResponder(ScriptedFetcher([]), fast_config, background=shared)
    assert responder.background is shared


@pytest.mark.asyncio()
async def test_detached_tasks_land_in_shared_registry(fast_config, item, defaults):
    shared = BackgroundTasks()
    log: list[str] = []
    responder = StreamingResponder(ScriptedFetcher(log, delay=0.05), fast_config, background=shared)
    task = await responder.respond(MemorySink(log), item, FetchTarget(item.canonical_url, "UA"), defaults)

    assert len(shared) == 1  # acquisition
    await task
    await shared.drain(timeout=1.0)
    assert len(shared) == 0


@pytest.mark.asyncio()
async def test_close_failure_after_remainder_aborts_without_fallback(fast_config, item, defaults):
    log: list[str] = []
    sink = CloseFailsOnceSink(log)
    notifier = RecordingNotifier(sink)
    responder = StreamingResponder(ScriptedFetcher(log, delay=0.02), fast_config, notifier=notifier)
    task = await responder.respond(sink, item, FetchTarget(item.canonical_url, "UA"), defaults)
    result = await task
    await responder.background.drain()

    assert not result.closed
    assert result.metadata == FETCHED
    assert sink.body.count("</html>") == 1
    assert sink.body.count("<title>") == 1
    assert sink.aborted == 1 and sink.closed == 0
    assert notifier.calls == []


@pytest.mark.asyncio()
@pytest.mark.parametrize(
    "delay,resolved,past_deadline",
    [
        # deadline 200 ms, grace 150 ms
        (0.17, True, False),
        (0.23, True, True),
        (0.31, True, True),
        (0.42, False, True),
    ],
    ids=["before-deadline", "after-deadline", "before-grace-end", "after-grace-end"],
)
async def test_deadline_and_grace_boundaries(fast_config, item, defaults, delay, resolved, past_deadline):
    result, sink, _, _, elapsed = await run_stream(fast_config, item, defaults, delay=delay)

    assert result.closed
    assert result.resolved is resolved
    assert result.metadata == (FETCHED if resolved else defaults)
    assert (elapsed >= fast_config.deadline_ms / 1000) is past_deadline
    assert sink.terminations == 1
