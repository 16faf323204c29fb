"""Progress heartbeats around a single provider call.

Two cadences run while the call is outstanding: a local log line every
``heartbeat_seconds`` and, less often, a caller-supplied async callback (usually
"post a heartbeat comment"). Neither affects the call's result.
"""

import asyncio
import contextlib
import logging
import time
from collections.abc import Awaitable, Callable
from typing import TypeVar

from council.format import format_elapsed, format_error
from council.models import EngineEvent, Phase, ProviderEvent

logger = logging.getLogger(__name__)

T = TypeVar("T")

EventCallback = Callable[[EngineEvent], None]
BeadsHeartbeat = Callable[[int], Awaitable[None]]


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


async def _log_ticker(provider: str, start: float, interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        logger.info("%s still running... (%s)", provider, format_elapsed(_elapsed_ms(start)))


class _TranscriptTicker:
    """At most ``limit`` callbacks, never two in flight; overlapping ticks are dropped."""

    def __init__(self, callback: BeadsHeartbeat, start: float, interval: float, limit: int) -> None:
        self._callback = callback
        self._start = start
        self._interval = interval
        self._limit = limit
        self.sent = 0
        self.in_flight: asyncio.Task[None] | None = None

    def _settled(self, task: asyncio.Task[None]) -> None:
        self.sent += 1
        self.in_flight = None
        if not task.cancelled() and task.exception() is not None:
            logger.warning("Heartbeat callback failed: %s", task.exception())

    async def run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            if self.in_flight is not None or self.sent >= self._limit:
                continue
            self.in_flight = asyncio.create_task(self._callback(_elapsed_ms(self._start)))
            self.in_flight.add_done_callback(self._settled)


async def _stop(task: asyncio.Task | None) -> None:
    if task is None:
        return
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task


async def run_with_heartbeat(
    call: Callable[[], Awaitable[T]],
    *,
    issue_id: str,
    provider: str,
    agent_name: str,
    round_number: int,
    phase: Phase,
    heartbeat_seconds: float,
    beads_heartbeat_seconds: float,
    beads_heartbeat_max: int,
    on_beads_heartbeat: BeadsHeartbeat | None = None,
    on_event: EventCallback | None = None,
) -> T:
    """Await ``call()`` while emitting heartbeats; return or raise exactly what it does."""

    def emit(event: EngineEvent) -> None:
        if on_event:
            on_event(event)

    start = time.monotonic()
    emit(ProviderEvent("provider_started", issue_id, provider, agent_name, round_number, phase))
    logger.info("%s starting (%s, round %d)", provider, phase, round_number)

    log_task: asyncio.Task | None = None
    if heartbeat_seconds > 0:
        log_task = asyncio.create_task(_log_ticker(provider, start, heartbeat_seconds))

    ticker: _TranscriptTicker | None = None
    ticker_task: asyncio.Task | None = None
    if beads_heartbeat_seconds > 0 and on_beads_heartbeat is not None:
        ticker = _TranscriptTicker(on_beads_heartbeat, start, beads_heartbeat_seconds, beads_heartbeat_max)
        ticker_task = asyncio.create_task(ticker.run())

    try:
        result = await call()
    except Exception as exc:
        emit(
            ProviderEvent(
                "provider_finished",
                issue_id,
                provider,
                agent_name,
                round_number,
                phase,
                elapsed_ms=_elapsed_ms(start),
                ok=False,
                error=format_error(exc),
            )
        )
        logger.warning("%s failed (%s, %s)", provider, phase, format_elapsed(_elapsed_ms(start)))
        raise
    finally:
        await _stop(log_task)
        await _stop(ticker_task)
        if ticker is not None and ticker.in_flight is not None:
            # Let an outstanding heartbeat comment land before the next transcript write.
            await asyncio.gather(ticker.in_flight, return_exceptions=True)

    emit(
        ProviderEvent(
            "provider_finished",
            issue_id,
            provider,
            agent_name,
            round_number,
            phase,
            elapsed_ms=_elapsed_ms(start),
            ok=True,
        )
    )
    logger.info("%s finished (%s, %s)", provider, phase, format_elapsed(_elapsed_ms(start)))
    return result
