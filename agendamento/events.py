"""In-process event bus.

Services publish SystemEvents with `emit()`; a background worker drains the
queue and hands each event to the registered subscribers (the audit
logger today). Publishers are never blocked by a slow subscriber.

Usage:
    from agendamento.events import emit

    await emit(SystemEvent(
        event_type=EventType.APPOINTMENT_CREATED,
        appointment_id=appointment.id,
        data={"centro_distribuicao": "Bahia"},
    ))
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from agendamento.schemas.events import EventType, SystemEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[SystemEvent], Coroutine[Any, Any, None]]


class EventBus:
    """Queue plus worker task; subscribers are global or per event type."""

    def __init__(self) -> None:
        self._global: list[EventHandler] = []
        self._by_type: dict[EventType, list[EventHandler]] = {}
        self._queue: asyncio.Queue[SystemEvent] | None = None
        self._worker: asyncio.Task[None] | None = None

    def subscribe(self, handler: EventHandler, event_types: list[EventType] | None = None) -> None:
        if event_types is None:
            self._global.append(handler)
            logger.info("Registered global event subscriber: %s", handler.__name__)
            return
        for et in event_types:
            self._by_type.setdefault(et, []).append(handler)
        logger.info(
            "Registered event subscriber %s for types: %s",
            handler.__name__,
            [t.value for t in event_types],
        )

    def unsubscribe(self, handler: EventHandler) -> None:
        if handler in self._global:
            self._global.remove(handler)
        for handlers in self._by_type.values():
            if handler in handlers:
                handlers.remove(handler)

    async def emit(self, event: SystemEvent) -> None:
        if self._queue is None:
            self._queue = asyncio.Queue()
        self._ensure_worker()
        await self._queue.put(event)
        logger.debug(
            "Event emitted: %s (appointment=%s)", event.event_type.value, event.appointment_id
        )

    async def start(self) -> None:
        self._queue = asyncio.Queue()
        self._ensure_worker()
        logger.info(
            "Event system started with %d global + %d typed subscribers",
            len(self._global),
            sum(len(v) for v in self._by_type.values()),
        )

    async def stop(self) -> None:
        """Drain pending events, then cancel the worker."""
        if self._queue is not None:
            await self._queue.join()

        if self._worker is not None and not self._worker.done():
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass

        self._worker = None
        self._queue = None
        logger.info("Event system stopped")

    def _ensure_worker(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run())

    async def _run(self) -> None:
        queue = self._queue
        if queue is None:
            return
        while True:
            try:
                event = await queue.get()
            except asyncio.CancelledError:
                logger.info("Event worker shutting down")
                break
            try:
                await self.dispatch(event)
            except Exception:
                logger.exception("Error in event worker")
            finally:
                queue.task_done()

    async def dispatch(self, event: SystemEvent) -> None:
        """Deliver one event to every matching subscriber, isolating failures."""
        handlers = list(self._global) + self._by_type.get(event.event_type, [])
        if not handlers:
            return

        results = await asyncio.gather(
            *[handler(event) for handler in handlers],
            return_exceptions=True,
        )
        for handler, result in zip(handlers, results):
            if isinstance(result, Exception):
                logger.error(
                    "Handler %s failed for %s: %s", handler.__name__, event.event_type.value, result
                )


# Module-level singleton and its bound shortcuts
event_bus = EventBus()


async def emit(event: SystemEvent) -> None:
    """Publish a SystemEvent to all subscribers."""
    await event_bus.emit(event)


def subscribe(handler: EventHandler, event_types: list[EventType] | None = None) -> None:
    event_bus.subscribe(handler, event_types)


async def start_event_system() -> None:
    await event_bus.start()


async def stop_event_system() -> None:
    await event_bus.stop()
