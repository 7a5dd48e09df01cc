"""In-process signal bus used to request radar refreshes from the UI."""
from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)

REFRESH_RADAR = "refresh-radar"

Handler = Callable[[Any], Any]


@dataclass(frozen=True)
class RefreshSignal:
    timestamp: int  # epoch milliseconds when the refresh was requested


class EventBus:
    """Named-signal dispatcher.

    Synchronous handlers run inline. Handlers returning an awaitable are
    scheduled as tasks on the running loop and not awaited, so a dispatch
    never blocks on a handler's network I/O.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = defaultdict(list)
        self._pending: set[asyncio.Task[Any]] = set()

    def subscribe(self, name: str, handler: Handler) -> None:
        self._handlers[name].append(handler)

    def unsubscribe(self, name: str, handler: Handler) -> None:
        handlers = self._handlers.get(name, [])
        if handler in handlers:
            handlers.remove(handler)

    def listeners(self, name: str) -> int:
        return len(self._handlers.get(name, []))

    def dispatch(self, name: str, payload: Any = None) -> list[asyncio.Task[Any]]:
        tasks: list[asyncio.Task[Any]] = []
        for handler in list(self._handlers.get(name, [])):
            result = handler(payload)
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._pending.add(task)
                task.add_done_callback(self._pending.discard)
                tasks.append(task)
        logger.debug("Dispatched %s to %d handler(s)", name, len(self._handlers.get(name, [])))
        return tasks


def request_refresh(bus: EventBus) -> list[asyncio.Task[Any]]:
    """Dispatch a ``refresh-radar`` signal stamped with the current time."""
    return bus.dispatch(REFRESH_RADAR, RefreshSignal(timestamp=int(time.time() * 1000)))


__all__ = ["EventBus", "RefreshSignal", "REFRESH_RADAR", "request_refresh"]
