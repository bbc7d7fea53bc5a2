"""
Per-operation event stream.

Each pipeline invocation gets its own ``EventStream`` with a single consumer:
an optional callback, an async iterator, or both. Events are delivered in
emission order; the pipeline emits them sequentially, so a concurrently
running operation can never reorder another operation's stream.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, AsyncIterator, Callable, List, Optional, Sequence

from .models import EventName, NexusEvent

logger = logging.getLogger(__name__)

EventCallback = Callable[[NexusEvent], Any]


class EventStream:
    """Ordered progress channel for one operation invocation."""

    def __init__(
        self,
        operation: str,
        callback: Optional[EventCallback] = None,
        listeners: Sequence[EventCallback] = (),
    ) -> None:
        self.operation = operation
        self.events: List[NexusEvent] = []
        self._callback = callback
        self._listeners = tuple(listeners)
        self._queue: "asyncio.Queue[Optional[NexusEvent]]" = asyncio.Queue()
        self._last_timestamp = 0
        self._closed = False

    @property
    def names(self) -> List[str]:
        return [event.name for event in self.events]

    @property
    def closed(self) -> bool:
        return self._closed

    def emit(self, name: EventName | str, **args: Any) -> NexusEvent:
        if self._closed:
            raise RuntimeError(f"Event stream for {self.operation} is closed")

        # never let wall-clock adjustments make a later event look older
        timestamp = max(int(time.time() * 1000), self._last_timestamp)
        self._last_timestamp = timestamp

        event = NexusEvent(
            name=name.value if isinstance(name, EventName) else name,
            args=args,
            timestamp=timestamp,
        )
        self.events.append(event)
        self._queue.put_nowait(event)

        for consumer in (self._callback, *self._listeners):
            if consumer is None:
                continue
            try:
                consumer(event)
            except Exception as e:
                logger.error(f"Event consumer error during {self.operation} ({event.name}): {e}")
        return event

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(None)

    async def __aiter__(self) -> AsyncIterator[NexusEvent]:
        while True:
            event = await self._queue.get()
            if event is None:
                return
            yield event
