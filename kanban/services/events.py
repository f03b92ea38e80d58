"""
Domain event dispatch.
The engine emits through an injected EventSink; EventBus is the in-process
implementation that fans each event out to subscribed handlers.
"""
from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Protocol

from kanban.schemas.event import TaskEvent, TaskEventKind

logger = logging.getLogger(__name__)

EventHandler = Callable[[TaskEvent], Awaitable[None]]


class EventSink(Protocol):
    async def trigger(self, event: TaskEvent) -> None: ...


class EventBus:
    """
    Dispatches events to handlers subscribed by kind, or to every kind when
    subscribed with ``None``. A failing handler is logged and skipped.
    """

    def __init__(self) -> None:
        # kind (None = all kinds) → handlers in subscription order
        self._handlers: dict[TaskEventKind | None, list[EventHandler]] = {}

    def subscribe(self, kind: TaskEventKind | None, handler: EventHandler) -> None:
        self._handlers.setdefault(kind, []).append(handler)

    def unsubscribe(self, kind: TaskEventKind | None, handler: EventHandler) -> None:
        handlers = self._handlers.get(kind, [])
        if handler in handlers:
            handlers.remove(handler)
        if not handlers:
            self._handlers.pop(kind, None)

    async def trigger(self, event: TaskEvent) -> None:
        handlers = [*self._handlers.get(event.kind, []), *self._handlers.get(None, [])]
        for handler in handlers:
            try:
                await handler(event)
            except Exception:
                logger.exception(
                    "Event handler failed: kind=%s task_id=%s", event.kind, event.task.id
                )

    @property
    def handler_count(self) -> int:
        return sum(len(h) for h in self._handlers.values())


# Singleton instance shared across the application
event_bus = EventBus()
