"""Mutation notifications: what changed in a project, delivered after commit."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    Handler = Callable[["FileEvent"], Awaitable[None]]

logger = logging.getLogger(__name__)


class EventType(Enum):
    FILE_UPLOADED = "file_uploaded"
    FILE_MOVED = "file_moved"
    FILE_RENAMED = "file_renamed"
    FILE_DELETED = "file_deleted"
    FOLDER_CREATED = "folder_created"
    FOLDER_RENAMED = "folder_renamed"
    FOLDER_MOVED = "folder_moved"
    FOLDER_DELETED = "folder_deleted"


@dataclass(frozen=True, slots=True)
class FileEvent:
    """One committed change to a project's tree.

    ``path`` is where the entry is now; ``old_path`` is set for moves and
    renames.  Folder events carry no ``file_id``.
    """

    event_type: EventType
    project_id: str
    path: str
    old_path: str | None = None
    file_id: str | None = None
    user_id: str | None = None


class EventBus:
    """
    Fan-out of ``FileEvent``s to async callbacks, keyed by event type.

    USAGE:
        bus = EventBus()
        bus.register(EventType.FILE_UPLOADED, notify_team)
        await bus.emit(FileEvent(EventType.FILE_UPLOADED, "p1", "Plans/site.pdf"))

    ``emit`` awaits each callback in turn.  A callback that raises is
    logged and skipped: the change it reports is already committed.
    """

    def __init__(self) -> None:
        self._handlers: defaultdict[EventType, list[Handler]] = defaultdict(list)

    def register(self, event_type: EventType, handler: Handler) -> None:
        self._handlers[event_type].append(handler)

    def unregister(self, event_type: EventType, handler: Handler) -> bool:
        """Drop *handler* for *event_type*.  False if it was not registered."""
        handlers = self._handlers.get(event_type, [])
        if handler not in handlers:
            return False
        handlers.remove(handler)
        return True

    async def emit(self, event: FileEvent) -> int:
        """Deliver *event* to its subscribers.  Returns the number that raised."""
        failures = 0
        for handler in tuple(self._handlers.get(event.event_type, ())):
            try:
                await handler(event)
            except Exception:
                failures += 1
                logger.warning(
                    "%s subscriber %r raised for %r in project %s",
                    event.event_type.value,
                    handler,
                    event.path,
                    event.project_id,
                    exc_info=True,
                )
        return failures

    @property
    def handler_count(self) -> int:
        return sum(map(len, self._handlers.values()))

    def clear(self) -> None:
        self._handlers.clear()
