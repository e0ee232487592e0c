"""Event fan-out for protocol sessions."""

from typing import Callable, List

from mailwire.core.models.session import SessionEvent

EventHandler = Callable[[SessionEvent], None]


class EventBus:
    """Delivers each ``SessionEvent`` to every subscribed handler, in order."""

    def __init__(self):
        self._handlers: List[EventHandler] = []

    def subscribe(self, handler: EventHandler) -> None:
        if handler not in self._handlers:
            self._handlers.append(handler)

    def unsubscribe(self, handler: EventHandler) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    def emit(self, event: SessionEvent) -> None:
        for handler in list(self._handlers):
            handler(event)

    def __len__(self) -> int:
        return len(self._handlers)
