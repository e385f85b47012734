"""
Loyalty Membership Event Bus

In-process event bus: records published events and logs them. Handlers
registered with subscribe() are awaited in registration order; a failing
handler is logged and does not stop the others.
"""

import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Tuple

logger = logging.getLogger(__name__)

EventHandler = Callable[[Dict[str, Any]], Awaitable[None]]


class InProcessEventBus:
    """Event bus for a single process"""

    def __init__(self, history_limit: int = 1000):
        self.history_limit = history_limit
        self.published: List[Tuple[str, Dict[str, Any]]] = []
        self._handlers: Dict[str, List[EventHandler]] = {}
        self._closed = False

    def subscribe(self, subject: str, handler: EventHandler) -> None:
        """Register a handler for an exact subject, or "membership.>" for all"""
        self._handlers.setdefault(subject, []).append(handler)

    def _matching_handlers(self, subject: str) -> List[EventHandler]:
        handlers = list(self._handlers.get(subject, []))
        for pattern, pattern_handlers in self._handlers.items():
            if pattern.endswith(">") and pattern != subject and subject.startswith(pattern[:-1]):
                handlers.extend(pattern_handlers)
        return handlers

    async def publish(self, subject: str, data: Dict[str, Any]) -> None:
        if self._closed:
            raise RuntimeError("Event bus is closed")

        self.published.append((subject, data))
        if len(self.published) > self.history_limit:
            del self.published[0]

        logger.info(f"Event {subject}: {json.dumps(data.get('data', {}), default=str)}")

        for handler in self._matching_handlers(subject):
            try:
                await handler(data)
            except Exception as e:
                logger.error(f"Event handler for {subject} failed: {e}")

    async def close(self) -> None:
        self._closed = True
        self._handlers.clear()
        logger.info("Event bus closed")


__all__ = ["InProcessEventBus"]
