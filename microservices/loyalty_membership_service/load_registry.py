"""
In-flight Load Registry

Per-customer registry of running membership fetches. One registry is
shared by every lifecycle controller of a process so that concurrent
callers for the same customer join a single remote fetch.
"""

import asyncio
import logging
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class InflightLoadRegistry:
    """Running fetch tasks keyed by customer id"""

    def __init__(self):
        self._tasks: Dict[str, asyncio.Task] = {}

    def get(self, customer_id: str) -> Optional[asyncio.Task]:
        task = self._tasks.get(customer_id)
        if task is not None and task.done():
            return None
        return task

    def register(self, customer_id: str, task: asyncio.Task) -> None:
        """Track a fetch until it finishes; a newer fetch replaces the older entry"""
        self._tasks[customer_id] = task
        task.add_done_callback(lambda t: self._release(customer_id, t))

    def _release(self, customer_id: str, task: asyncio.Task) -> None:
        if self._tasks.get(customer_id) is task:
            del self._tasks[customer_id]
            logger.debug(f"Load for {customer_id} left the registry")

    def __contains__(self, customer_id: str) -> bool:
        return self.get(customer_id) is not None

    def __len__(self) -> int:
        return len(self._tasks)


__all__ = ["InflightLoadRegistry"]
