from __future__ import annotations

import asyncio
from collections import defaultdict
from collections.abc import AsyncIterator
from typing import Any


class EventBus:
    def __init__(self) -> None:
        self._queues: dict[str, list[asyncio.Queue[dict[str, Any]]]] = defaultdict(list)
        self._lock = asyncio.Lock()

    async def publish(self, key: str, event: dict[str, Any]) -> None:
        async with self._lock:
            for queue in list(self._queues.get(key, [])):
                await queue.put(event)

    def publish_nowait(self, key: str, event: dict[str, Any]) -> None:
        # Queues are unbounded, so this never blocks the caller.
        for queue in list(self._queues.get(key, [])):
            queue.put_nowait(event)

    def subscriber_count(self, key: str) -> int:
        return len(self._queues.get(key, []))

    async def subscribe(self, key: str) -> AsyncIterator[dict[str, Any]]:
        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        async with self._lock:
            self._queues[key].append(queue)

        try:
            while True:
                event = await queue.get()
                yield event
        finally:
            async with self._lock:
                if queue in self._queues.get(key, []):
                    self._queues[key].remove(queue)
                if not self._queues.get(key):
                    self._queues.pop(key, None)
