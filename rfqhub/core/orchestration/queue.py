"""Units of post-commit work, decoupled from the request that raised them."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod

from rfqhub.common.logging import get_logger
from rfqhub.core.orchestration.processor import EventProcessor

logger = get_logger("orchestration.queue")


class EventQueue(ABC):
    @abstractmethod
    def enqueue(self, event) -> None:
        """Hand ``event`` to a worker. Must return without awaiting the work."""

    async def drain(self) -> None:
        """Wait for locally running work. No-op for remote workers."""


class InProcessEventQueue(EventQueue):
    """Runs each event as a detached task on the current event loop."""

    def __init__(self, processor: EventProcessor) -> None:
        self.processor = processor
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def enqueue(self, event) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.error("No running event loop; dropping %s (%s)", event.kind, event.event_id)
            return

        task = loop.create_task(self._run(event), name=f"event:{event.kind}:{event.event_id}")
        # The loop keeps only weak references to tasks
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, event) -> None:
        try:
            await self.processor.process(event)
        except Exception:
            logger.exception("Processing of %s (%s) failed", event.kind, event.event_id)

    async def drain(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


class CeleryEventQueue(EventQueue):
    """Ships the JSON form of each event to the ``events`` Celery queue."""

    def enqueue(self, event) -> None:
        from rfqhub.tasks.event_tasks import process_domain_event

        try:
            process_domain_event.delay(event.model_dump(mode="json"))
            logger.info("Queued %s (%s) for background processing", event.kind, event.event_id)
        except Exception:
            logger.exception("Failed to queue %s (%s)", event.kind, event.event_id)
