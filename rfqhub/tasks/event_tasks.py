import asyncio

from rfqhub.common.logging import get_logger
from rfqhub.tasks.celery_app import app

logger = get_logger("tasks.event")


def _run_async(coro):
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@app.task(name="rfqhub.tasks.event_tasks.process_domain_event")
def process_domain_event(payload: dict):
    """Run matching, trust bonuses and fan-out for one committed lifecycle event."""
    logger.info("Processing domain event %s (%s)", payload.get("kind"), payload.get("event_id"))

    async def _process():
        from rfqhub.common.events import parse_event
        from rfqhub.core.orchestration.processor import build_event_processor
        from rfqhub.db.session import engine

        try:
            event = parse_event(payload)
            report = await build_event_processor().process(event)
            return report.model_dump() if report else None
        finally:
            # Pooled connections are bound to this task's event loop
            await engine.dispose()

    return _run_async(_process())
