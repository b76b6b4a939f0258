import asyncio

from rfqhub.common.logging import get_logger
from rfqhub.tasks.celery_app import app

logger = get_logger("tasks.lifecycle")


def _run_async(coro):
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@app.task(name="rfqhub.tasks.lifecycle_tasks.expire_stale_rfqs")
def expire_stale_rfqs():
    """Celery Beat task: expire open RFQs past their deadline."""
    logger.info("Expiring stale RFQs")

    async def _expire():
        from rfqhub.core.lifecycle.service import LifecycleService
        from rfqhub.db.session import async_session_factory, engine

        try:
            async with async_session_factory() as db:
                try:
                    expired = await LifecycleService().expire_stale(db)
                    await db.commit()
                    if expired:
                        logger.info("Expired %d stale RFQs", len(expired))
                    return expired
                except Exception as e:
                    await db.rollback()
                    logger.error("Stale RFQ sweep failed: %s", e)
                    raise
        finally:
            await engine.dispose()

    return _run_async(_expire())
