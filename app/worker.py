import asyncio
import logging
from concurrent.futures import Future
from functools import partial
from google.cloud.firestore_v1.base_query import FieldFilter
from app.config import settings
from app.logging_config import configure_logging
from app.models.schemas import DispatchTrigger, RequestStatus
from app.services.dispatch import DispatchEngine, get_engine
from app.services.firebase import get_db

logger = logging.getLogger(__name__)


def trigger_from_snapshot(snapshot) -> DispatchTrigger:
    data = snapshot.to_dict() or {}
    return DispatchTrigger(
        request_id=snapshot.id,
        status=str(data.get("status", "")),
        message=data.get("message"),
    )


class RequestWatcher:
    """
    Watches the requests collection and dispatches every newly added
    pending document.

    Firestore delivers snapshots on its own thread; dispatches are handed to
    the event loop the watcher was started from.
    """

    def __init__(self, engine: DispatchEngine, loop: asyncio.AbstractEventLoop, db=None):
        self.engine = engine
        self.loop = loop
        self.db = db or get_db()
        self._watch = None

    def start(self) -> None:
        query = self.db.collection(settings.requests_collection).where(
            filter=FieldFilter("status", "==", RequestStatus.PENDING.value)
        )
        self._watch = query.on_snapshot(self.on_snapshot)
        logger.info(f"👀 Watching {settings.requests_collection} for pending requests")

    def stop(self) -> None:
        if self._watch is not None:
            self._watch.unsubscribe()
            self._watch = None
            logger.info("Stopped watching notification requests")

    def on_snapshot(self, query_snapshot, changes, read_time) -> None:
        for change in changes:
            if change.type.name != "ADDED":
                continue
            trigger = trigger_from_snapshot(change.document)
            future = asyncio.run_coroutine_threadsafe(self.engine.handle(trigger), self.loop)
            future.add_done_callback(partial(log_dispatch_error, trigger.request_id))


def log_dispatch_error(request_id: str, future: Future) -> None:
    if future.cancelled():
        logger.warning(f"Dispatch of request {request_id} was cancelled")
        return
    exc = future.exception()
    if exc is not None:
        logger.error(f"Dispatch of request {request_id} raised: {exc}", exc_info=exc)


async def main():
    configure_logging(settings.log_level, settings.service_name)
    watcher = RequestWatcher(get_engine(), asyncio.get_running_loop())
    watcher.start()
    try:
        await asyncio.Event().wait()
    finally:
        watcher.stop()


if __name__ == "__main__":
    asyncio.run(main())
