"""Background worker that periodically flushes the channel sync queue."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from .config import settings
from .services.dispatcher import SyncDispatcher

logger = logging.getLogger(__name__)


class FlushWorker:
    """Polls the sync queue and fans pending entries out to channels."""

    def __init__(self, dispatcher: SyncDispatcher) -> None:
        self.dispatcher = dispatcher
        self._task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None

    def start(self) -> None:
        if self._task is not None or not settings.flush_worker_enabled:
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run_loop(), name="channel-sync-flush-worker")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._stop_event.set()
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        finally:
            self._task = None

    async def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            drained = True
            try:
                result = await self.dispatcher.flush_queue(limit=settings.flush_batch_size)
                if result.processed or result.failed:
                    logger.info(
                        "Flushed channel queue: %d processed, %d failed, %d remaining",
                        len(result.processed),
                        len(result.failed),
                        result.remaining,
                    )
                drained = result.remaining == 0
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Channel flush worker loop failed")

            if drained:
                await asyncio.sleep(settings.flush_interval_seconds)
