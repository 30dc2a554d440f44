"""Base worker class for periodic background tasks."""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Optional

logger = logging.getLogger(__name__)


class BaseWorker(ABC):
    """
    Abstract base class for background workers.

    Runs ``process`` every ``interval_seconds`` on an asyncio task. An
    iteration that raises is logged and retried after the interval.
    """

    def __init__(self, name: str, interval_seconds: int = 60, run_on_start: bool = True):
        """
        Initialize the worker.

        Args:
            name: Worker name for logging
            interval_seconds: How often to run the task
            run_on_start: Run the first iteration immediately instead of after one interval
        """
        self.name = name
        self.interval_seconds = interval_seconds
        self.run_on_start = run_on_start
        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._running

    @abstractmethod
    async def process(self):
        """Process one iteration of the background task."""

    async def start(self) -> None:
        if self._running:
            logger.warning("Worker already running", extra={"worker": self.name})
            return

        self._running = True
        self._task = asyncio.create_task(self._run(), name=f"worker:{self.name}")
        logger.info(
            "Worker started",
            extra={"worker": self.name, "interval_seconds": self.interval_seconds}
        )

    async def stop(self) -> None:
        """Stop the worker, cancelling an iteration in progress."""
        if not self._running:
            return

        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        logger.info("Worker stopped", extra={"worker": self.name})

    async def _run(self) -> None:
        if not self.run_on_start:
            await asyncio.sleep(self.interval_seconds)

        while self._running:
            started = time.monotonic()
            try:
                await self.process()
                logger.debug(
                    "Worker iteration completed",
                    extra={"worker": self.name, "duration_seconds": round(time.monotonic() - started, 3)}
                )
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(
                    "Worker iteration failed",
                    extra={"worker": self.name, "error": str(e)},
                    exc_info=True
                )

            await asyncio.sleep(max(0.0, self.interval_seconds - (time.monotonic() - started)))
