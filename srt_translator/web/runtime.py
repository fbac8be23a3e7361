"""
Background event loop hosting the QueueManager for the Flask app.

Flask handlers run on worker threads; every queue operation is marshalled
onto the single loop thread so the scheduler keeps one writer.
"""

from __future__ import annotations

import asyncio
import threading
from typing import Any, Callable, Optional

from srt_translator.logger import get_logger
from srt_translator.jobs.scheduler import QueueManager

logger = get_logger(__name__)

CALL_TIMEOUT_SECONDS = 30


class QueueRuntime:
    """Owns a daemon thread running an asyncio loop and the QueueManager on it."""

    def __init__(self, manager_factory: Callable[[], QueueManager]):
        self._manager_factory = manager_factory
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._ready = threading.Event()
        self.manager: Optional[QueueManager] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> "QueueRuntime":
        if self.running:
            return self
        self._ready.clear()
        self._thread = threading.Thread(target=self._run_loop, name="translation-queue", daemon=True)
        self._thread.start()
        self._ready.wait()
        logger.info("Queue runtime started")
        return self

    def _run_loop(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        self.manager = self._manager_factory()
        self._ready.set()
        try:
            loop.run_forever()
        finally:
            loop.close()

    def call(self, func: Callable[..., Any], *args, **kwargs) -> Any:
        """Run a synchronous manager method on the loop thread and return its result."""
        if not self.running or self._loop is None:
            raise RuntimeError("Queue runtime is not running")

        async def invoke():
            return func(*args, **kwargs)

        future = asyncio.run_coroutine_threadsafe(invoke(), self._loop)
        return future.result(timeout=CALL_TIMEOUT_SECONDS)

    def run(self, coro_factory: Callable[[], Any], timeout: Optional[float] = CALL_TIMEOUT_SECONDS) -> Any:
        """Run a coroutine created on the loop thread and wait for its result."""
        if not self.running or self._loop is None:
            raise RuntimeError("Queue runtime is not running")

        async def invoke():
            return await coro_factory()

        future = asyncio.run_coroutine_threadsafe(invoke(), self._loop)
        return future.result(timeout=timeout)

    def stop(self) -> None:
        """Stop all jobs, close the client and shut the loop down."""
        if not self.running or self._loop is None:
            return
        try:
            self.run(self.manager.aclose)
        except Exception as e:
            logger.error(f"Failed to close queue manager cleanly: {e}")
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=CALL_TIMEOUT_SECONDS)
        self._thread = None
        self._loop = None
        logger.info("Queue runtime stopped")
