"""Event loop thread that hosts the lock engine for Flask request threads."""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
from typing import Any, Awaitable, Callable, Coroutine, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LockRuntime:
    """Run every store, controller and surface mutation on one asyncio loop.

    Request threads hand work over with ``run`` or ``call`` and block until it
    completes, so the engine itself stays single-threaded.
    """

    def __init__(self, timeout: float = 120.0) -> None:
        self.timeout = timeout
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._serve, name="lfslocker-loop", daemon=True)
        self._periodic: list[concurrent.futures.Future[None]] = []

    @property
    def running(self) -> bool:
        return self._thread.is_alive()

    def start(self) -> "LockRuntime":
        if not self._thread.is_alive():
            self._thread.start()
        return self

    def _serve(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    def run(self, coro: Coroutine[Any, Any, T]) -> T:
        """Run ``coro`` on the engine loop and return its result."""

        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        try:
            return future.result(self.timeout)
        except concurrent.futures.TimeoutError:
            future.cancel()
            raise

    def call(self, fn: Callable[..., T], *args: Any) -> T:
        """Run a plain callable on the engine loop and return its result."""

        async def invoke() -> T:
            return fn(*args)

        return self.run(invoke())

    def start_periodic(self, interval: float, factory: Callable[[], Awaitable[Any]]) -> None:
        """Await ``factory()`` every ``interval`` seconds until the runtime stops."""

        async def repeat() -> None:
            while True:
                await asyncio.sleep(interval)
                try:
                    await factory()
                except Exception:
                    logger.exception("Periodic lock refresh failed")

        self._periodic.append(asyncio.run_coroutine_threadsafe(repeat(), self._loop))
        logger.info("Refreshing locks every %gs", interval)

    def stop(self) -> None:
        for future in self._periodic:
            future.cancel()
        self._periodic.clear()
        if self._thread.is_alive():
            self._loop.call_soon_threadsafe(self._loop.stop)
            self._thread.join(timeout=5)
        if not self._thread.is_alive() and not self._loop.is_closed():
            self._loop.close()
