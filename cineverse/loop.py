# cineverse/loop.py
import asyncio
import logging
import threading
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)

class EventLoopThread:
    """
    One asyncio loop on a daemon thread. Request threads hand work to it with
    call() / run(), so the watchlist state is only ever touched from this thread
    and background pushes keep running between requests.
    """

    def __init__(self, timeout: float = 10.0, name: str = "cineverse-loop"):
        self.timeout = timeout
        self.loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._serve, name=name, daemon=True)

    def _serve(self) -> None:
        asyncio.set_event_loop(self.loop)
        self.loop.run_forever()

    def start(self) -> "EventLoopThread":
        if not self._thread.is_alive():
            self._thread.start()
            logger.debug("Event loop thread %s started", self._thread.name)
        return self

    def run(self, coro: Awaitable) -> Any:
        """Run a coroutine on the loop and block the calling thread for its result."""
        fut = asyncio.run_coroutine_threadsafe(coro, self.loop)
        return fut.result(self.timeout)

    def call(self, fn: Callable, *args, **kwargs) -> Any:
        """Run a plain callable on the loop thread (inside a running loop)."""
        async def invoke():
            return fn(*args, **kwargs)
        return self.run(invoke())

    def stop(self) -> None:
        if self._thread.is_alive():
            self.loop.call_soon_threadsafe(self.loop.stop)
            self._thread.join(self.timeout)
            logger.debug("Event loop thread %s stopped", self._thread.name)
