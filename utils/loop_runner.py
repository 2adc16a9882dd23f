"""Background asyncio loop for one browser session.

Streamlit reruns the page script on its own thread; the session state machine
needs a loop that outlives each rerun. The script submits coroutines here and,
when it needs the answer to render, waits on the returned future. Only the
script thread blocks; the loop keeps running.
"""

import asyncio
import logging
import threading
from concurrent.futures import Future
from typing import Any, Awaitable, Optional

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15.0


class LoopRunner:
    def __init__(self, name: str = "session-loop") -> None:
        self.loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._thread.start()

    def _run(self) -> None:
        asyncio.set_event_loop(self.loop)
        try:
            self.loop.run_forever()
        finally:
            pending = asyncio.all_tasks(self.loop)
            for task in pending:
                task.cancel()
            if pending:
                self.loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
            self.loop.close()

    @property
    def running(self) -> bool:
        return self._thread.is_alive() and not self.loop.is_closed()

    def submit(self, coro: Awaitable[Any]) -> Future:
        return asyncio.run_coroutine_threadsafe(coro, self.loop)

    def run(self, coro: Awaitable[Any], timeout: Optional[float] = DEFAULT_TIMEOUT) -> Any:
        return self.submit(coro).result(timeout)

    def call(self, fn, *args) -> Any:
        """Run a plain callable on the loop thread and return its result."""

        async def _invoke():
            return fn(*args)

        return self.run(_invoke())

    def stop(self) -> None:
        """Stop the loop. Safe to call from the loop thread itself."""
        if self.loop.is_closed():
            return
        try:
            self.loop.call_soon_threadsafe(self.loop.stop)
        except RuntimeError:
            return
        if threading.current_thread() is not self._thread:
            self._thread.join(timeout=5)
        log.debug("Loop runner stopped")
