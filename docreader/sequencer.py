"""The single event loop that all reading-state mutations run on.

Flask serves requests on its own threads; every request that touches a
session hands its work to this loop and waits for the result, so session
state is only ever mutated from one thread.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import threading
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class Sequencer:
    def __init__(self, name: str = "docreader-loop") -> None:
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._started = False

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    def start(self) -> "Sequencer":
        if not self._started:
            self._started = True
            self._thread.start()
        return self

    def _run(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    def call(self, fn: Callable[..., Any], *args: Any, timeout: Optional[float] = 30.0) -> Any:
        """Run ``fn(*args)`` on the loop; awaits the result if it is a coroutine."""

        async def invoke():
            result = fn(*args)
            if inspect.isawaitable(result):
                result = await result
            return result

        self.start()
        return asyncio.run_coroutine_threadsafe(invoke(), self._loop).result(timeout)

    def stop(self) -> None:
        if not self._started or self._loop.is_closed():
            return

        async def shutdown():
            tasks = [t for t in asyncio.all_tasks() if t is not asyncio.current_task()]
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        try:
            asyncio.run_coroutine_threadsafe(shutdown(), self._loop).result(5)
        finally:
            self._loop.call_soon_threadsafe(self._loop.stop)
            self._thread.join(5)
            self._loop.close()
        logger.debug("Sequencer stopped")
