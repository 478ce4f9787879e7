"""
Background asyncio loop for the Qt GUI.

The state monitor, the account operations and the debounced window-state
saves are asyncio code, but the GUI thread runs Qt's event loop. One daemon
thread runs an asyncio loop for all of them; results come back to the GUI
thread through a queued Qt signal.
"""

import asyncio
import atexit
import concurrent.futures
import logging
import threading
from typing import Any, Callable, Coroutine, Optional

from PyQt6.QtCore import QObject, pyqtSignal

logger = logging.getLogger("switchboard.background_loop")

ResultCallback = Callable[[Any, Optional[BaseException]], None]


class _ResultRelay(QObject):
    """Lives on the GUI thread; emitting from the loop thread queues the slot."""

    delivered = pyqtSignal(object, object, object)  # callback, result, error

    def __init__(self):
        super().__init__()
        self.delivered.connect(self._invoke)

    def _invoke(self, callback, result, error):
        try:
            callback(result, error)
        except Exception:
            logger.exception("Result callback raised")


class BackgroundLoop(QObject):
    """
    An asyncio event loop running in its own thread.

    Coroutines may be submitted from any thread. Callbacks given to
    ``run_async_task`` run on the thread that created this object.
    """

    def __init__(self, thread_name: str = "switchboard-loop"):
        super().__init__()
        self._thread_name = thread_name
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._futures = set()
        self._futures_lock = threading.Lock()
        self._stopping = False
        self._relay = _ResultRelay()

    @property
    def loop(self) -> Optional[asyncio.AbstractEventLoop]:
        return self._loop

    def start(self, timeout: float = 5.0) -> bool:
        """
        Start the loop thread if it is not running.

        Returns:
            True once the loop is accepting work
        """
        if self.is_running():
            return True

        ready = threading.Event()
        self._thread = threading.Thread(target=self._serve, args=(ready,),
                                        name=self._thread_name, daemon=True)
        self._thread.start()
        if not ready.wait(timeout):
            logger.error(f"Background loop did not start within {timeout}s")
            return False

        self._stopping = False
        logger.info("Background loop started")
        return True

    def _serve(self, ready: threading.Event):
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        ready.set()
        try:
            loop.run_forever()
        finally:
            # Give cancelled work a chance to run its finally blocks
            leftovers = asyncio.all_tasks(loop)
            for task in leftovers:
                task.cancel()
            if leftovers:
                loop.run_until_complete(asyncio.gather(*leftovers, return_exceptions=True))
            loop.close()
            logger.debug("Background loop closed")

    def is_running(self) -> bool:
        return (self._loop is not None and not self._loop.is_closed()
                and self._thread is not None and self._thread.is_alive())

    def submit(self, coro: Coroutine) -> concurrent.futures.Future:
        """
        Schedule ``coro`` on the loop.

        Raises:
            RuntimeError: the loop is not running
        """
        if not self.is_running():
            coro.close()
            raise RuntimeError("Background loop is not running")
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        with self._futures_lock:
            self._futures.add(future)
        future.add_done_callback(self._forget)
        return future

    def _forget(self, future: concurrent.futures.Future):
        with self._futures_lock:
            self._futures.discard(future)

    def run_sync(self, coro: Coroutine, timeout: Optional[float] = None) -> Any:
        """Block until ``coro`` finishes on the loop and return its result."""
        return self.submit(coro).result(timeout=timeout)

    def run_async_task(self, coro: Coroutine, callback: Optional[ResultCallback] = None) -> None:
        """Run ``coro`` without blocking; ``callback(result, error)`` fires on the GUI thread."""
        try:
            future = self.submit(coro)
        except RuntimeError as e:
            logger.error(str(e))
            if callback:
                callback(None, e)
            return

        def finished(done: concurrent.futures.Future):
            if done.cancelled():
                result, error = None, concurrent.futures.CancelledError()
            elif done.exception() is not None:
                result, error = None, done.exception()
                logger.debug(f"Background task failed: {error}")
            else:
                result, error = done.result(), None
            if callback:
                self._relay.delivered.emit(callback, result, error)

        future.add_done_callback(finished)

    def stop(self, timeout: float = 2.0):
        """Cancel outstanding work, stop the loop and join its thread."""
        if self._stopping:
            return
        self._stopping = True

        with self._futures_lock:
            outstanding = list(self._futures)
        for future in outstanding:
            future.cancel()

        if self._loop is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._loop.stop)
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)

        self._loop = None
        self._thread = None
        logger.info("Background loop stopped")


_background_loop: Optional[BackgroundLoop] = None


def get_background_loop() -> BackgroundLoop:
    """Process-wide loop, started on first use."""
    global _background_loop
    if _background_loop is None:
        _background_loop = BackgroundLoop()
        _background_loop.start()
    return _background_loop


def stop_background_loop():
    global _background_loop
    if _background_loop is not None:
        _background_loop.stop()
        _background_loop = None


atexit.register(stop_background_loop)
