"""
Window state persistence.

Restores the main window geometry on start, saves it after the user stops
moving or resizing the window, and saves it once more on close when there is
no tray to hide into.

Geometry events arrive on the GUI thread while the delayed saves run on the
background asyncio loop, so the restoring flag and the pending save handle
each sit behind a ``threading.Lock``. On the event path those locks are only
tried, never waited on: a skipped event is harmless because the next one
reschedules the save.
"""

import asyncio
import concurrent.futures
import logging
import threading
from typing import Optional, Protocol

from ..domain.errors import StorageIOError
from ..domain.models.window_state import WindowState
from ..infrastructure.storage.window_state_store import WindowStateStore

logger = logging.getLogger("switchboard.window_state")


class WindowHandle(Protocol):
    """What the persister needs from a window. Must be callable from any thread."""

    def set_position(self, x: float, y: float) -> None: ...

    def set_size(self, width: float, height: float) -> None: ...

    def maximize(self) -> None: ...

    def hide(self) -> None: ...

    def current_state(self) -> WindowState: ...


class WindowStatePersister:
    """Debounced, restore-guarded persistence of the main window geometry."""

    DEFAULT_DEBOUNCE = 2.0
    DEFAULT_RESTORE_GRACE = 0.5

    def __init__(self,
                 store: WindowStateStore,
                 loop: asyncio.AbstractEventLoop,
                 debounce: float = DEFAULT_DEBOUNCE,
                 restore_grace: float = DEFAULT_RESTORE_GRACE):
        """
        Args:
            store: where geometry is read from and written to
            loop: event loop the delayed saves run on
            debounce: quiet period before a save, in seconds
            restore_grace: how long after restoring geometry events are ignored
        """
        self.store = store
        self._loop = loop
        self.debounce = debounce
        self.restore_grace = restore_grace

        self._restoring = False
        self._restoring_lock = threading.Lock()
        self._pending: Optional[concurrent.futures.Future] = None
        self._pending_lock = threading.Lock()

    # --- Restoring flag -------------------------------------------------------

    @property
    def restoring(self) -> bool:
        with self._restoring_lock:
            return self._restoring

    def _set_restoring(self, value: bool) -> None:
        with self._restoring_lock:
            self._restoring = value
        logger.debug(f"Window restoring flag: {value}")

    async def _end_restoring_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        self._set_restoring(False)

    def restore_on_start(self, handle: WindowHandle) -> WindowState:
        """
        Apply the last saved geometry to ``handle``.

        Position, size and maximize are applied independently; a failure in
        one is logged and the next is still attempted. Geometry events during
        and shortly after the restore do not lead to a save.

        Returns:
            The state that was applied
        """
        self._set_restoring(True)
        state = self.store.load()
        logger.info(
            f"Restoring window state: position({state.x:.1f}, {state.y:.1f}), "
            f"size({state.width:.1f}x{state.height:.1f}), maximized: {state.maximized}"
        )

        try:
            handle.set_position(state.x, state.y)
        except Exception as e:
            logger.warning(f"Failed to restore window position: {e}")

        try:
            handle.set_size(state.width, state.height)
        except Exception as e:
            logger.warning(f"Failed to restore window size: {e}")

        if state.maximized:
            try:
                handle.maximize()
            except Exception as e:
                logger.warning(f"Failed to maximize window: {e}")

        if self.restore_grace > 0:
            asyncio.run_coroutine_threadsafe(self._end_restoring_after(self.restore_grace), self._loop)
        else:
            self._set_restoring(False)
        return state

    # --- Debounced save ---------------------------------------------------------

    def on_geometry_changed(self, handle: WindowHandle) -> bool:
        """
        Reschedule the delayed save after a move or resize.

        Returns:
            False if the event was skipped because the pending-save lock was busy
        """
        if not self._pending_lock.acquire(blocking=False):
            logger.debug("Pending save lock busy, skipping geometry event")
            return False
        try:
            if self._pending is not None and not self._pending.done():
                self._pending.cancel()
            self._pending = asyncio.run_coroutine_threadsafe(self._delayed_save(handle), self._loop)
        finally:
            self._pending_lock.release()
        return True

    async def _delayed_save(self, handle: WindowHandle) -> bool:
        await asyncio.sleep(self.debounce)

        if self.restoring:
            logger.debug("Window is restoring, dropping delayed save")
            return False

        state = handle.current_state()
        try:
            return await asyncio.to_thread(self.store.save, state)
        except StorageIOError as e:
            logger.error(f"Failed to save window state: {e}")
            return False

    def cancel_pending(self) -> None:
        with self._pending_lock:
            if self._pending is not None and not self._pending.done():
                self._pending.cancel()
            self._pending = None

    # --- Close ------------------------------------------------------------------

    def on_close_requested(self, handle: WindowHandle, tray_enabled: bool) -> bool:
        """
        Handle a window close request.

        With a tray the window is hidden instead and nothing is written.
        Without one the geometry is saved right away.

        Returns:
            True if the window should actually close
        """
        if tray_enabled:
            logger.info("Close intercepted, hiding window to tray")
            handle.hide()
            return False

        self.cancel_pending()
        try:
            self.store.save(handle.current_state())
        except StorageIOError as e:
            logger.error(f"Failed to save window state on close: {e}")
        return True
