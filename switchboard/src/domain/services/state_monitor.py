"""
State change monitor for the Antigravity state database.

Polls the database on a fixed interval, diffs each snapshot against the
previous one and notifies listeners when anything changed.
"""

import asyncio
import inspect
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from ..errors import StorageIOError, StoreNotFoundError
from ..models.snapshot import Snapshot, StoreChangedEvent, compute_diff

logger = logging.getLogger("switchboard.state_monitor")

StoreChangedListener = Callable[[StoreChangedEvent], Any]


class StateChangeMonitor:
    """
    Background poller: ``Stopped -> Running -> Stopped``.

    ``stop()`` is cooperative; the loop notices it at the top of its next
    tick, so a stop takes effect within one interval. Every start bumps a
    generation counter and a loop only keeps running while its generation is
    current, so a quick stop/start never leaves two loops alive.
    """

    DEFAULT_INTERVAL = 3.0

    def __init__(self, database, interval: float = DEFAULT_INTERVAL):
        """
        Args:
            database: object with a blocking ``snapshot()`` method
                (``StateDatabase`` in production)
            interval: seconds between ticks
        """
        self._database = database
        self.interval = interval
        self._lock = asyncio.Lock()
        self._running = False
        self._generation = 0
        self._task: Optional[asyncio.Task] = None
        self._previous: Optional[Snapshot] = None
        self._listeners: List[StoreChangedListener] = []
        self._tick_count = 0
        self._last_tick_at: Optional[datetime] = None

    # --- Listeners ---------------------------------------------------------------

    def add_listener(self, listener: StoreChangedListener) -> None:
        """Register a sync or async callable receiving ``StoreChangedEvent``."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    # --- Lifecycle ----------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def latest_snapshot(self) -> Optional[Snapshot]:
        return self._previous

    async def start(self) -> bool:
        """
        Start polling.

        Returns:
            False if the monitor was already running
        """
        async with self._lock:
            if self._running:
                logger.info("State monitor already running")
                return False
            self._running = True
            self._generation += 1
            self._previous = None
            self._task = asyncio.create_task(
                self._run(self._generation), name=f"state-monitor-{self._generation}"
            )
        logger.info(f"State monitor started (interval {self.interval}s)")
        return True

    async def stop(self) -> bool:
        """
        Ask the loop to exit at its next tick.

        Returns:
            False if the monitor was not running
        """
        async with self._lock:
            if not self._running:
                logger.info("State monitor is not running")
                return False
            self._running = False
        logger.info("State monitor stopped")
        return True

    async def wait_stopped(self, timeout: Optional[float] = None) -> None:
        """Wait for the current loop task to finish after ``stop()``."""
        task = self._task
        if task is not None and not task.done():
            await asyncio.wait_for(asyncio.shield(task), timeout=timeout)

    def status(self) -> Dict[str, Any]:
        return {
            'running': self._running,
            'interval': self.interval,
            'ticks': self._tick_count,
            'last_tick_at': self._last_tick_at.isoformat() if self._last_tick_at else None,
            'keys': len(self._previous) if self._previous is not None else 0,
        }

    # --- Loop ---------------------------------------------------------------------

    def _is_current(self, generation: int) -> bool:
        return self._running and generation == self._generation

    def _take_snapshot(self) -> Snapshot:
        try:
            return self._database.snapshot()
        except StoreNotFoundError:
            # Antigravity not installed yet or store removed; treat as empty
            return Snapshot({})

    async def _run(self, generation: int) -> None:
        logger.debug(f"State monitor loop {generation} entered")
        try:
            while self._is_current(generation):
                await self.tick()
                await asyncio.sleep(self.interval)
        except asyncio.CancelledError:
            logger.debug(f"State monitor loop {generation} cancelled")
            raise
        finally:
            logger.debug(f"State monitor loop {generation} exited")

    async def tick(self) -> Optional[StoreChangedEvent]:
        """
        Take one snapshot and emit a change event if it differs from the
        previous one.

        Returns:
            The emitted event, or None
        """
        try:
            current = await asyncio.to_thread(self._take_snapshot)
        except StorageIOError as e:
            logger.warning(f"State monitor snapshot failed, skipping tick: {e}")
            return None

        self._tick_count += 1
        self._last_tick_at = datetime.now()

        event = None
        previous = self._previous
        if previous is not None:
            diff = compute_diff(previous, current)
            if diff.has_changes:
                logger.info(f"State database changed: {diff.summary}")
                logger.debug(f"Changed fields: {diff.changed_fields}")
                event = StoreChangedEvent(new_snapshot=current, old_snapshot=previous, diff=diff)
                await self._emit(event)

        self._previous = current
        return event

    async def _emit(self, event: StoreChangedEvent) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"State change listener failed: {e}", exc_info=True)
