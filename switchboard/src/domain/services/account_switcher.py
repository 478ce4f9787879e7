"""
Account switch orchestration.

A switch stops Antigravity, wipes its session keys, writes a saved account
back into the state database and starts Antigravity again. The steps run
strictly in order and nothing is rolled back: each step carries an explicit
"no compensation" marker and reports its own outcome. Only a missing or
unusable backup aborts the sequence; every other failure is recorded and the
next step runs.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, List, Optional

from ..errors import (
    AccountNotFoundError,
    BusyError,
    DecodeError,
    ExecutableNotFoundError,
    KeyNotFoundError,
    NotFoundError,
    ProcessControlError,
    ProcessNotFoundError,
    StorageIOError,
    StoreNotFoundError,
    ValidationError,
)
from ..models.account import DecodedSession
from ..models.results import OutcomeStatus, StepOutcome, SwitchReport
from ...infrastructure.target.constants import (
    AGENT_STATE_KEY,
    AUTH_STATUS_KEY,
    ONBOARDING_DONE_VALUE,
    ONBOARDING_KEY,
)
from ...infrastructure.target.session_codec import decode_session, extract_email

logger = logging.getLogger("switchboard.account_switcher")

STEP_STOP = "stop_process"
STEP_BACKUP = "backup_current"
STEP_CLEAR = "clear_store"
STEP_RESTORE = "restore_account"
STEP_LAUNCH = "launch_process"

# Marker for steps whose effects are deliberately left in place on failure.
NO_COMPENSATION = None


@dataclass(frozen=True)
class SagaStep:
    """One step of an account operation."""
    name: str
    action: Callable[[], Awaitable[StepOutcome]]
    compensation: Optional[Callable[[], Awaitable[None]]] = NO_COMPENSATION
    settle_after: bool = False


class AccountSwitchOrchestrator:
    """
    Runs the stop -> clear -> restore -> relaunch sequence and its relatives.

    Switch, restore, clear and sign-in-new share one operation lock; a call
    made while another holds it fails immediately with ``BusyError``.
    """

    def __init__(self,
                 database,
                 process_controller,
                 backups,
                 settle_delay: float = 1.0):
        """
        Args:
            database: ``StateDatabase``-like accessor (get/set/delete/backup_path)
            process_controller: ``ProcessController``-like (terminate_all/launch)
            backups: ``AccountBackupRepository``
            settle_delay: seconds to wait after stopping and before relaunching
        """
        self.database = database
        self.process_controller = process_controller
        self.backups = backups
        self.settle_delay = settle_delay
        self._operation_lock = asyncio.Lock()
        self._current_operation: Optional[str] = None

    # --- Operation lock -----------------------------------------------------------

    @property
    def busy(self) -> bool:
        return self._operation_lock.locked()

    @asynccontextmanager
    async def _exclusive(self, operation: str) -> AsyncIterator[None]:
        if self._operation_lock.locked():
            raise BusyError(
                f"Cannot start {operation}: {self._current_operation} is already in progress"
            )
        async with self._operation_lock:
            self._current_operation = operation
            try:
                yield
            finally:
                self._current_operation = None

    async def _settle(self) -> None:
        if self.settle_delay > 0:
            await asyncio.sleep(self.settle_delay)

    async def _run_saga(self, report: SwitchReport, steps: List[SagaStep]) -> SwitchReport:
        for index, step in enumerate(steps):
            logger.debug(f"{report.operation} step {index + 1}/{len(steps)}: {step.name}")
            outcome = report.add(await step.action())
            log = logger.info if outcome.succeeded else logger.warning
            log(f"{report.operation} {step.name}: {outcome.status.value} - {outcome.message}")
            if step.settle_after and index < len(steps) - 1:
                await self._settle()
        return report

    # --- Steps ----------------------------------------------------------------------

    async def _stop_process(self) -> StepOutcome:
        try:
            stopped = await asyncio.to_thread(self.process_controller.terminate_all)
        except ProcessNotFoundError:
            return StepOutcome(STEP_STOP, OutcomeStatus.SKIPPED, "Antigravity process not running")
        except ProcessControlError as e:
            return StepOutcome(STEP_STOP, OutcomeStatus.FAILED, f"Failed to stop Antigravity: {e}")
        return StepOutcome(STEP_STOP, OutcomeStatus.OK, f"Closed Antigravity processes: {', '.join(stopped)}")

    def _clear_keys(self) -> int:
        removed = self.database.delete(AGENT_STATE_KEY)
        # Antigravity may not issue a new auth status while an old one exists
        removed += self.database.delete(AUTH_STATUS_KEY)
        self.database.set(ONBOARDING_KEY, ONBOARDING_DONE_VALUE)
        return removed

    def _remove_backup_sibling(self) -> Optional[bool]:
        """True if deleted, None if absent; raises OSError on failure."""
        backup_path = self.database.backup_path
        if not backup_path.exists():
            logger.debug("State database backup does not exist, skipping")
            return None
        backup_path.unlink()
        logger.info(f"Deleted state database backup {backup_path.name}")
        return True

    async def _clear_store(self) -> StepOutcome:
        try:
            removed = await asyncio.to_thread(self._clear_keys)
        except (StoreNotFoundError, StorageIOError) as e:
            return StepOutcome(STEP_CLEAR, OutcomeStatus.FAILED, f"Clear failed: {e}")

        message = f"Cleared session data ({removed} keys removed)"
        try:
            await asyncio.to_thread(self._remove_backup_sibling)
        except OSError as e:
            logger.warning(f"Failed to delete state database backup: {e}")
            return StepOutcome(
                STEP_CLEAR, OutcomeStatus.NON_FATAL,
                f"{message}; failed to delete backup database: {e}",
            )
        return StepOutcome(STEP_CLEAR, OutcomeStatus.OK, message)

    async def _restore_account(self, account_id: str) -> StepOutcome:
        # A missing backup propagates and aborts the sequence.
        backup = await asyncio.to_thread(self.backups.load, account_id)
        try:
            await asyncio.to_thread(self.database.set, AGENT_STATE_KEY, backup.agent_state)
        except (StoreNotFoundError, StorageIOError) as e:
            return StepOutcome(STEP_RESTORE, OutcomeStatus.FAILED, f"Restore failed: {e}")
        return StepOutcome(STEP_RESTORE, OutcomeStatus.OK, f"Restored account {account_id}")

    async def _launch_process(self) -> StepOutcome:
        try:
            message = await asyncio.to_thread(self.process_controller.launch)
        except (ExecutableNotFoundError, ProcessControlError) as e:
            return StepOutcome(STEP_LAUNCH, OutcomeStatus.FAILED, f"Start failed: {e}")
        return StepOutcome(STEP_LAUNCH, OutcomeStatus.OK, message)

    async def _backup_best_effort(self) -> StepOutcome:
        try:
            account_id = await asyncio.to_thread(self._save_current)
        except (KeyNotFoundError, StoreNotFoundError, DecodeError) as e:
            logger.info(f"No backup taken before sign-in: {e}")
            return StepOutcome(STEP_BACKUP, OutcomeStatus.SKIPPED,
                               "No login user detected (skipping backup)")
        except (StorageIOError, ValidationError) as e:
            # ValidationError: e-mail not usable as a file name
            return StepOutcome(STEP_BACKUP, OutcomeStatus.NON_FATAL, f"Backup failed: {e}")
        return StepOutcome(STEP_BACKUP, OutcomeStatus.OK, f"Backup completed: {account_id}")

    # --- Public operations ------------------------------------------------------------

    async def switch(self, account_id: str) -> SwitchReport:
        """
        Switch Antigravity to a saved account.

        Raises:
            AccountNotFoundError: no backup for ``account_id``; steps already
                run are not undone
            DecodeError, ValidationError: the backup is malformed or the id is
                not a valid file name; raised at the same point, same summary
            BusyError: another account operation is running
        """
        async with self._exclusive("switch"):
            logger.info(f"Switching to account {account_id}")
            report = SwitchReport(operation="switch", account_id=account_id)
            steps = [
                SagaStep(STEP_STOP, self._stop_process, NO_COMPENSATION, settle_after=True),
                SagaStep(STEP_CLEAR, self._clear_store, NO_COMPENSATION),
                SagaStep(STEP_RESTORE, lambda: self._restore_account(account_id), NO_COMPENSATION,
                         settle_after=True),
                SagaStep(STEP_LAUNCH, self._launch_process, NO_COMPENSATION),
            ]
            try:
                await self._run_saga(report, steps)
            except (AccountNotFoundError, DecodeError, ValidationError) as e:
                logger.error(f"Switch aborted, backup {account_id} unusable: {report.summary}")
                raise type(e)(f"{e} (completed: {report.summary})") from e
            logger.info(f"Switch finished: {report.summary}")
            return report

    async def restore(self, account_id: str) -> SwitchReport:
        """
        Write a saved account into the state database without touching the
        process. The backup is read before anything is changed.

        Raises:
            AccountNotFoundError: no backup for ``account_id``; the store is untouched
            BusyError: another account operation is running
        """
        async with self._exclusive("restore"):
            await asyncio.to_thread(self.backups.load, account_id)
            report = SwitchReport(operation="restore", account_id=account_id)
            await self._run_saga(report, [
                SagaStep(STEP_CLEAR, self._clear_store, NO_COMPENSATION),
                SagaStep(STEP_RESTORE, lambda: self._restore_account(account_id), NO_COMPENSATION),
            ])
            return report

    async def clear_session(self) -> StepOutcome:
        """
        Log Antigravity out by clearing its session keys.

        Raises:
            StoreNotFoundError: the state database does not exist
            StorageIOError: the database could not be modified
            BusyError: another account operation is running
        """
        async with self._exclusive("clear"):
            if not self.database.exists:
                raise StoreNotFoundError(
                    f"Antigravity state database does not exist: {self.database.db_path}"
                )
            outcome = await self._clear_store()
            if outcome.status is OutcomeStatus.FAILED:
                raise StorageIOError(outcome.message)
            logger.info(f"Logout: {outcome.message}")
            return outcome

    async def sign_in_new(self) -> SwitchReport:
        """
        Prepare Antigravity for a fresh login: stop it, back up the current
        account if there is one, clear the session and start it again.
        """
        async with self._exclusive("sign_in_new"):
            report = SwitchReport(operation="sign_in_new")
            await self._run_saga(report, [
                SagaStep(STEP_STOP, self._stop_process, NO_COMPENSATION, settle_after=True),
                SagaStep(STEP_BACKUP, self._backup_best_effort, NO_COMPENSATION),
                SagaStep(STEP_CLEAR, self._clear_store, NO_COMPENSATION, settle_after=True),
                SagaStep(STEP_LAUNCH, self._launch_process, NO_COMPENSATION),
            ])
            logger.info(f"Sign-in preparation finished: {report.summary}")
            return report

    # --- Backup of the live account ---------------------------------------------------

    def _read_agent_state(self) -> str:
        value = self.database.get(AGENT_STATE_KEY)
        if not value:
            raise KeyNotFoundError(f"{AGENT_STATE_KEY} not found")
        return value

    def _save_current(self) -> str:
        value = self._read_agent_state()
        account_id = extract_email(value)
        self.backups.save(account_id, value)
        return account_id

    async def backup_current(self) -> str:
        """
        Save the logged-in account to ``<email>.json``.

        Returns:
            The account id (e-mail) the backup was saved under

        Raises:
            StoreNotFoundError, KeyNotFoundError: nothing to back up
            DecodeError: the agent state could not be decoded to an e-mail
            ValidationError: the e-mail is not usable as a file name
        """
        account_id = await asyncio.to_thread(self._save_current)
        logger.info(f"Backed up current account {account_id}")
        return account_id

    async def current_account(self) -> Optional[DecodedSession]:
        """Decoded session of the logged-in account, or None if logged out."""
        try:
            value = await asyncio.to_thread(self._read_agent_state)
        except NotFoundError:
            return None
        return decode_session(value)
