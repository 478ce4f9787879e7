"""
Command facade for Switchboard.

Every action the GUI, the tray and the CLI can trigger goes through
``AgentCommands``. Commands log their failures and re-raise them; callers
decide how to show the error.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..domain.errors import DecodeError
from ..domain.models.account import AccountSummary, DecodedSession, ImportResult
from ..domain.models.results import StepOutcome, SwitchReport
from ..domain.models.settings import AppSettings
from ..domain.models.window_state import WindowState
from ..domain.services.account_switcher import AccountSwitchOrchestrator
from ..domain.services.state_monitor import StateChangeMonitor
from ..infrastructure.logging.log_decorator import log_command
from ..infrastructure.storage.account_backups import AccountBackupRepository
from ..infrastructure.storage.settings_manager import SettingsManager, UpdateResult, get_settings_manager
from ..infrastructure.storage.window_state_store import WindowStateStore
from ..infrastructure.target import target_paths
from ..infrastructure.target.process_controller import ProcessController
from ..infrastructure.target.session_codec import decode_session
from ..infrastructure.target.state_db import StateDatabase

logger = logging.getLogger("switchboard.commands")


@dataclass
class Timings:
    """Delays used by the background services, in seconds."""
    monitor_interval: float = StateChangeMonitor.DEFAULT_INTERVAL
    settle_delay: float = 1.0
    debounce: float = 2.0
    restore_grace: float = 0.5


@dataclass
class AgentServices:
    """Wired collaborators behind the command facade."""
    settings: SettingsManager
    window_store: WindowStateStore
    database: StateDatabase
    process_controller: ProcessController
    backups: AccountBackupRepository
    monitor: StateChangeMonitor
    switcher: AccountSwitchOrchestrator
    timings: Timings = field(default_factory=Timings)

    @classmethod
    def create(cls,
               timings: Optional[Timings] = None,
               settings: Optional[SettingsManager] = None) -> 'AgentServices':
        """Build the production object graph from the per-user data directory."""
        timings = timings or Timings()
        database = StateDatabase(target_paths.resolve_state_db_path())
        process_controller = ProcessController()
        backups = AccountBackupRepository()
        return cls(
            settings=settings or get_settings_manager(),
            window_store=WindowStateStore(),
            database=database,
            process_controller=process_controller,
            backups=backups,
            monitor=StateChangeMonitor(database, interval=timings.monitor_interval),
            switcher=AccountSwitchOrchestrator(
                database, process_controller, backups, settle_delay=timings.settle_delay,
            ),
            timings=timings,
        )


class AgentCommands:
    """Entry points exposed to the GUI, the tray and the CLI."""

    def __init__(self, services: AgentServices):
        self.services = services

    # --- Monitor ---------------------------------------------------------------

    @log_command
    async def start_monitor(self) -> bool:
        return await self.services.monitor.start()

    @log_command
    async def stop_monitor(self) -> bool:
        return await self.services.monitor.stop()

    def monitor_status(self) -> Dict[str, Any]:
        return self.services.monitor.status()

    # --- Accounts ----------------------------------------------------------------

    @log_command
    async def backup_current(self) -> str:
        """Save the logged-in account; returns a message naming the file."""
        account_id = await self.services.switcher.backup_current()
        return f"Saved {account_id} to {self.services.backups.path_for(account_id)}"

    @log_command
    def list_accounts(self) -> List[AccountSummary]:
        """Saved accounts, newest first. Undecodable values are listed by file name."""
        summaries = []
        for backup, modified_at in self.services.backups.list_backups():
            try:
                session = decode_session(backup.agent_state)
            except DecodeError as e:
                logger.debug(f"Could not decode backup {backup.account_id}: {e}")
                session = DecodedSession(email=backup.account_id)
            summaries.append(AccountSummary(
                account_id=backup.account_id, session=session, modified_at=modified_at,
            ))
        return summaries

    @log_command
    async def restore(self, account_id: str) -> SwitchReport:
        return await self.services.switcher.restore(account_id)

    @log_command
    async def switch(self, account_id: str) -> SwitchReport:
        return await self.services.switcher.switch(account_id)

    @log_command
    async def clear_session(self) -> StepOutcome:
        return await self.services.switcher.clear_session()

    @log_command
    async def sign_in_new(self) -> SwitchReport:
        return await self.services.switcher.sign_in_new()

    @log_command
    async def current_account(self) -> Optional[DecodedSession]:
        return await self.services.switcher.current_account()

    @log_command
    def delete_backup(self, account_id: str) -> None:
        self.services.backups.delete(account_id)

    @log_command
    def clear_all_backups(self) -> int:
        return self.services.backups.clear_all()

    @log_command
    def export_accounts(self, password: str) -> str:
        return self.services.backups.export_bundle(password)

    @log_command
    def import_accounts(self, bundle: str, password: str) -> ImportResult:
        return self.services.backups.import_bundle(bundle, password)

    @log_command
    def decode_session(self, value: str) -> DecodedSession:
        return decode_session(value)

    # --- Process and platform ------------------------------------------------------

    def is_target_running(self) -> bool:
        return self.services.process_controller.is_running()

    @log_command
    def platform_info(self) -> Dict[str, object]:
        info = target_paths.get_platform_info()
        info['state_db'] = str(self.services.database.db_path)
        return info

    @log_command
    def save_executable_path(self, path: str) -> None:
        target_paths.save_custom_executable_path(path)

    # --- Settings and window state ---------------------------------------------------

    def get_settings(self) -> AppSettings:
        return self.services.settings.get()

    @log_command
    def update_settings(self, **changes: bool) -> UpdateResult:
        return self.services.settings.update(**changes)

    def get_window_state(self) -> WindowState:
        return self.services.window_store.load()

    @log_command
    def save_window_state(self, state: WindowState) -> bool:
        return self.services.window_store.save(state)
