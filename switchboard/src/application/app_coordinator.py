"""
Application Coordinator for Switchboard.

Central coordination point that wires the command facade, the background
asyncio loop, the main window, the tray and window-state persistence.
"""

import logging
from typing import Any, Optional

from PyQt6.QtCore import QObject, QTimer, pyqtSignal
from PyQt6.QtWidgets import QApplication

from ..domain.models.settings import AppSettings
from ..domain.models.snapshot import StoreChangedEvent
from ..infrastructure.background_loop import BackgroundLoop, get_background_loop
from ..infrastructure.logging.logging_config import set_debug
from ..presentation.ui.main_window import MainWindow, QtWindowHandle
from ..presentation.ui.system_tray import SystemTray
from .commands import AgentCommands, AgentServices, Timings
from .window_state import WindowStatePersister

logger = logging.getLogger("switchboard.coordinator")


class AppCoordinator(QObject):
    """
    Central coordinator managing the Switchboard GUI.

    Responsibilities:
    - Build services and UI components
    - Forward UI actions to ``AgentCommands`` on the background loop
    - Keep the tray, window and settings consistent
    """

    # Cross-thread delivery of monitor events to the GUI thread
    store_changed = pyqtSignal(object)

    def __init__(self, services: Optional[AgentServices] = None, timings: Optional[Timings] = None):
        super().__init__()
        self._services = services
        self._timings = timings or Timings()
        self._app: Optional[QApplication] = None
        self._background: Optional[BackgroundLoop] = None
        self.commands: Optional[AgentCommands] = None
        self._main_window: Optional[MainWindow] = None
        self._window_handle: Optional[QtWindowHandle] = None
        self._system_tray: Optional[SystemTray] = None
        self._persister: Optional[WindowStatePersister] = None
        self._shutting_down = False

        logger.info("AppCoordinator created")

    def initialize(self) -> bool:
        """
        Initialize the application and all its components.

        Returns:
            True if initialization successful, False otherwise
        """
        logger.info("Initializing Switchboard application...")

        self._app = QApplication.instance()
        if not self._app:
            logger.error("QApplication not found - must be created before AppCoordinator")
            return False

        self._background = get_background_loop()
        if not self._background.is_running():
            logger.error("Background event loop is not running")
            return False

        services = self._services or AgentServices.create(timings=self._timings)
        self.commands = AgentCommands(services)
        settings = services.settings.get()

        self._main_window = MainWindow()
        self._window_handle = QtWindowHandle(self._main_window)
        self._persister = WindowStatePersister(
            services.window_store,
            self._background.loop,
            debounce=self._timings.debounce,
            restore_grace=self._timings.restore_grace,
        )
        self._connect_window()

        services.settings.on_change(self._on_settings_changed)
        services.monitor.add_listener(self.store_changed.emit)
        self.store_changed.connect(self._on_store_changed)

        self._main_window.apply_settings(settings)
        self._apply_tray(settings)
        self._persister.restore_on_start(self._window_handle)

        if settings.system_tray_enabled and settings.silent_start_enabled:
            logger.info("Silent start: window stays hidden")
        else:
            self._main_window.show()

        self.refresh_accounts()
        self._run(self.commands.start_monitor(), self._on_monitor_started)

        logger.info("Switchboard application initialized successfully")
        return True

    # --- Wiring ----------------------------------------------------------------------

    def _connect_window(self):
        window = self._main_window
        window.close_handler = self._on_close_requested
        window.geometry_changed.connect(lambda: self._persister.on_geometry_changed(self._window_handle))
        window.backup_requested.connect(self.backup_current)
        window.switch_requested.connect(self.switch_account)
        window.restore_requested.connect(self.restore_account)
        window.delete_requested.connect(self.delete_account)
        window.sign_in_new_requested.connect(self.sign_in_new)
        window.clear_session_requested.connect(self.clear_session)
        window.monitor_toggle_requested.connect(self._on_monitor_toggle)
        window.setting_toggled.connect(self._on_setting_toggled)

    def _apply_tray(self, settings: AppSettings):
        if settings.system_tray_enabled:
            if self._system_tray is None:
                self._system_tray = SystemTray(private_mode=settings.private_mode)
                self._system_tray.show_window_requested.connect(self.show_window)
                self._system_tray.switch_account_requested.connect(self.switch_account)
                self._system_tray.quit_requested.connect(self.quit)
                self._refresh_tray_accounts()
            self._system_tray.set_private_mode(settings.private_mode)
            self._system_tray.show()
        elif self._system_tray is not None:
            self._system_tray.hide()
            self._system_tray.deleteLater()
            self._system_tray = None
            # Without a tray a hidden window would be unreachable
            self.show_window()

    def _run(self, coro, on_success=None, description: Optional[str] = None):
        """Run a command coroutine on the background loop; report errors in the UI."""
        def callback(result: Any, error: Optional[BaseException]):
            if error is not None:
                label = description or "Operation"
                self._notify(f"{label} failed: {error}", error=True)
                return
            if on_success:
                on_success(result)
        self._background.run_async_task(coro, callback)

    def _notify(self, message: str, error: bool = False):
        if error:
            logger.warning(message)
        else:
            logger.info(message)
        if self._main_window:
            self._main_window.show_status(message)
        if self._system_tray and not (self._main_window and self._main_window.isVisible()):
            self._system_tray.show_message("Switchboard", message)

    # --- Accounts ---------------------------------------------------------------------

    def refresh_accounts(self):
        accounts = self.commands.list_accounts()
        self._main_window.set_accounts(accounts)
        self._refresh_tray_accounts(accounts)
        self._run(self.commands.current_account(),
                  lambda session: self._main_window.set_current_account(session.email if session else None),
                  "Reading current account")

    def _refresh_tray_accounts(self, accounts=None):
        if self._system_tray is None:
            return
        if accounts is None:
            accounts = self.commands.list_accounts()
        self._system_tray.set_accounts([summary.account_id for summary in accounts])

    def _after_report(self, report):
        self._notify(report.summary, error=not report.succeeded)
        self.refresh_accounts()

    def backup_current(self):
        def done(message):
            self._notify(message)
            self.refresh_accounts()
        self._run(self.commands.backup_current(), done, "Backup")

    def switch_account(self, account_id: str):
        self._notify(f"Switching to {self._main_window.label_for(account_id)}...")
        self._run(self.commands.switch(account_id), self._after_report, "Switch")

    def restore_account(self, account_id: str):
        self._run(self.commands.restore(account_id), self._after_report, "Restore")

    def sign_in_new(self):
        self._run(self.commands.sign_in_new(), self._after_report, "Sign in")

    def clear_session(self):
        def done(outcome):
            self._notify(outcome.message)
            self.refresh_accounts()
        self._run(self.commands.clear_session(), done, "Log out")

    def delete_account(self, account_id: str):
        try:
            self.commands.delete_backup(account_id)
        except Exception as e:
            self._notify(f"Delete failed: {e}", error=True)
            return
        self.refresh_accounts()

    # --- Monitor ----------------------------------------------------------------------

    def _on_monitor_started(self, started: bool):
        self._main_window.set_monitor_running(self.commands.monitor_status()['running'])

    def _on_monitor_toggle(self, enabled: bool):
        command = self.commands.start_monitor() if enabled else self.commands.stop_monitor()
        self._run(command, self._on_monitor_started, "Monitor")

    def _on_store_changed(self, event: StoreChangedEvent):
        timestamp = event.new_snapshot.taken_at.strftime('%H:%M:%S')
        self._main_window.append_change(f"{timestamp}  {event.diff.summary}")
        for field_change in event.diff.changed_fields:
            self._main_window.append_change(f"    {field_change}")
        self.refresh_accounts()

    # --- Settings ----------------------------------------------------------------------

    def _on_setting_toggled(self, name: str, value: bool):
        try:
            result = self.commands.update_settings(**{name: value})
        except Exception as e:
            self._notify(f"Failed to update settings: {e}", error=True)
            self._main_window.apply_settings(self.commands.get_settings())
            return
        if result.corrected:
            self._notify("Silent start was turned off because the system tray is disabled")

    def _on_settings_changed(self, settings: AppSettings):
        set_debug(settings.debug_mode)
        self._main_window.apply_settings(settings)
        self._apply_tray(settings)
        self.refresh_accounts()

    # --- Window lifecycle -----------------------------------------------------------------

    def show_window(self):
        if self._main_window:
            self._main_window.showNormal()
            self._main_window.raise_()
            self._main_window.activateWindow()

    def _on_close_requested(self) -> bool:
        tray_enabled = self.commands.get_settings().system_tray_enabled and self._system_tray is not None
        allow = self._persister.on_close_requested(self._window_handle, tray_enabled)
        if allow:
            QTimer.singleShot(0, self.quit)
        return allow

    def quit(self):
        """Stop background work and leave the Qt event loop."""
        if self._shutting_down:
            return
        self._shutting_down = True
        logger.info("Shutting down Switchboard...")

        if self._persister:
            self._persister.cancel_pending()
        try:
            self._background.run_sync(self.commands.stop_monitor(), timeout=2.0)
        except Exception as e:
            logger.warning(f"Failed to stop monitor cleanly: {e}")
        self.commands.services.database.dispose()

        if self._system_tray:
            self._system_tray.hide()
        if self._main_window and self._main_window.isVisible():
            self._main_window.force_close()
        if self._app:
            self._app.quit()
