"""
Main window for Switchboard.

Shows saved accounts with actions to back up, switch, restore and delete,
the settings toggles, and a live feed of state database changes.
"""

import logging
import threading
from typing import Callable, List, Optional

from PyQt6.QtCore import QObject, Qt, pyqtSignal
from PyQt6.QtGui import QCloseEvent
from PyQt6.QtWidgets import (
    QCheckBox,
    QHBoxLayout,
    QLabel,
    QListWidget,
    QListWidgetItem,
    QMainWindow,
    QPlainTextEdit,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from ...domain.models.account import AccountSummary
from ...domain.models.settings import AppSettings
from ...domain.models.window_state import WindowState
from ...infrastructure.logging.logging_config import mask_email

logger = logging.getLogger("switchboard.main_window")

MAX_CHANGE_LOG_LINES = 500


class MainWindow(QMainWindow):
    """
    Account list and controls.

    Geometry changes and close requests are forwarded through signals and
    ``close_handler`` so persistence lives outside the widget.
    """

    geometry_changed = pyqtSignal()
    backup_requested = pyqtSignal()
    switch_requested = pyqtSignal(str)
    restore_requested = pyqtSignal(str)
    delete_requested = pyqtSignal(str)
    sign_in_new_requested = pyqtSignal()
    clear_session_requested = pyqtSignal()
    monitor_toggle_requested = pyqtSignal(bool)
    setting_toggled = pyqtSignal(str, bool)

    def __init__(self):
        super().__init__()
        self.setWindowTitle("Switchboard")
        self.setMinimumSize(400, 400)

        self.close_handler: Optional[Callable[[], bool]] = None
        self._force_close = False
        self._private_mode = True
        self._geometry_lock = threading.Lock()
        self._cached_state = WindowState()
        self._setting_boxes = {}

        self._build_ui()
        logger.debug("MainWindow created")

    # --- Layout -------------------------------------------------------------------

    def _build_ui(self):
        central = QWidget(self)
        layout = QVBoxLayout(central)

        self.current_label = QLabel("Current account: unknown")
        layout.addWidget(self.current_label)

        self.account_list = QListWidget()
        self.account_list.itemDoubleClicked.connect(lambda _item: self._emit_for_selection(self.switch_requested))
        layout.addWidget(self.account_list)

        buttons = QHBoxLayout()
        for text, handler in (
            ("Back up current", self.backup_requested.emit),
            ("Switch", lambda: self._emit_for_selection(self.switch_requested)),
            ("Restore", lambda: self._emit_for_selection(self.restore_requested)),
            ("Delete", lambda: self._emit_for_selection(self.delete_requested)),
            ("Sign in new", self.sign_in_new_requested.emit),
            ("Log out", self.clear_session_requested.emit),
        ):
            button = QPushButton(text)
            button.clicked.connect(handler)
            buttons.addWidget(button)
        layout.addLayout(buttons)

        settings_row = QHBoxLayout()
        for name, label in (
            ('system_tray_enabled', "System tray"),
            ('silent_start_enabled', "Silent start"),
            ('debug_mode', "Debug logging"),
            ('private_mode', "Private mode"),
        ):
            box = QCheckBox(label)
            box.clicked.connect(lambda checked, key=name: self.setting_toggled.emit(key, checked))
            self._setting_boxes[name] = box
            settings_row.addWidget(box)
        layout.addLayout(settings_row)

        monitor_row = QHBoxLayout()
        self.monitor_button = QPushButton("Start monitor")
        self.monitor_button.setCheckable(True)
        self.monitor_button.toggled.connect(self._on_monitor_toggled)
        monitor_row.addWidget(self.monitor_button)
        self.status_label = QLabel("")
        monitor_row.addWidget(self.status_label, 1)
        layout.addLayout(monitor_row)

        self.change_log = QPlainTextEdit()
        self.change_log.setReadOnly(True)
        self.change_log.setMaximumBlockCount(MAX_CHANGE_LOG_LINES)
        layout.addWidget(self.change_log)

        self.setCentralWidget(central)

    def label_for(self, account_id: str) -> str:
        return mask_email(account_id) if self._private_mode else account_id

    def _selected_account(self) -> Optional[str]:
        item = self.account_list.currentItem()
        return item.data(Qt.ItemDataRole.UserRole) if item else None

    def _emit_for_selection(self, signal):
        account_id = self._selected_account()
        if account_id is None:
            self.show_status("Select an account first")
            return
        signal.emit(account_id)

    def _on_monitor_toggled(self, checked: bool):
        self.monitor_button.setText("Stop monitor" if checked else "Start monitor")
        self.monitor_toggle_requested.emit(checked)

    # --- Updates from the coordinator ------------------------------------------------

    def set_accounts(self, accounts: List[AccountSummary]):
        self.account_list.clear()
        for summary in accounts:
            plan = f" [{summary.session.plan_slug}]" if summary.session.plan_slug else ""
            text = f"{self.label_for(summary.email)}{plan}  -  {summary.modified_at:%Y-%m-%d %H:%M}"
            item = QListWidgetItem(text)
            item.setData(Qt.ItemDataRole.UserRole, summary.account_id)
            self.account_list.addItem(item)

    def set_current_account(self, email: Optional[str]):
        label = self.label_for(email) if email else "not logged in"
        self.current_label.setText(f"Current account: {label}")

    def apply_settings(self, settings: AppSettings):
        self._private_mode = settings.private_mode
        for name, box in self._setting_boxes.items():
            box.blockSignals(True)
            box.setChecked(getattr(settings, name))
            box.blockSignals(False)
        self._setting_boxes['silent_start_enabled'].setEnabled(settings.system_tray_enabled)

    def set_monitor_running(self, running: bool):
        self.monitor_button.blockSignals(True)
        self.monitor_button.setChecked(running)
        self.monitor_button.setText("Stop monitor" if running else "Start monitor")
        self.monitor_button.blockSignals(False)

    def show_status(self, message: str):
        self.status_label.setText(message)

    def append_change(self, line: str):
        self.change_log.appendPlainText(line)

    # --- Geometry -------------------------------------------------------------------

    def _cache_geometry(self):
        geometry = self.normalGeometry() if self.isMaximized() else self.geometry()
        state = WindowState(
            x=float(geometry.x()),
            y=float(geometry.y()),
            width=float(geometry.width()),
            height=float(geometry.height()),
            maximized=self.isMaximized(),
        )
        with self._geometry_lock:
            self._cached_state = state

    def cached_state(self) -> WindowState:
        """Last observed geometry; safe to call from any thread."""
        with self._geometry_lock:
            return self._cached_state

    def moveEvent(self, event):
        super().moveEvent(event)
        self._cache_geometry()
        self.geometry_changed.emit()

    def resizeEvent(self, event):
        super().resizeEvent(event)
        self._cache_geometry()
        self.geometry_changed.emit()

    def changeEvent(self, event):
        super().changeEvent(event)
        if event.type() == event.Type.WindowStateChange:
            self._cache_geometry()
            self.geometry_changed.emit()

    def force_close(self):
        """Close without consulting ``close_handler`` (used by Quit)."""
        self._force_close = True
        self.close()

    def closeEvent(self, event: QCloseEvent):
        if self._force_close or self.close_handler is None or self.close_handler():
            event.accept()
        else:
            event.ignore()


class QtWindowHandle(QObject):
    """
    Window operations callable from any thread.

    Mutations are routed through signals so they run on the GUI thread;
    reads come from the window's cached geometry.
    """

    _move = pyqtSignal(int, int)
    _resize = pyqtSignal(int, int)
    _maximize = pyqtSignal()
    _hide = pyqtSignal()

    def __init__(self, window: MainWindow):
        super().__init__()
        self._window = window
        self._move.connect(window.move)
        self._resize.connect(window.resize)
        self._maximize.connect(window.showMaximized)
        self._hide.connect(window.hide)

    def set_position(self, x: float, y: float) -> None:
        self._move.emit(int(round(x)), int(round(y)))

    def set_size(self, width: float, height: float) -> None:
        self._resize.emit(int(round(width)), int(round(height)))

    def maximize(self) -> None:
        self._maximize.emit()

    def hide(self) -> None:
        self._hide.emit()

    def current_state(self) -> WindowState:
        return self._window.cached_state()
