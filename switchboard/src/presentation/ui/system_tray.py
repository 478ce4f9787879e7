"""
System Tray for Switchboard.

Provides a tray icon whose menu lists the saved accounts, so switching
does not require opening the main window.
"""

import logging
from typing import List, Optional

from PyQt6.QtCore import QObject, Qt, pyqtSignal
from PyQt6.QtGui import QAction, QColor, QIcon, QPainter, QPen, QPixmap
from PyQt6.QtWidgets import QMenu, QSystemTrayIcon

from ...infrastructure.logging.logging_config import mask_email

logger = logging.getLogger("switchboard.system_tray")


class SystemTray(QObject):
    """
    Tray icon with a context menu.

    Menu layout: Show, one entry per saved account, Quit. The account
    entries are rebuilt whenever the account list changes.
    """

    # Signals
    show_window_requested = pyqtSignal()
    switch_account_requested = pyqtSignal(str)
    quit_requested = pyqtSignal()

    def __init__(self, private_mode: bool = True):
        super().__init__()
        self.tray_icon: Optional[QSystemTrayIcon] = None
        self.context_menu: Optional[QMenu] = None
        self._private_mode = private_mode
        self._accounts: List[str] = []

        self._init_tray_icon()
        self._rebuild_menu()

        logger.info("SystemTray initialized")

    def _init_tray_icon(self):
        if not QSystemTrayIcon.isSystemTrayAvailable():
            logger.error("System tray is not available on this system")
            return

        self.tray_icon = QSystemTrayIcon()
        self.tray_icon.setIcon(self._switch_icon())
        self.tray_icon.setToolTip("Switchboard")
        self.tray_icon.activated.connect(self._on_tray_activated)
        self.tray_icon.messageClicked.connect(self.show_window_requested.emit)

        logger.debug("System tray icon initialized")

    @staticmethod
    def _switch_icon() -> QIcon:
        """Two opposing arrows on a rounded square."""
        pixmap = QPixmap(32, 32)
        pixmap.fill(QColor(0, 0, 0, 0))

        painter = QPainter(pixmap)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)
        painter.setPen(Qt.PenStyle.NoPen)
        painter.setBrush(QColor("#2e7d6b"))
        painter.drawRoundedRect(2, 2, 28, 28, 7, 7)

        pen = QPen(QColor("#ffffff"), 2.5)
        pen.setCapStyle(Qt.PenCapStyle.RoundCap)
        painter.setPen(pen)
        painter.drawLine(8, 12, 23, 12)
        painter.drawLine(19, 8, 23, 12)
        painter.drawLine(24, 20, 9, 20)
        painter.drawLine(13, 24, 9, 20)
        painter.end()

        return QIcon(pixmap)

    def account_label(self, account_id: str) -> str:
        return mask_email(account_id) if self._private_mode else account_id

    def _rebuild_menu(self):
        menu = QMenu()

        show_action = QAction("Show", menu)
        show_action.triggered.connect(self.show_window_requested.emit)
        menu.addAction(show_action)

        menu.addSeparator()
        if self._accounts:
            for account_id in self._accounts:
                action = QAction(self.account_label(account_id), menu)
                action.setToolTip(f"Switch to {self.account_label(account_id)}")
                # Bind the id now; the loop variable would be late-bound
                action.triggered.connect(
                    lambda _checked=False, acc=account_id: self.switch_account_requested.emit(acc)
                )
                menu.addAction(action)
        else:
            empty_action = QAction("No saved accounts", menu)
            empty_action.setEnabled(False)
            menu.addAction(empty_action)
        menu.addSeparator()

        quit_action = QAction("Quit", menu)
        quit_action.triggered.connect(self.quit_requested.emit)
        menu.addAction(quit_action)

        old_menu = self.context_menu
        self.context_menu = menu
        if self.tray_icon:
            self.tray_icon.setContextMenu(menu)
        if old_menu is not None:
            old_menu.deleteLater()

        logger.debug(f"Tray menu rebuilt with {len(self._accounts)} accounts")

    def set_accounts(self, account_ids: List[str]):
        """Replace the account entries of the menu."""
        if list(account_ids) == self._accounts:
            return
        self._accounts = list(account_ids)
        self._rebuild_menu()

    def set_private_mode(self, enabled: bool):
        if enabled != self._private_mode:
            self._private_mode = enabled
            self._rebuild_menu()

    def _on_tray_activated(self, reason: QSystemTrayIcon.ActivationReason):
        if reason in (QSystemTrayIcon.ActivationReason.DoubleClick,
                      QSystemTrayIcon.ActivationReason.Trigger):
            logger.debug("Tray icon activated - showing window")
            self.show_window_requested.emit()

    def show(self):
        if self.tray_icon and QSystemTrayIcon.isSystemTrayAvailable():
            self.tray_icon.show()
            logger.info("System tray icon shown")
        else:
            logger.warning("Cannot show system tray - not available")

    def hide(self):
        if self.tray_icon:
            self.tray_icon.hide()
            logger.debug("System tray icon hidden")

    def show_message(self, title: str, message: str,
                     icon_type: QSystemTrayIcon.MessageIcon = QSystemTrayIcon.MessageIcon.Information,
                     duration: int = 3000):
        if self.tray_icon and self.tray_icon.isVisible():
            self.tray_icon.showMessage(title, message, icon_type, duration)
        else:
            logger.debug(f"Tray not visible, message dropped: {title}")

    def is_visible(self) -> bool:
        return self.tray_icon.isVisible() if self.tray_icon else False
