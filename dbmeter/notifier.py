"""
Notification backends.

The detector only needs an object with ``notify(title, body)``.  The
desktop application shows a balloon through the system tray; the headless
monitor and platforms without tray messages fall back to the log.  A
notification that cannot be shown is logged and otherwise ignored: the
event it belongs to is recorded either way.
"""

from __future__ import annotations

import logging
from typing import Optional

from PySide6 import QtWidgets

logger = logging.getLogger(__name__)


class LogNotifier:
    """Write notifications to the log."""

    def notify(self, title: str, body: str) -> None:
        logger.warning("%s %s", title, body)


class TrayNotifier:
    """
    Show notifications as system tray messages.

    If the platform has no tray or the tray cannot display messages the
    notification is logged instead.
    """

    def __init__(
        self,
        tray: Optional[QtWidgets.QSystemTrayIcon],
        timeout_ms: int = 5000,
    ) -> None:
        self.tray = tray
        self.timeout_ms = timeout_ms
        self._fallback = LogNotifier()

    @property
    def supported(self) -> bool:
        return (
            self.tray is not None
            and QtWidgets.QSystemTrayIcon.isSystemTrayAvailable()
            and QtWidgets.QSystemTrayIcon.supportsMessages()
        )

    def notify(self, title: str, body: str) -> None:
        if not self.supported:
            logger.error("Notifications are not supported on this system")
            self._fallback.notify(title, body)
            return
        self.tray.showMessage(
            title,
            body,
            QtWidgets.QSystemTrayIcon.MessageIcon.Warning,
            self.timeout_ms,
        )
        logger.debug("Notification shown: %s", title)


__all__ = ["LogNotifier", "TrayNotifier"]
