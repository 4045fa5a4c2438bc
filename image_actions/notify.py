"""User notification for failed actions.

The runner only needs ``notify(title, message)``. With a running Qt
application the message goes to a QMessageBox; otherwise it is logged.
"""

from __future__ import annotations

from typing import Protocol

from image_actions.logger import get_logger

_logger = get_logger("notify")


class Notifier(Protocol):
    def notify(self, title: str, message: str) -> None: ...


class LogNotifier:
    def notify(self, title: str, message: str) -> None:
        _logger.error("%s: %s", title, message)


class QtNotifier:
    """Modal warning box; requires a QApplication instance."""

    def __init__(self, parent=None) -> None:
        self._parent = parent

    def notify(self, title: str, message: str) -> None:
        from PySide6.QtWidgets import QMessageBox

        _logger.debug("alert: %s: %s", title, message)
        QMessageBox.warning(self._parent, title, message)


def default_notifier() -> Notifier:
    try:
        from PySide6.QtWidgets import QApplication
    except ImportError:
        return LogNotifier()
    if QApplication.instance() is None:
        return LogNotifier()
    return QtNotifier()
