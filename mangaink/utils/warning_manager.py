"""
Session-scoped prompts: unsaved-changes confirmation and save-failure notices.
"""
from enum import Enum
from typing import Dict, Optional, Set

from PyQt5.QtWidgets import QCheckBox, QMessageBox, QWidget


class WarningType(Enum):
    """Prompts the user can silence for the rest of the session."""
    UNLOAD_UNSAVED = "unload_unsaved"
    SAVE_FAILED = "save_failed"


class WarningManager:
    """
    Shows prompts with a "Don't ask again this session" option and replays
    the remembered answer once a prompt is silenced.
    Singleton so every window shares the same session state.
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self._initialized = True
        self._suppressed: Set[WarningType] = set()
        self._last_choices: Dict[WarningType, int] = {}

    def should_show_warning(self, warning_type: WarningType) -> bool:
        return warning_type not in self._suppressed

    def suppress_warning(self, warning_type: WarningType) -> None:
        self._suppressed.add(warning_type)

    def reset_all_warnings(self) -> None:
        """Reset all warnings for the session."""
        self._suppressed.clear()
        self._last_choices.clear()

    def get_last_choice(self, warning_type: WarningType) -> Optional[int]:
        return self._last_choices.get(warning_type)

    def remember(self, warning_type: WarningType, choice: int, dont_ask: bool) -> int:
        """
        Record the user's answer to a prompt.

        Args:
            warning_type: Prompt that was answered
            choice: QMessageBox result
            dont_ask: Whether the "don't ask again" box was ticked

        Returns:
            ``choice``, for chaining
        """
        self._last_choices[warning_type] = choice
        # Cancel is never replayed; the next attempt must ask again.
        if dont_ask and choice != QMessageBox.Cancel:
            self.suppress_warning(warning_type)
        return choice

    def show_save_discard_cancel(
        self,
        parent: QWidget,
        warning_type: WarningType = WarningType.UNLOAD_UNSAVED,
        title: str = "Unsaved Changes",
        message: str = "Some pages have unsaved changes. Save them before closing?",
    ) -> int:
        """
        Ask whether to save, discard or cancel.

        Returns:
            QMessageBox.Save, QMessageBox.Discard, or QMessageBox.Cancel
        """
        if not self.should_show_warning(warning_type):
            last_choice = self.get_last_choice(warning_type)
            if last_choice is not None:
                return last_choice

        msg_box = QMessageBox(parent)
        msg_box.setIcon(QMessageBox.Question)
        msg_box.setWindowTitle(title)
        msg_box.setText(message)
        msg_box.setStandardButtons(QMessageBox.Save | QMessageBox.Discard | QMessageBox.Cancel)
        msg_box.setDefaultButton(QMessageBox.Save)
        dont_ask = QCheckBox("Don't ask again this session")
        msg_box.setCheckBox(dont_ask)

        result = msg_box.exec_()
        return self.remember(warning_type, result, dont_ask.isChecked())

    def show_notice(
        self, parent: QWidget, warning_type: WarningType, title: str, message: str
    ) -> None:
        """Non-modal, dismissible notice; silenced notices are skipped."""
        if not self.should_show_warning(warning_type):
            return

        msg_box = QMessageBox(parent)
        msg_box.setIcon(QMessageBox.Warning)
        msg_box.setWindowTitle(title)
        msg_box.setText(message)
        msg_box.setStandardButtons(QMessageBox.Ok)
        dont_ask = QCheckBox("Don't show again this session")
        msg_box.setCheckBox(dont_ask)
        msg_box.setModal(False)
        msg_box.finished.connect(
            lambda result: self.remember(warning_type, QMessageBox.Ok, dont_ask.isChecked())
        )
        msg_box.show()


# Global instance for easy access
warning_manager = WarningManager()
