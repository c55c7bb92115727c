"""
Keyboard commands for the editor.

Shortcuts map to named commands with declarative guards. A capture-level
event filter on the QApplication feeds key presses to the dispatcher, so
shortcuts work regardless of which editor widget has focus, except inside
text inputs.
"""
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from PyQt5.QtCore import QEvent, QObject, Qt, pyqtSignal
from PyQt5.QtWidgets import (
    QAbstractSpinBox,
    QApplication,
    QComboBox,
    QLineEdit,
    QPlainTextEdit,
    QTextEdit,
    QWidget,
)

from mangaink.core.annotations.document import (
    add_to_document,
    duplicate_element,
    next_reading_order,
    soft_delete,
)
from mangaink.core.annotations.models import PageElement
from .editor_session import ChapterEditorSession

logger = logging.getLogger(__name__)

# Only these modifiers take part in matching; keypad and group switches are ignored.
MODIFIER_MASK = Qt.ControlModifier | Qt.ShiftModifier | Qt.AltModifier | Qt.MetaModifier
CTRL = Qt.ControlModifier
SHIFT = Qt.ShiftModifier


@dataclass(frozen=True)
class KeyChord:
    key: int
    modifiers: int = 0

    @staticmethod
    def from_event(key: int, modifiers) -> "KeyChord":
        return KeyChord(int(key), int(modifiers) & int(MODIFIER_MASK))


def chord(key, modifiers=0) -> KeyChord:
    return KeyChord(int(key), int(modifiers))


@dataclass(frozen=True)
class Command:
    """A named action with its shortcuts and guards."""

    name: str
    chords: Tuple[KeyChord, ...]
    handler: Callable[[], object]
    requires_selection: bool = False
    edit_mode_only: bool = False
    allow_in_text_input: bool = False


def is_text_input(widget: Optional[QWidget]) -> bool:
    """True for widgets that consume typed characters."""
    if widget is None:
        return False
    if isinstance(widget, (QLineEdit, QTextEdit, QPlainTextEdit, QAbstractSpinBox)):
        return not getattr(widget, "isReadOnly", lambda: False)()
    if isinstance(widget, QComboBox):
        return widget.isEditable()
    return False


class CommandDispatcher(QObject):
    """
    Routes shortcuts to editor actions.

    Every mutating action goes through the session's document choke point.
    """

    command_executed = pyqtSignal(str)
    overlays_closed = pyqtSignal()

    def __init__(self, session: ChapterEditorSession, parent=None):
        super().__init__(parent)
        self.session = session
        self.clipboard: Optional[PageElement] = None
        self.commands: Dict[str, Command] = {}
        self._by_chord: Dict[KeyChord, Command] = {}
        self._register_defaults()

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def register(self, command: Command) -> None:
        self.commands[command.name] = command
        for c in command.chords:
            self._by_chord[c] = command

    def _register_defaults(self) -> None:
        s = self.session
        self.register(Command(
            "save", (chord(Qt.Key_S, CTRL),), s.save_current, allow_in_text_input=True,
        ))
        self.register(Command("undo", (chord(Qt.Key_Z, CTRL),), s.undo))
        self.register(Command(
            "redo", (chord(Qt.Key_Z, CTRL | SHIFT), chord(Qt.Key_Y, CTRL)), s.redo,
        ))
        self.register(Command(
            "delete", (chord(Qt.Key_Delete), chord(Qt.Key_Backspace)), self.delete_selected,
            requires_selection=True, edit_mode_only=True,
        ))
        self.register(Command(
            "duplicate", (chord(Qt.Key_D, CTRL),), self.duplicate_selected,
            requires_selection=True, edit_mode_only=True,
        ))
        self.register(Command(
            "copy", (chord(Qt.Key_C, CTRL),), self.copy_selected, requires_selection=True,
        ))
        self.register(Command(
            "paste", (chord(Qt.Key_V, CTRL),), self.paste, edit_mode_only=True,
        ))
        self.register(Command("escape", (chord(Qt.Key_Escape),), self.escape))
        self.register(Command("select_next", (chord(Qt.Key_Tab),), lambda: self.cycle_selection(1)))
        self.register(Command(
            "select_previous",
            (chord(Qt.Key_Backtab, SHIFT), chord(Qt.Key_Backtab), chord(Qt.Key_Tab, SHIFT)),
            lambda: self.cycle_selection(-1),
        ))
        for name, key, dx, dy in (
            ("left", Qt.Key_Left, -1, 0),
            ("right", Qt.Key_Right, 1, 0),
            ("up", Qt.Key_Up, 0, -1),
            ("down", Qt.Key_Down, 0, 1),
        ):
            self.register(Command(
                f"nudge_{name}", (chord(key),),
                lambda dx=dx, dy=dy: s.manipulation.nudge(dx, dy),
                requires_selection=True, edit_mode_only=True,
            ))
            self.register(Command(
                f"nudge_{name}_large", (chord(key, SHIFT),),
                lambda dx=dx, dy=dy: s.manipulation.nudge(dx, dy, large=True),
                requires_selection=True, edit_mode_only=True,
            ))

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def command_for(self, key: int, modifiers) -> Optional[Command]:
        return self._by_chord.get(KeyChord.from_event(key, modifiers))

    def can_execute(self, command: Command, in_text_input: bool = False) -> bool:
        if in_text_input and not command.allow_in_text_input:
            return False
        if command.edit_mode_only and not self.session.is_edit_mode:
            return False
        if command.requires_selection and self.session.selected_element() is None:
            return False
        return True

    def dispatch(self, key: int, modifiers, in_text_input: bool = False) -> bool:
        """
        Handle a key press.

        Args:
            key: Qt key code
            modifiers: Qt keyboard modifiers
            in_text_input: Whether focus is inside a text input

        Returns:
            True if a command consumed the key
        """
        command = self.command_for(key, modifiers)
        if command is None or not self.can_execute(command, in_text_input):
            return False
        self._run(command)
        return True

    def execute(self, name: str) -> bool:
        """Run a command by name, honoring its guards."""
        command = self.commands.get(name)
        if command is None:
            raise KeyError(f"Unknown command: {name}")
        if not self.can_execute(command):
            return False
        self._run(command)
        return True

    def _run(self, command: Command) -> None:
        logger.debug("Executing command %s", command.name)
        command.handler()
        self.command_executed.emit(command.name)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def delete_selected(self) -> bool:
        el = self.session.selected_element()
        if el is None or el.is_deleted:
            return False
        changed = self.session.update_current(lambda doc: soft_delete(doc, el.id))
        self.session.clear_selection()
        return changed

    def copy_selected(self) -> bool:
        el = self.session.selected_element()
        if el is None:
            return False
        self.clipboard = el
        return True

    def paste(self) -> bool:
        """Insert the clipboard element under a new id, offset and selected."""
        if self.clipboard is None or self.session.current_document() is None:
            return False
        return self._insert_copy(self.clipboard)

    def duplicate_selected(self) -> bool:
        el = self.session.selected_element()
        if el is None:
            return False
        self.clipboard = el
        return self._insert_copy(el)

    def _insert_copy(self, source: PageElement) -> bool:
        doc = self.session.current_document()
        copy = duplicate_element(source, reading_order=next_reading_order(doc))
        if not self.session.update_current(lambda d: add_to_document(d, copy)):
            return False
        self.session.select(copy.id)
        return True

    def escape(self) -> None:
        self.session.manipulation.cancel()
        self.session.clear_selection()
        self.overlays_closed.emit()

    def cycle_selection(self, step: int) -> bool:
        """Move the selection along reading order, wrapping at either end."""
        ordered: List[PageElement] = self.session.reading_order()
        if not ordered:
            return False
        ids = [el.id for el in ordered]
        current = self.session.selected_id
        if current in ids:
            index = (ids.index(current) + step) % len(ids)
        else:
            index = 0 if step > 0 else len(ids) - 1
        self.session.select(ids[index])
        return True


class ShortcutEventFilter(QObject):
    """Application-level key listener feeding the dispatcher."""

    def __init__(self, dispatcher: CommandDispatcher, parent=None):
        super().__init__(parent)
        self.dispatcher = dispatcher

    def install(self, app: Optional[QApplication] = None) -> None:
        (app or QApplication.instance()).installEventFilter(self)

    def uninstall(self, app: Optional[QApplication] = None) -> None:
        (app or QApplication.instance()).removeEventFilter(self)

    def eventFilter(self, obj, event):
        # Key presses reach the filter once per widget in the chain; only
        # act on the one addressed to a widget.
        if event.type() == QEvent.KeyPress and isinstance(obj, QWidget):
            in_text = is_text_input(QApplication.focusWidget())
            if self.dispatcher.dispatch(event.key(), event.modifiers(), in_text):
                event.accept()
                return True
        return super().eventFilter(obj, event)
