import json
import logging

from PyQt5.QtWidgets import QMessageBox

from mangaink.config import EditorConfig, load_config
from mangaink.utils.logging_utils import configure_logging
from mangaink.utils.warning_manager import WarningManager, WarningType


def test_defaults_without_settings(tmp_path):
    config = load_config(tmp_path, environ={})
    assert config == EditorConfig()
    assert config.autosave_debounce_ms == 700
    assert config.history_coalesce_ms == 650


def test_settings_file_then_environment(tmp_path):
    (tmp_path / "settings.json").write_text(
        json.dumps({"autosave_debounce_ms": 1000, "snap_threshold_px": 4}), encoding="utf-8"
    )
    config = load_config(tmp_path, environ={"MANGAINK_AUTOSAVE_DEBOUNCE_MS": "250"})
    assert config.autosave_debounce_ms == 250
    assert config.snap_threshold_px == 4.0


def test_unknown_and_invalid_settings_are_ignored(tmp_path):
    (tmp_path / "settings.json").write_text(
        json.dumps({"colour": "red", "zoom_max": "lots"}), encoding="utf-8"
    )
    assert load_config(tmp_path, environ={}) == EditorConfig()


def test_unreadable_settings_fall_back_to_defaults(tmp_path):
    (tmp_path / "settings.json").write_text("[1, 2", encoding="utf-8")
    assert load_config(tmp_path, environ={}) == EditorConfig()


def test_bool_values_from_environment(tmp_path):
    assert load_config(tmp_path, environ={"MANGAINK_DEBUG": "yes"}).debug
    assert not load_config(tmp_path, environ={"MANGAINK_DEBUG": "0"}).debug


def test_configure_logging_writes_to_file(tmp_path):
    root = logging.getLogger()
    saved_handlers = list(root.handlers)
    saved_level = root.level
    log_path = tmp_path / "test.log"
    try:
        if hasattr(root, "_mangaink_configured"):
            delattr(root, "_mangaink_configured")
        configure_logging(log_path=str(log_path))
        configure_logging(log_path=str(log_path))
        added = [h for h in root.handlers if h not in saved_handlers]
        assert len(added) == 1

        logging.getLogger("mangaink.test").info("hello")
        added[0].flush()
        assert "mangaink.test: hello" in log_path.read_text(encoding="utf-8")
    finally:
        for handler in root.handlers[:]:
            if handler not in saved_handlers:
                root.removeHandler(handler)
                handler.close()
        root.setLevel(saved_level)
        delattr(root, "_mangaink_configured")


def test_warning_manager_remembers_choice():
    manager = WarningManager()
    manager.reset_all_warnings()
    try:
        manager.remember(WarningType.UNLOAD_UNSAVED, QMessageBox.Cancel, dont_ask=True)
        assert manager.should_show_warning(WarningType.UNLOAD_UNSAVED)

        manager.remember(WarningType.UNLOAD_UNSAVED, QMessageBox.Discard, dont_ask=True)
        assert not manager.should_show_warning(WarningType.UNLOAD_UNSAVED)
        assert manager.show_save_discard_cancel(None) == QMessageBox.Discard
    finally:
        manager.reset_all_warnings()
