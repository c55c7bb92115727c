from PyQt5.QtWidgets import QWidget

# Save-badge colors keyed by ChapterEditorSession.save_badge() values
BADGE_COLORS = {
    "saved": "#51cf66",
    "dirty": "#ffd43b",
    "saving": "#4a9eff",
    "error": "#ff6b6b",
    "-": "#8899AA",
}


def apply_style(widget: QWidget, dark_mode: bool = True):
    """
    Applies the editor style sheet to the main window and its widgets.
    """
    if dark_mode:
        bg, panel, raised, text, muted, border = (
            "#2e2e2e", "#3e3e3e", "#4e4e4e", "#f0f0f0", "#B5B5C5", "#555555"
        )
    else:
        bg, panel, raised, text, muted, border = (
            "#f0f0f0", "#ffffff", "#e0e0e0", "#2e2e2e", "#7A899C", "#cccccc"
        )

    widget.setStyleSheet(f"""
        QMainWindow, QWidget {{
            background-color: {bg};
            color: {text};
        }}

        QFrame#TopFrame {{
            background-color: {panel};
            border-bottom: 1px solid {border};
        }}

        QPushButton {{
            background-color: {raised};
            color: {text};
            border: none;
            border-radius: 6px;
            padding: 6px 14px;
            font-weight: bold;
        }}
        QPushButton:hover {{
            background-color: #5a5a5a;
        }}
        QPushButton:checked {{
            background-color: #4a9eff;
            color: white;
        }}
        QPushButton:disabled {{
            color: {muted};
        }}

        QComboBox {{
            background-color: {panel};
            border: 1px solid {border};
            border-radius: 6px;
            padding: 4px 10px;
        }}

        QLabel {{
            background-color: transparent;
        }}
        QLabel#ChapterTitle {{
            font-weight: bold;
            color: #8899AA;
        }}
        QLabel#ErrorMessage {{
            color: #ff6b6b;
            font-size: 15px;
        }}

        QCheckBox {{
            background-color: transparent;
            color: {muted};
        }}
    """)


def badge_style(badge: str) -> str:
    color = BADGE_COLORS.get(badge, BADGE_COLORS["-"])
    return f"color: {color}; font-weight: bold; padding: 0 6px;"
