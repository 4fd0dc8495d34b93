from __future__ import annotations

from typing import Any, Dict, Sequence

WINDOW_TITLE = "AE Assistant"

MAIN_STYLESHEET = """
        QMainWindow, QWidget {
            background-color: #05090d;
            color: #dcdcdc;
            font-family: "JetBrains Mono", "Courier New", Courier, monospace;
        }
        QLabel#comp_badge {
            color: #9AD1FF;
            font-weight: bold;
            padding: 4px 10px;
            border: 1px solid #2c4a63;
            border-radius: 4px;
        }
        QLabel#connection_status {
            font-weight: bold;
            padding-left: 12px;
        }
        QTextBrowser#chat_display, QTextEdit#chat_display {
            background-color: #05090d;
            border-top: 1px solid #2c4a63;
            border-bottom: none;
            color: #dcdcdc;
            font-size: 14px;
        }
        QTextEdit#chat_input {
            background-color: #10181f;
            border: 1px solid #2c4a63;
            color: #dcdcdc;
            font-size: 14px;
            padding: 8px;
            border-radius: 5px;
            max-height: 80px;
        }
        QPushButton#quick_action_button, QPushButton#send_button {
            background-color: #10181f;
            border: 1px solid #2c4a63;
            color: #9AD1FF;
            font-weight: bold;
            padding: 6px 10px;
            border-radius: 5px;
        }
        QPushButton#quick_action_button:hover, QPushButton#send_button:hover { background-color: #1b2a37; }
    """

# Connection state -> (label, color)
CONNECTION_STATES = {
    "testing": ("Testing...", "#FFEE58"),
    "online": ("Connected", "#66BB6A"),
    "offline": ("Offline", "#FF4444"),
}

# (label, kind, argument): "action" runs a catalog action directly,
# "analyze" captures and describes the current frame, "clear" resets the history.
QUICK_ACTIONS: Sequence[tuple] = (
    ("Test Script", "action", "testScript"),
    ("Comp Info", "action", "getCompInfo"),
    ("List Markers", "action", "getCompMarkers"),
    ("Analyze Frame", "analyze", None),
    ("Clear History", "clear", None),
)

BOOT_SEQUENCE: Sequence[Dict[str, Any]] = (
    {"text": "AE Assistant ready."},
    {"text": "Describe an edit and the assistant will run it on the active composition."},
)
