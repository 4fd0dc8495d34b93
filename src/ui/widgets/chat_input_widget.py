from __future__ import annotations

from typing import Optional

from PySide6.QtCore import Qt, Signal
from PySide6.QtGui import QKeyEvent
from PySide6.QtWidgets import QHBoxLayout, QPushButton, QSizePolicy, QTextEdit, QWidget


class ChatInputTextEdit(QTextEdit):
    """
    A QTextEdit that emits sendMessage on Enter and inserts a newline on Shift+Enter.
    """
    sendMessage = Signal()

    def keyPressEvent(self, event: QKeyEvent):
        if (event.key() == Qt.Key.Key_Return or event.key() == Qt.Key.Key_Enter) and not (
            event.modifiers() & Qt.KeyboardModifier.ShiftModifier
        ):
            self.sendMessage.emit()
            event.accept()
        else:
            super().keyPressEvent(event)


class ChatInputWidget(QWidget):
    """
    Wrapper around the chat input text edit that exposes a clean message API.
    """

    message_requested = Signal()

    def __init__(self, parent: Optional[QWidget] = None):
        super().__init__(parent)
        layout = QHBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(6)

        self._text_edit = ChatInputTextEdit()
        self._text_edit.setObjectName("chat_input")
        self._text_edit.setPlaceholderText("Ask for an edit, e.g. 'add an intro marker at 2 seconds'.")
        self._text_edit.sendMessage.connect(self.message_requested.emit)
        self._text_edit.setSizePolicy(QSizePolicy.Expanding, QSizePolicy.Fixed)

        self._send_button = QPushButton("Send", self)
        self._send_button.setObjectName("send_button")
        self._send_button.setFixedWidth(70)
        self._send_button.setSizePolicy(QSizePolicy.Fixed, QSizePolicy.Expanding)
        self._send_button.setToolTip("Send (Enter). Shift+Enter for newline")
        self._send_button.clicked.connect(self.message_requested.emit)

        layout.addWidget(self._text_edit, 5)
        layout.addWidget(self._send_button)

    def take_message(self) -> Optional[str]:
        """
        Return the trimmed message and clear the input, or None when it is empty.
        """
        user_text = self._text_edit.toPlainText().strip()
        if not user_text:
            return None
        self._text_edit.clear()
        return user_text

    def focus_input(self) -> None:
        self._text_edit.setFocus()

    def setEnabled(self, enabled: bool) -> None:  # noqa: D401 - QWidget signature
        super().setEnabled(enabled)
        self._text_edit.setEnabled(enabled)
        self._send_button.setEnabled(enabled)
