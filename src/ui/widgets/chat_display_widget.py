from __future__ import annotations

import logging
from html import escape
from typing import Any, Dict, Optional, Sequence

import markdown
from PySide6.QtCore import Qt
from PySide6.QtGui import QTextCursor, QTextOption
from PySide6.QtWidgets import QTextBrowser, QWidget

logger = logging.getLogger(__name__)


RESPONSE_CSS = """
<style>
    .assistant-response-content {
        font-family: 'JetBrains Mono', monospace;
        font-size: 13px;
        color: #9AD1FF;
        background: transparent;
        line-height: 1.4;
        word-wrap: break-word;
    }
    .assistant-response-content p { margin: 4px 0; }
    .assistant-response-content ul,
    .assistant-response-content ol {
        margin: 4px 0;
        padding-left: 20px;
    }
    .assistant-response-content a {
        color: #64B5F6;
        text-decoration: underline;
    }
</style>
"""

CATEGORY_COLORS = {
    "SYSTEM": "#66BB6A",
    "SUCCESS": "#39FF14",
    "WARNING": "#FFEE58",
    "ERROR": "#FF4444",
    "HOST": "#64B5F6",
    "DEFAULT": "#dcdcdc",
}


class ChatDisplayWidget(QTextBrowser):
    """
    Chat transcript: user bubbles on the right, markdown assistant replies on
    the left, and categorized status lines in between.
    """

    def __init__(self, parent: Optional[QWidget] = None):
        super().__init__(parent)
        self._styles_injected = False

        self.setObjectName("chat_display")
        self.setFocusPolicy(Qt.NoFocus)
        self.setOpenExternalLinks(True)
        self.setWordWrapMode(QTextOption.WrapAtWordBoundaryOrAnywhere)
        self.setReadOnly(True)

    def display_boot_sequence(self, boot_sequence: Sequence[Dict[str, Any]]) -> None:
        self.clear()
        self._styles_injected = False
        self._ensure_styles()
        for item in boot_sequence:
            text = (item or {}).get("text", "")
            if not text:
                continue
            boot_html = (
                "<div style=\"color: #9AD1FF; font-family: JetBrains Mono, monospace; "
                "font-size: 13px; margin: 2px 0;\">"
                f"{escape(text)}"
                "</div><br>"
            )
            self.insertHtml(boot_html)
        self.ensureCursorVisible()

    def display_system_message(self, category: str, message: str) -> None:
        """
        Render a status line highlighted by category.
        """
        self._ensure_styles()
        color = CATEGORY_COLORS.get(category.upper(), CATEGORY_COLORS["DEFAULT"])
        safe_message = escape(message).replace("\n", "<br>")
        html = (
            '<div style="margin: 8px 0;">'
            f'<span style="color: {color}; font-size: 12px;">{safe_message}</span>'
            "</div><br>"
        )
        self._append_html(html)

    def display_user_message(self, user_text: str) -> None:
        self._ensure_styles()
        safe_text = escape(user_text).replace("\n", "<br>")
        user_html = (
            '<div style="margin: 15px 0; text-align: right;">'
            '<div style="display: inline-block; max-width: 65%; background-color: #34536d; '
            'color: #f5f8ff; padding: 14px; border-radius: 8px; text-align: left; '
            "font-family: 'JetBrains Mono', monospace; font-size: 14px; line-height: 1.55;\">"
            '<strong style="color: #7CC4FF; font-size: 11px;">YOU</strong><br>'
            f"{safe_text}"
            "</div>"
            "</div><br>"
        )
        self._append_html(user_html)

    def display_assistant_response(self, response_text: str) -> None:
        """
        Render the assistant's markdown reply on the left-hand side of the chat.
        """
        self._ensure_styles()
        normalized_text = response_text.replace("\r\n", "\n").replace("\r", "\n")
        html_content = markdown.markdown(
            normalized_text,
            extensions=[
                "markdown.extensions.fenced_code",
                "markdown.extensions.nl2br",
                "markdown.extensions.sane_lists",
            ],
            output_format="html5",
        )
        html_content = html_content.replace(
            "<pre>",
            "<pre style=\"background-color: #0d1a26; color: #D6ECFF; padding: 10px; "
            "border-radius: 6px; border-left: 3px solid #64B5F6; margin: 8px 0; "
            "white-space: pre-wrap; font-family: 'JetBrains Mono', monospace; font-size: 13px;\">",
        )
        html_content = html_content.replace(
            "<code>",
            "<code style=\"background-color: #13283a; color: #D6ECFF; padding: 2px 6px; "
            "border-radius: 4px; font-family: 'JetBrains Mono', monospace; font-size: 13px;\">",
        )
        html_content = html_content.replace("<p>", "<p style=\"margin: 6px 0;\">")
        assistant_html = (
            '<div style="margin: 15px 0; text-align: left;">'
            '<div class="assistant-response-content" style="display: inline-block; max-width: 70%; '
            'background-color: #0a1722; color: #D6ECFF; padding: 14px; border-radius: 8px; '
            "font-family: 'JetBrains Mono', monospace; font-size: 14px; line-height: 1.55;\">"
            '<strong style="color: #9AD1FF; font-size: 11px;">ASSISTANT</strong><br>'
            f"{html_content}"
            "</div>"
            "</div><br>"
        )
        self._append_html(assistant_html)

    def display_error(self, message: str) -> None:
        self.display_system_message("ERROR", message)

    def clear_chat(self) -> None:
        self.setText("")
        self._styles_injected = False

    def _append_html(self, html: str) -> None:
        self.moveCursor(QTextCursor.End)
        self.insertHtml(html)
        self.ensureCursorVisible()

    def _ensure_styles(self) -> None:
        if self._styles_injected:
            return
        self.insertHtml(RESPONSE_CSS)
        self._styles_injected = True
