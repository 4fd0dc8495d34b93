from __future__ import annotations

import asyncio
import json
import logging
from typing import Optional

from PySide6.QtCore import QThreadPool, Signal
from PySide6.QtWidgets import QApplication, QHBoxLayout, QLabel, QMainWindow, QPushButton, QVBoxLayout, QWidget

from src.aeai.app.event_bus import EventBus
from src.aeai.models.action import ActionCommand
from src.aeai.models.event_types import (
    ASSISTANT_MESSAGE,
    CONNECTION_STATUS_CHANGED,
    CONVERSATION_CLEARED,
    LLM_SERVICE_ERROR,
    LLM_SERVICE_WARNING,
    PROJECT_SNAPSHOT_UPDATED,
    RELOAD_ENDPOINT_CONFIG,
    SYSTEM_MESSAGE,
    TURN_COMPLETED,
)
from src.aeai.models.events import Event
from src.aeai.services.conversation_client import ConversationClient
from src.aeai.services.dispatch_service import DispatchService
from src.ui.qt_worker import Worker
from src.ui.widgets.chat_display_widget import ChatDisplayWidget
from src.ui.widgets.chat_input_widget import ChatInputWidget
from src.ui.windows.main_window_constants import (
    BOOT_SEQUENCE,
    CONNECTION_STATES,
    MAIN_STYLESHEET,
    QUICK_ACTIONS,
    WINDOW_TITLE,
)
from src.ui.windows.settings_window import SettingsWindow

logger = logging.getLogger(__name__)


class MainWindow(QMainWindow):
    """
    Chat panel: connection status and composition badge on top, transcript in
    the middle, quick actions and the input row at the bottom.
    """

    restore_input_signal = Signal()

    def __init__(
        self,
        event_bus: EventBus,
        *,
        dispatch_service: DispatchService,
        conversation_client: ConversationClient,
    ) -> None:
        super().__init__()
        self.event_bus = event_bus
        self.dispatch_service = dispatch_service
        self.conversation_client = conversation_client
        self.settings_window: Optional[SettingsWindow] = None

        self.setWindowTitle(WINDOW_TITLE)
        self.setGeometry(100, 100, 760, 820)
        self.setMinimumSize(520, 560)
        self.setStyleSheet(MAIN_STYLESHEET)

        self.connection_label = QLabel()
        self.connection_label.setObjectName("connection_status")
        self.comp_badge = QLabel("No Comp")
        self.comp_badge.setObjectName("comp_badge")
        self.chat_display = ChatDisplayWidget(parent=self)
        self.chat_input = ChatInputWidget(parent=self)
        self.quick_action_buttons = []

        self._build_layout()
        self._connect_signals()
        self._subscribe_events()

        self._set_connection_status("testing")
        self.chat_display.display_boot_sequence(BOOT_SEQUENCE)

    def _build_layout(self) -> None:
        central = QWidget()
        self.setCentralWidget(central)
        layout = QVBoxLayout(central)
        layout.setContentsMargins(10, 10, 10, 10)
        layout.setSpacing(10)

        header = QHBoxLayout()
        header.addWidget(self.connection_label)
        header.addStretch(1)
        header.addWidget(self.comp_badge)
        settings_button = QPushButton("Settings")
        settings_button.setObjectName("quick_action_button")
        settings_button.clicked.connect(self._open_settings_dialog)
        header.addWidget(settings_button)
        layout.addLayout(header)

        layout.addWidget(self.chat_display, 1)

        quick_actions = QHBoxLayout()
        for label, kind, argument in QUICK_ACTIONS:
            button = QPushButton(label)
            button.setObjectName("quick_action_button")
            button.clicked.connect(lambda _checked=False, k=kind, a=argument: self._handle_quick_action(k, a))
            quick_actions.addWidget(button)
            self.quick_action_buttons.append(button)
        layout.addLayout(quick_actions)

        layout.addWidget(self.chat_input)

    def _connect_signals(self) -> None:
        self.chat_input.message_requested.connect(self._handle_message_requested)
        self.restore_input_signal.connect(self._restore_chat_input)

    def _subscribe_events(self) -> None:
        self.event_bus.subscribe(ASSISTANT_MESSAGE, self._handle_assistant_message)
        self.event_bus.subscribe(SYSTEM_MESSAGE, self._handle_system_message)
        self.event_bus.subscribe(PROJECT_SNAPSHOT_UPDATED, self._handle_snapshot_updated)
        self.event_bus.subscribe(CONNECTION_STATUS_CHANGED, self._handle_connection_status)
        self.event_bus.subscribe(TURN_COMPLETED, lambda _event: self._restore_chat_input())
        self.event_bus.subscribe(CONVERSATION_CLEARED, self._handle_conversation_cleared)
        self.event_bus.subscribe(LLM_SERVICE_WARNING, self._handle_service_warning)
        self.event_bus.subscribe(LLM_SERVICE_ERROR, self._handle_service_error)
        self.event_bus.subscribe(RELOAD_ENDPOINT_CONFIG, self._handle_reload_endpoint)

    # ---- Event handlers -------------------------------------------------
    def _handle_assistant_message(self, event: Event) -> None:
        content = (event.payload or {}).get("content") or ""
        if content:
            self.chat_display.display_assistant_response(content)

    def _handle_system_message(self, event: Event) -> None:
        payload = event.payload or {}
        self.chat_display.display_system_message(payload.get("category", "SYSTEM"), payload.get("message", ""))

    def _handle_snapshot_updated(self, event: Event) -> None:
        self.comp_badge.setText((event.payload or {}).get("label") or "No Comp")

    def _handle_connection_status(self, event: Event) -> None:
        payload = event.payload or {}
        self._set_connection_status(payload.get("status", "offline"), payload.get("error"))

    def _handle_conversation_cleared(self, event: Event) -> None:
        self.chat_display.display_boot_sequence(BOOT_SEQUENCE)

    def _handle_service_warning(self, event: Event) -> None:
        self.chat_display.display_system_message("WARNING", (event.payload or {}).get("message", ""))

    def _handle_service_error(self, event: Event) -> None:
        payload = event.payload or {}
        lines = [payload.get("message", "Request failed")]
        lines.extend(f"- {suggestion}" for suggestion in payload.get("suggestions") or [])
        self.chat_display.display_system_message("ERROR", "\n".join(lines))

    def _handle_reload_endpoint(self, event: Event) -> None:
        self.conversation_client.reload_settings()
        self.test_connection()

    def _set_connection_status(self, status: str, error: Optional[str] = None) -> None:
        text, color = CONNECTION_STATES.get(status, CONNECTION_STATES["offline"])
        self.connection_label.setText(f"● {text}")
        self.connection_label.setStyleSheet(f"color: {color};")
        self.connection_label.setToolTip(error or "")

    # ---- Background work ------------------------------------------------
    def test_connection(self) -> None:
        self._set_connection_status("testing")
        QThreadPool.globalInstance().start(Worker(self._test_connection_background))

    def _test_connection_background(self) -> None:
        result = asyncio.run(self.conversation_client.test_connection())
        payload = {"status": "online"} if result.success else {"status": "offline", "error": result.error}
        self.event_bus.dispatch(Event(event_type=CONNECTION_STATUS_CHANGED, payload=payload))

    def refresh_snapshot(self) -> None:
        QThreadPool.globalInstance().start(
            Worker(lambda: asyncio.run(self.dispatch_service.refresh_snapshot()))
        )

    def _handle_message_requested(self) -> None:
        user_text = self.chat_input.take_message()
        if user_text is None:
            return
        self.chat_input.setEnabled(False)
        self.chat_display.display_user_message(user_text)

        worker = Worker(self._handle_message_background, user_text)
        QThreadPool.globalInstance().start(worker)

    def _handle_message_background(self, user_text: str) -> None:
        """Runs in background thread - safe to block."""
        try:
            asyncio.run(self.dispatch_service.handle_user_message(user_text))
        except Exception as exc:
            logger.error("Failed to handle message: %s", exc, exc_info=True)
            self.restore_input_signal.emit()

    def _handle_quick_action(self, kind: str, argument: Optional[str]) -> None:
        if kind == "clear":
            self.dispatch_service.clear_history()
            return
        self._set_quick_actions_enabled(False)
        QThreadPool.globalInstance().start(Worker(self._quick_action_background, kind, argument))

    def _quick_action_background(self, kind: str, argument: Optional[str]) -> None:
        try:
            if kind == "analyze":
                asyncio.run(self.dispatch_service.analyze_current_frame())
                return
            result = asyncio.run(self.dispatch_service.dispatch_command(ActionCommand(action=argument)))
            if result.success and result.data:
                summary = json.dumps(result.data, indent=2, default=str)
                self.event_bus.dispatch(
                    Event(event_type=SYSTEM_MESSAGE, payload={"category": "HOST", "message": summary})
                )
            asyncio.run(self.dispatch_service.refresh_snapshot())
        except Exception as exc:
            logger.error("Quick action '%s' failed: %s", argument or kind, exc, exc_info=True)
        finally:
            self.restore_input_signal.emit()

    # ---- UI helpers -----------------------------------------------------
    def _set_quick_actions_enabled(self, enabled: bool) -> None:
        for button in self.quick_action_buttons:
            button.setEnabled(enabled)

    def _restore_chat_input(self) -> None:
        self._set_quick_actions_enabled(True)
        self.chat_input.setEnabled(True)
        self.chat_input.focus_input()

    def _open_settings_dialog(self) -> None:
        if self.settings_window is None:
            self.settings_window = SettingsWindow(self.event_bus)
        self.settings_window.show()

    def closeEvent(self, event) -> None:  # noqa: D401 - QWidget signature
        QApplication.quit()
        super().closeEvent(event)
