import logging
from typing import Dict

from PySide6.QtWidgets import (
    QWidget,
    QVBoxLayout,
    QLabel,
    QComboBox,
    QLineEdit,
    QPushButton,
    QHBoxLayout,
)
from PySide6.QtCore import Qt
from PySide6.QtGui import QFont

from src.aeai.app.event_bus import EventBus
from src.aeai.config import DEFAULT_API_URL, DEFAULT_MODELS, HOST_MODES
from src.aeai.models.event_types import RELOAD_ENDPOINT_CONFIG
from src.aeai.models.events import Event
from src.aeai.services.user_settings_manager import load_user_settings, save_user_settings


logger = logging.getLogger(__name__)

MODEL_PURPOSES = (
    ("text", "Chat model"),
    ("vision", "Vision model"),
    ("fast", "Fast model"),
)


class SettingsWindow(QWidget):
    """
    Endpoint, model and host settings. Saving publishes RELOAD_ENDPOINT_CONFIG
    so the conversation client picks up the change without a restart.
    """

    SETTINGS_STYLESHEET = """
        QWidget {
            background-color: #05090d;
            color: #dcdcdc;
            font-family: "JetBrains Mono", "Courier New", Courier, monospace;
            font-size: 14px;
        }
        QLabel#title {
            color: #9AD1FF;
            font-size: 20px;
            font-weight: bold;
            padding: 4px 0 12px 0;
        }
        QLabel#section_label, QLabel#field_label {
            color: #9AD1FF;
        }
        QLabel#field_label {
            min-width: 140px;
        }
        QLabel#hint_label {
            color: #8a8a8a;
            font-size: 12px;
        }
        QComboBox, QLineEdit {
            background-color: #10181f;
            border: 1px solid #2c4a63;
            color: #D6ECFF;
            padding: 6px;
            border-radius: 4px;
        }
        QPushButton {
            background-color: #10181f;
            border: 1px solid #9AD1FF;
            color: #9AD1FF;
            font-weight: bold;
            padding: 8px 16px;
            border-radius: 4px;
            min-width: 140px;
        }
        QPushButton#save_button {
            background-color: #9AD1FF;
            color: #05090d;
        }
    """

    def __init__(self, event_bus: EventBus, parent=None):
        super().__init__(parent)
        self.event_bus = event_bus
        self.setWindowTitle("Assistant Settings")
        self.setWindowFlags(Qt.WindowType.Tool)
        self.setGeometry(200, 200, 540, 460)
        self.setStyleSheet(self.SETTINGS_STYLESHEET)
        self.setWindowModality(Qt.ApplicationModal)

        self.api_url_input: QLineEdit
        self.api_key_input: QLineEdit
        self.model_inputs: Dict[str, QLineEdit] = {}
        self.host_mode_combo: QComboBox

        self._init_ui()
        self._load_settings()

    # ---- UI Construction -------------------------------------------------
    def _init_ui(self) -> None:
        main_layout = QVBoxLayout(self)
        main_layout.setContentsMargins(18, 18, 18, 18)
        main_layout.setSpacing(12)

        title = QLabel("ASSISTANT SETTINGS")
        title.setObjectName("title")
        title.setAlignment(Qt.AlignCenter)
        main_layout.addWidget(title)

        section_font = QFont("JetBrains Mono", 11)

        panel = QWidget()
        panel_layout = QVBoxLayout(panel)
        panel_layout.setContentsMargins(18, 12, 18, 12)
        panel_layout.setSpacing(14)

        panel_layout.addWidget(self._create_section_label("------ Endpoint ------", section_font))
        self.api_url_input = QLineEdit()
        self.api_url_input.setPlaceholderText(DEFAULT_API_URL)
        panel_layout.addLayout(self._create_field_row("API URL:", self.api_url_input))

        self.api_key_input = QLineEdit()
        self.api_key_input.setEchoMode(QLineEdit.Password)
        panel_layout.addLayout(self._create_field_row("API Key:", self.api_key_input))

        panel_layout.addWidget(self._create_section_label("------ Models ------", section_font))
        for purpose, label in MODEL_PURPOSES:
            input_field = QLineEdit()
            input_field.setObjectName(f"model_{purpose}")
            input_field.setPlaceholderText(DEFAULT_MODELS.get(purpose, ""))
            panel_layout.addLayout(self._create_field_row(f"{label}:", input_field))
            self.model_inputs[purpose] = input_field

        panel_layout.addWidget(self._create_section_label("------ Host ------", section_font))
        self.host_mode_combo = QComboBox()
        for mode in HOST_MODES:
            self.host_mode_combo.addItem(mode, userData=mode)
        panel_layout.addLayout(self._create_field_row("Host mode:", self.host_mode_combo))
        hint = QLabel("Host mode changes apply on the next start.")
        hint.setObjectName("hint_label")
        panel_layout.addWidget(hint)

        footer_layout = QHBoxLayout()
        footer_layout.addStretch(1)
        save_button = QPushButton("Save & Close")
        save_button.setObjectName("save_button")
        save_button.clicked.connect(self._handle_save)
        footer_layout.addWidget(save_button)
        panel_layout.addLayout(footer_layout)

        main_layout.addWidget(panel)

    def _create_field_row(self, label_text: str, widget: QWidget) -> QHBoxLayout:
        layout = QHBoxLayout()
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(8)
        label = QLabel(label_text)
        label.setObjectName("field_label")
        layout.addWidget(label)
        layout.addWidget(widget)
        return layout

    def _create_section_label(self, text: str, font: QFont) -> QLabel:
        label = QLabel(text)
        label.setAlignment(Qt.AlignCenter)
        label.setFont(font)
        label.setObjectName("section_label")
        return label

    # ---- Data Binding ----------------------------------------------------
    def _load_settings(self) -> None:
        settings = load_user_settings()
        self.api_url_input.setText(settings.get("api_url", ""))
        self.api_key_input.setText(settings.get("api_key", ""))
        models = settings.get("models") or {}
        for purpose, input_field in self.model_inputs.items():
            input_field.setText(models.get(purpose, ""))
        self._select_combo_value(self.host_mode_combo, settings.get("host_mode"))

    def _select_combo_value(self, combo: QComboBox, value: str) -> None:
        if not isinstance(value, str):
            return
        for index in range(combo.count()):
            if combo.itemData(index) == value:
                combo.setCurrentIndex(index)
                return

    # ---- Event Handlers --------------------------------------------------
    def _handle_save(self) -> None:
        settings_payload = {
            "api_url": self.api_url_input.text().strip(),
            "api_key": self.api_key_input.text().strip(),
            "models": {purpose: field.text().strip() for purpose, field in self.model_inputs.items()},
            "host_mode": self.host_mode_combo.currentData() or "local",
        }

        try:
            save_user_settings(settings_payload)
        except OSError as exc:
            logger.error("Failed to save user settings: %s", exc)
            return

        self.event_bus.dispatch(Event(event_type=RELOAD_ENDPOINT_CONFIG))
        self.close()
