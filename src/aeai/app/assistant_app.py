import argparse
import logging
import sys
from typing import List, Optional

from PySide6.QtGui import QFontDatabase
from PySide6.QtWidgets import QApplication

from src.aeai.app.event_bus import EventBus
from src.aeai.config import ASSETS_DIR, HOST_MODES
from src.aeai.services.action_catalog import ActionCatalog
from src.aeai.services.bridge_transport import BridgeTransport
from src.aeai.services.conversation_client import ConversationClient
from src.aeai.services.dispatch_service import DispatchService
from src.aeai.services.logging_service import LoggingService
from src.aeai.services.script_evaluators import LocalScriptHost, SubprocessScriptHost
from src.aeai.services.user_settings_manager import load_user_settings
from src.aehost.runtime import HostRuntime
from src.ui.windows.main_window import MainWindow


def get_host_mode_from_args(argv: Optional[List[str]] = None, default: str = "local") -> str:
    """
    Resolve the host mode from CLI args, falling back to ``default``.

    Args:
        argv: Optional list of CLI arguments to inspect.
        default: Mode from user settings.
    """
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument("--host-mode", choices=HOST_MODES)
    args, _ = parser.parse_known_args(argv)
    return args.host_mode or default


def build_evaluator(host_mode: str):
    """Script evaluator for ``host_mode``; None means simulation."""
    if host_mode == "subprocess":
        return SubprocessScriptHost()
    if host_mode == "local":
        return LocalScriptHost()
    return None


class AssistantApp:
    """
    The main application class: wires the services together and shows the window.
    """

    def __init__(self, argv: Optional[List[str]] = None):
        LoggingService.setup_logging()
        logging.info("Initializing AssistantApp...")
        argv = sys.argv[1:] if argv is None else argv

        settings = load_user_settings()
        self.host_mode = get_host_mode_from_args(argv, settings["host_mode"])

        self.app = QApplication(sys.argv)
        self.app.setApplicationName("AE Assistant")
        self._load_fonts()

        self.event_bus = EventBus()
        self.catalog = ActionCatalog()
        self.evaluator = build_evaluator(self.host_mode)
        self.bridge = BridgeTransport(self.evaluator)
        self.conversation_client = ConversationClient(
            self.catalog,
            event_bus=self.event_bus,
            api_url=settings["api_url"],
            api_key=settings["api_key"],
            models=settings["models"],
        )
        self.dispatch_service = DispatchService(
            self.conversation_client,
            self.catalog,
            self.bridge,
            event_bus=self.event_bus,
        )
        self._check_catalog_consistency()

        self.main_window = MainWindow(
            self.event_bus,
            dispatch_service=self.dispatch_service,
            conversation_client=self.conversation_client,
        )
        logging.info("AssistantApp initialized (host mode: %s).", self.host_mode)

    def _check_catalog_consistency(self) -> None:
        # Subprocess and simulation modes have no in-process registry; a fresh
        # runtime registers the same actions as the host server.
        runtime = getattr(self.evaluator, "runtime", None) or HostRuntime()
        report = self.catalog.verify_against(runtime.registry.list())
        if not report.is_consistent:
            logging.warning("Continuing with catalog drift: %s", report.describe())

    def _load_fonts(self):
        font_path = ASSETS_DIR / "JetBrainsMono-Regular.ttf"
        if font_path.exists():
            font_id = QFontDatabase.addApplicationFont(str(font_path))
            if font_id != -1:
                family = QFontDatabase.applicationFontFamilies(font_id)[0]
                logging.info(f"Successfully loaded font: '{family}'")
            else:
                logging.error(f"Failed to load font from {font_path}.")
        else:
            logging.debug(f"Font file not found at {font_path}. Using default.")

    def run(self):
        """Shows the main window and starts the application."""
        logging.info("Starting AE Assistant...")
        self.main_window.show()
        self.main_window.test_connection()
        self.main_window.refresh_snapshot()
        exit_code = self.app.exec()
        close = getattr(self.evaluator, "close", None)
        if close is not None:
            close()
        sys.exit(exit_code)
