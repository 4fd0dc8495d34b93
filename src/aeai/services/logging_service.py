import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional, TextIO

from src.aeai.config import LOGS_DIR


class ColorFormatter(logging.Formatter):
    """A logging formatter that adds color to console output."""

    GREY = "\x1b[38;20m"
    YELLOW = "\x1b[33;20m"
    RED = "\x1b[31;20m"
    BOLD_RED = "\x1b[31;1m"
    CYAN = "\x1b[36;20m"
    RESET = "\x1b[0m"

    BASE_FORMAT = "%(asctime)s - %(levelname)s - %(name)s:%(funcName)s:%(lineno)d - %(message)s"

    FORMATS = {
        logging.DEBUG: f"{CYAN}{BASE_FORMAT}{RESET}",
        logging.INFO: f"{GREY}{BASE_FORMAT}{RESET}",
        logging.WARNING: f"{YELLOW}{BASE_FORMAT}{RESET}",
        logging.ERROR: f"{RED}{BASE_FORMAT}{RESET}",
        logging.CRITICAL: f"{BOLD_RED}{BASE_FORMAT}{RESET}",
    }

    def format(self, record):
        log_fmt = self.FORMATS.get(record.levelno, self.BASE_FORMAT)
        formatter = logging.Formatter(log_fmt)
        return formatter.format(record)


class LoggingService:
    """
    A service to configure centralized logging for the application.
    """
    LOG_FILE = "aeai.log"
    _configured = False

    @staticmethod
    def setup_logging(
        stream: Optional[TextIO] = None,
        log_file: Optional[str] = None,
        console_level: int = logging.INFO,
    ) -> None:
        """
        Configures the root logger for file and console output.
        This should be called once when the application starts.

        Args:
            stream: Console stream, stdout by default. Tools that reserve stdout pass stderr.
            log_file: File name inside the logs directory, defaults to ``LOG_FILE``.
            console_level: Threshold for the console handler. The file always gets DEBUG.
        """
        if LoggingService._configured:
            return

        LOGS_DIR.mkdir(exist_ok=True)
        log_file_path = LOGS_DIR / (log_file or LoggingService.LOG_FILE)

        root_logger = logging.getLogger()
        root_logger.setLevel(logging.DEBUG)

        console_handler = logging.StreamHandler(stream or sys.stdout)
        console_handler.setLevel(console_level)
        console_handler.setFormatter(ColorFormatter())

        file_handler = RotatingFileHandler(
            log_file_path, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8"
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(ColorFormatter.BASE_FORMAT))

        root_logger.addHandler(console_handler)
        root_logger.addHandler(file_handler)
        LoggingService._configured = True

        logging.info("Logging service initialized.")
