from pathlib import Path

# This calculates the absolute path to the project's root directory
# It starts from this file's location (.../src/aeai/config.py) and goes up three levels.
ROOT_DIR = Path(__file__).resolve().parent.parent.parent

# All other important paths are built from the ROOT_DIR to ensure they are always correct.
ASSETS_DIR = ROOT_DIR / "assets"
LOGS_DIR = ROOT_DIR / "logs"
SETTINGS_FILE = ROOT_DIR / "user_settings.json"

# Inference endpoint defaults, overridable through user settings.
DEFAULT_API_URL = "http://localhost:8317/v1"
DEFAULT_API_KEY = ""
DEFAULT_MODELS = {
    "text": "gpt-5.2-codex",
    "vision": "gemini-3-pro-image-preview",
    "fast": "gemini-2.5-flash-lite",
}

# Number of history entries (user and assistant turns) sent with each request.
CONVERSATION_WINDOW = 10

REQUEST_CONFIG = {
    "chat": {
        "temperature": 0.7,
        "max_tokens": 2048,
    },
    "vision": {
        "max_tokens": 1024,
    },
    "http_timeout_seconds": 120,
}

# Host bridge configuration.
HOST_ENTRY_POINT = "runActionModular"
HOST_SNAPSHOT_SCRIPT = "getCompInfo()"
HOST_MODES = ("local", "subprocess", "simulation")
DEFAULT_HOST_MODE = "local"
HOST_SERVER_MODULE = "src.aehost.server"
HOST_REQUEST_TIMEOUT_SECONDS = 60.0
VERIFICATION_TIMEOUT_SECONDS = 30.0
