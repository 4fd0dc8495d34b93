import json
import logging
from typing import Any, Dict, Optional

from src.aeai.config import (
    DEFAULT_API_KEY,
    DEFAULT_API_URL,
    DEFAULT_HOST_MODE,
    DEFAULT_MODELS,
    HOST_MODES,
    SETTINGS_FILE,
)

logger = logging.getLogger(__name__)


def _default_settings() -> Dict[str, Any]:
    return {
        "api_url": DEFAULT_API_URL,
        "api_key": DEFAULT_API_KEY,
        "models": dict(DEFAULT_MODELS),
        "host_mode": DEFAULT_HOST_MODE,
    }


def _normalize_api_url(value: Any, fallback: str) -> str:
    if not isinstance(value, str):
        return fallback
    value = value.strip().rstrip("/")
    if not value.startswith(("http://", "https://")):
        return fallback
    return value


def _normalize_api_key(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _sanitize_models(models: Any) -> Dict[str, str]:
    sanitized = dict(DEFAULT_MODELS)
    if isinstance(models, dict):
        for purpose in sanitized.keys():
            value = models.get(purpose)
            if isinstance(value, str) and value.strip():
                sanitized[purpose] = value.strip()
    return sanitized


def _normalize_host_mode(value: Any) -> str:
    if isinstance(value, str) and value.strip().lower() in HOST_MODES:
        return value.strip().lower()
    return DEFAULT_HOST_MODE


def load_user_settings() -> Dict[str, Any]:
    """
    Load user settings from disk, falling back to defaults for anything missing or malformed.
    """
    settings = _default_settings()

    if not SETTINGS_FILE.exists():
        return settings

    try:
        with open(SETTINGS_FILE, "r", encoding="utf-8") as handle:
            data = json.load(handle)
    except (IOError, json.JSONDecodeError) as exc:
        logger.warning("Failed to read user settings from %s: %s", SETTINGS_FILE, exc)
        return settings

    if not isinstance(data, dict):
        logger.warning("User settings file %s does not contain a JSON object.", SETTINGS_FILE)
        return settings

    # Older panels stored the endpoint as camelCase keys.
    api_url = data.get("api_url", data.get("apiUrl"))
    api_key = data.get("api_key", data.get("apiKey"))

    settings["api_url"] = _normalize_api_url(api_url, settings["api_url"])
    settings["api_key"] = _normalize_api_key(api_key)
    settings["models"] = _sanitize_models(data.get("models"))
    settings["host_mode"] = _normalize_host_mode(data.get("host_mode"))
    return settings


def save_user_settings(settings: Dict[str, Any]) -> None:
    """
    Persist the settings payload to disk.
    """
    defaults = _default_settings()
    payload: Dict[str, Any] = {
        "api_url": _normalize_api_url(settings.get("api_url"), defaults["api_url"]),
        "api_key": _normalize_api_key(settings.get("api_key")),
        "models": _sanitize_models(settings.get("models")),
        "host_mode": _normalize_host_mode(settings.get("host_mode")),
    }

    SETTINGS_FILE.parent.mkdir(parents=True, exist_ok=True)
    with open(SETTINGS_FILE, "w", encoding="utf-8") as handle:
        json.dump(payload, handle, indent=4)

    logger.info("User settings saved to %s", SETTINGS_FILE)


def update_endpoint_settings(
    api_url: Optional[str] = None,
    api_key: Optional[str] = None,
    models: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    """
    Merge endpoint overrides into the stored settings. Blank values keep what is stored.
    """
    settings = load_user_settings()
    if api_url and api_url.strip():
        settings["api_url"] = _normalize_api_url(api_url, settings["api_url"])
    if api_key and api_key.strip():
        settings["api_key"] = _normalize_api_key(api_key)
    if models:
        merged = dict(settings["models"])
        merged.update({k: v for k, v in models.items() if isinstance(v, str) and v.strip()})
        settings["models"] = _sanitize_models(merged)

    save_user_settings(settings)
    return settings
