"""Tests for user settings persistence and normalization."""

from __future__ import annotations

import json
from pathlib import Path

from src.aeai.config import DEFAULT_API_URL, DEFAULT_HOST_MODE, DEFAULT_MODELS
from src.aeai.services.user_settings_manager import (
    load_user_settings,
    save_user_settings,
    update_endpoint_settings,
)


def test_defaults_when_file_missing(settings_file: Path) -> None:
    settings = load_user_settings()

    assert settings == {
        "api_url": DEFAULT_API_URL,
        "api_key": "",
        "models": DEFAULT_MODELS,
        "host_mode": DEFAULT_HOST_MODE,
    }


def test_malformed_json_falls_back_to_defaults(settings_file: Path) -> None:
    settings_file.write_text("{ invalid json }", encoding="utf-8")

    assert load_user_settings()["api_url"] == DEFAULT_API_URL


def test_non_dict_content_falls_back_to_defaults(settings_file: Path) -> None:
    settings_file.write_text(json.dumps(["not", "a", "dict"]), encoding="utf-8")

    assert load_user_settings()["host_mode"] == DEFAULT_HOST_MODE


def test_reads_and_normalizes_values(settings_file: Path) -> None:
    settings_file.write_text(
        json.dumps(
            {
                "api_url": " https://proxy.example/v1/ ",
                "api_key": "  sk-123\n",
                "models": {"text": "  my-model ", "vision": "", "unknown": "x"},
                "host_mode": "SUBPROCESS",
            }
        ),
        encoding="utf-8",
    )

    settings = load_user_settings()

    assert settings["api_url"] == "https://proxy.example/v1"
    assert settings["api_key"] == "sk-123"
    assert settings["models"] == {**DEFAULT_MODELS, "text": "my-model"}
    assert settings["host_mode"] == "subprocess"


def test_reads_legacy_camel_case_keys(settings_file: Path) -> None:
    settings_file.write_text(json.dumps({"apiUrl": "http://10.0.0.2:8317/v1", "apiKey": "legacy"}), encoding="utf-8")

    settings = load_user_settings()

    assert settings["api_url"] == "http://10.0.0.2:8317/v1"
    assert settings["api_key"] == "legacy"


def test_invalid_values_are_replaced(settings_file: Path) -> None:
    settings_file.write_text(json.dumps({"api_url": "ftp://nope", "host_mode": "remote", "models": "x"}), encoding="utf-8")

    settings = load_user_settings()

    assert settings["api_url"] == DEFAULT_API_URL
    assert settings["host_mode"] == DEFAULT_HOST_MODE
    assert settings["models"] == DEFAULT_MODELS


def test_save_load_round_trip(settings_file: Path) -> None:
    original = {
        "api_url": "https://proxy.example/v1",
        "api_key": "sk-abc",
        "models": {"text": "t", "vision": "v", "fast": "f"},
        "host_mode": "simulation",
    }

    save_user_settings(original)

    assert json.loads(settings_file.read_text(encoding="utf-8")) == original
    assert load_user_settings() == original


def test_update_endpoint_settings_keeps_blank_fields(settings_file: Path) -> None:
    save_user_settings({"api_url": "https://proxy.example/v1", "api_key": "sk-keep", "host_mode": "local"})

    updated = update_endpoint_settings(api_url="  ", api_key="", models={"vision": "new-vision", "text": " "})

    assert updated["api_url"] == "https://proxy.example/v1"
    assert updated["api_key"] == "sk-keep"
    assert updated["models"]["vision"] == "new-vision"
    assert updated["models"]["text"] == DEFAULT_MODELS["text"]
    assert load_user_settings() == updated
