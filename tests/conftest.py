from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
from unittest.mock import MagicMock, patch

import pytest

from src.aeai.models.events import Event
from src.aeai.services.action_catalog import ActionCatalog
from src.aehost.project_model import Composition, Project
from src.aehost.runtime import HostRuntime


class RecordingEventBus:
    """Synchronous in-memory event bus used by tests."""

    def __init__(self) -> None:
        self._subscribers: Dict[str, List[Callable[[Event], None]]] = {}
        self.dispatched: List[Event] = []

    def subscribe(self, event_type: str, callback: Callable[[Event], None]) -> None:
        self._subscribers.setdefault(event_type, []).append(callback)

    def dispatch(self, event: Event) -> None:
        self.dispatched.append(event)
        for callback in self._subscribers.get(event.event_type, []):
            callback(event)

    def of_type(self, event_type: str) -> List[Event]:
        return [event for event in self.dispatched if event.event_type == event_type]

    def system_messages(self) -> List[str]:
        return [event.payload["message"] for event in self.of_type("SYSTEM_MESSAGE")]


class FakeEvaluator:
    """Script evaluator that answers from a callable, synchronously or not at all."""

    def __init__(self, responder: Optional[Callable[[str], Optional[str]]] = None) -> None:
        self.responder = responder or (lambda script: "true")
        self.scripts: List[str] = []

    def eval_script(self, script: str, callback: Callable[[str], None]) -> None:
        self.scripts.append(script)
        answer = self.responder(script)
        if answer is not None:
            callback(answer)


def completion_response(content: str, usage: Optional[Dict[str, Any]] = None) -> MagicMock:
    """A mocked ``requests.Response`` carrying one chat completion."""
    response = MagicMock()
    response.raise_for_status.return_value = None
    response.json.return_value = {
        "choices": [{"message": {"role": "assistant", "content": content}}],
        "usage": usage or {"prompt_tokens": 10, "completion_tokens": 5},
    }
    return response


@pytest.fixture
def event_bus() -> RecordingEventBus:
    return RecordingEventBus()


@pytest.fixture
def catalog() -> ActionCatalog:
    return ActionCatalog()


@pytest.fixture
def host_runtime() -> HostRuntime:
    """Runtime over the demo project (one comp, four layers)."""
    return HostRuntime()


@pytest.fixture
def blank_comp_runtime() -> HostRuntime:
    """Runtime whose active composition has no layers and no markers."""
    project = Project(file_name="blank.aep")
    project.add_comp(Composition(name="Blank", width=1280, height=720, duration=5.0, frame_rate=24.0))
    return HostRuntime(project)


@pytest.fixture
def run_action(host_runtime: HostRuntime) -> Callable[..., Dict[str, Any]]:
    """Call an action the way the bridge does and decode the JSON answer."""

    def _run(action: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return json.loads(host_runtime.run_action_modular(action, json.dumps(params or {})))

    return _run


@pytest.fixture
def settings_file(tmp_path: Path):
    """Redirect the user settings file into a temporary directory."""
    target = tmp_path / "user_settings.json"
    with patch("src.aeai.services.user_settings_manager.SETTINGS_FILE", target):
        yield target
