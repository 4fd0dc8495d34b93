"""Tests for DispatchService - one chat turn from user text to host action and back."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import List, Optional, Tuple

import pytest

from src.aeai.models.action import ActionCommand
from src.aeai.models.conversation import ChatResult
from src.aeai.models.event_types import (
    ACTION_BLOCKED,
    ACTION_COMPLETED,
    ACTION_DISPATCHED,
    ASSISTANT_MESSAGE,
    CONVERSATION_CLEARED,
    PROJECT_SNAPSHOT_UPDATED,
    SYSTEM_MESSAGE,
    TURN_COMPLETED,
    USER_MESSAGE_SENT,
)
from src.aeai.services.action_catalog import ActionCatalog
from src.aeai.services.bridge_transport import PROBE_SCRIPT, BridgeTransport
from src.aeai.services.dispatch_service import DispatchService
from src.aeai.services.script_evaluators import LocalScriptHost
from src.aehost.runtime import HostRuntime
from tests.conftest import FakeEvaluator, RecordingEventBus

INTRO_MARKER_REPLY = (
    "I'll add that marker for you.\n"
    "```json\n"
    '{"action": "addCompMarker", "params": {"time": 2, "comment": "intro"}, '
    '"explanation": "Adds an intro marker at 2 seconds", "followUp": ["List markers"]}\n'
    "```"
)
NO_COMP = json.dumps({"success": False, "error": "No active composition. Please select a composition."})


class FakeClient:
    """Stands in for ConversationClient with canned replies."""

    def __init__(self, *replies: ChatResult, analysis: Optional[ChatResult] = None) -> None:
        self.replies = list(replies)
        self.analysis = analysis or ChatResult(success=True, content="Warm key light from the left.")
        self.prompts: List[str] = []
        self.frames: List[Tuple[str, str, str]] = []
        self.cleared = False

    async def converse(self, user_message: str, model: str = "text") -> ChatResult:
        self.prompts.append(user_message)
        return self.replies.pop(0)

    async def analyze_frame(self, base64_image: str, analysis_type: str = "full", mime_type: str = "image/png") -> ChatResult:
        self.frames.append((base64_image, analysis_type, mime_type))
        return self.analysis

    def clear_history(self) -> None:
        self.cleared = True


def _reply(content: str) -> ChatResult:
    return ChatResult(success=True, content=content)


@pytest.fixture
def local_host():
    host = LocalScriptHost(HostRuntime())
    yield host
    host.close()


def _service(client: FakeClient, bridge: BridgeTransport, event_bus: RecordingEventBus) -> DispatchService:
    return DispatchService(client, ActionCatalog(), bridge, event_bus=event_bus)


# -- Full turns ------------------------------------------------------------------------


def test_intro_marker_turn_runs_on_host(local_host: LocalScriptHost, event_bus: RecordingEventBus) -> None:
    service = _service(FakeClient(_reply(INTRO_MARKER_REPLY)), BridgeTransport(local_host), event_bus)

    outcome = asyncio.run(service.handle_user_message("add an intro marker at 2 seconds"))

    assert outcome.command.action == "addCompMarker"
    assert outcome.result.success is True
    assert outcome.result.data == {"time": 2, "comment": "intro"}
    assert outcome.system_messages == [
        "⚡ Adds an intro marker at 2 seconds",
        "✓ Action completed",
        "💡 Next: List markers",
    ]
    assert outcome.snapshot.label == "Main Comp · 1920×1080"

    markers = local_host.runtime.project.active_item.marker_property
    assert markers.num_keys == 1
    assert markers.key_value(1).comment == "intro"

    event_types = [event.event_type for event in event_bus.dispatched]
    assert event_types[0] == USER_MESSAGE_SENT
    assert event_types[-1] == TURN_COMPLETED
    assert event_types.index(ASSISTANT_MESSAGE) < event_types.index(ACTION_DISPATCHED) < event_types.index(ACTION_COMPLETED)
    assert event_types.count(PROJECT_SNAPSHOT_UPDATED) == 2


def test_unknown_action_is_blocked_before_bridge(event_bus: RecordingEventBus) -> None:
    evaluator = FakeEvaluator(lambda script: "true" if script == PROBE_SCRIPT else NO_COMP)
    reply = _reply('```json\n{"action": "deleteProject", "params": {}}\n```')
    service = _service(FakeClient(reply), BridgeTransport(evaluator), event_bus)

    outcome = asyncio.run(service.handle_user_message("delete everything"))

    assert outcome.result.success is False
    assert outcome.system_messages == ["Action failed: Invalid action: deleteProject"]
    assert not any("runActionModular" in script for script in evaluator.scripts)
    blocked = event_bus.of_type(ACTION_BLOCKED)
    assert [e.payload for e in blocked] == [{"action": "deleteProject", "error": "Invalid action: deleteProject"}]
    assert event_bus.of_type(ACTION_DISPATCHED) == []


def test_conversational_reply_dispatches_nothing(event_bus: RecordingEventBus) -> None:
    service = _service(FakeClient(_reply("Markers help you plan edits.")), BridgeTransport(), event_bus)

    outcome = asyncio.run(service.handle_user_message("what are markers?"))

    assert outcome.assistant_message == "Markers help you plan edits."
    assert outcome.command is None
    assert outcome.dispatched is False
    assert event_bus.of_type(ASSISTANT_MESSAGE)[0].payload["content"] == "Markers help you plan edits."
    assert event_bus.of_type(TURN_COMPLETED)[0].payload["outcome"]["user_message"] == "what are markers?"


def test_model_failure_ends_turn_with_error(event_bus: RecordingEventBus) -> None:
    service = _service(FakeClient(ChatResult(success=False, error="HTTP 500")), BridgeTransport(), event_bus)

    outcome = asyncio.run(service.handle_user_message("hello"))

    assert outcome.error == "HTTP 500"
    assert outcome.system_messages == ["Error: HTTP 500"]
    assert event_bus.of_type(ASSISTANT_MESSAGE) == []
    assert event_bus.of_type(SYSTEM_MESSAGE)[0].payload == {"category": "ERROR", "message": "Error: HTTP 500"}


def test_simulation_mode_reports_simulated_success(event_bus: RecordingEventBus) -> None:
    service = _service(FakeClient(_reply(INTRO_MARKER_REPLY)), BridgeTransport(), event_bus)

    outcome = asyncio.run(service.handle_user_message("add an intro marker at 2 seconds"))

    assert "[Simulation] addCompMarker" in outcome.system_messages
    assert "✓ Action completed" in outcome.system_messages
    assert outcome.result.data == {"simulated": True, "action": "addCompMarker"}
    assert outcome.snapshot is None
    assert event_bus.of_type(PROJECT_SNAPSHOT_UPDATED)[-1].payload == {"snapshot": None, "label": "No Comp"}


def test_host_failure_is_reported(local_host: LocalScriptHost, event_bus: RecordingEventBus) -> None:
    reply = _reply('```json\n{"action": "removeMarker", "params": {"markerIndex": 4}}\n```')
    service = _service(FakeClient(reply), BridgeTransport(local_host), event_bus)

    outcome = asyncio.run(service.handle_user_message("remove marker 4"))

    assert outcome.result.success is False
    assert outcome.system_messages == ["Action failed: Invalid marker index"]


def test_manual_steps_and_host_warnings(event_bus: RecordingEventBus) -> None:
    host_result = json.dumps(
        {
            "success": True,
            "manualStep": 'Click "Analyze" in Effect Controls',
            "warnings": ['Click "Analyze" in Effect Controls', "Footage is interlaced"],
        }
    )

    def responder(script: str) -> str:
        if script == PROBE_SCRIPT:
            return "true"
        if script == "getCompInfo()":
            return NO_COMP
        return host_result

    reply = _reply(
        '```json\n{"action": "applyWarpStabilizer", "params": {"layerIndex": 1}, '
        '"manualSteps": ["Open Effect Controls", "Wait for analysis"]}\n```'
    )
    service = _service(FakeClient(reply), BridgeTransport(FakeEvaluator(responder)), event_bus)

    outcome = asyncio.run(service.handle_user_message("stabilize the plate"))

    assert outcome.system_messages == [
        "✓ Action completed",
        "📋 Manual steps:\n1. Open Effect Controls\n2. Wait for analysis",
        '⚠️ Manual step: Click "Analyze" in Effect Controls',
        "⚠️ Footage is interlaced",
    ]
    categories = [e.payload["category"] for e in event_bus.of_type(SYSTEM_MESSAGE)]
    assert categories == ["SUCCESS", "SYSTEM", "WARNING", "WARNING"]


def test_dispatch_command_authorizes_quick_actions(local_host: LocalScriptHost, event_bus: RecordingEventBus) -> None:
    service = _service(FakeClient(), BridgeTransport(local_host), event_bus)

    result = asyncio.run(service.dispatch_command(ActionCommand(action="testScript")))
    blocked = asyncio.run(service.dispatch_command(ActionCommand(action="rm -rf")))

    assert result.success is True
    assert result.data["message"] == "Modular script is working"
    assert blocked.error == "Invalid action: rm -rf"


# -- Frame analysis --------------------------------------------------------------------


def test_analyze_current_frame_sends_capture_and_removes_file(tmp_path: Path, event_bus: RecordingEventBus) -> None:
    frame = tmp_path / "ae_frame_1.jpg"
    frame.write_bytes(b"ABC")
    capture = json.dumps(
        {
            "success": True,
            "framePath": str(frame),
            "time": 0,
            "width": 1280,
            "height": 720,
            "originalSize": [1920, 1080],
            "downscaled": True,
        }
    )
    evaluator = FakeEvaluator(lambda script: "true" if script == PROBE_SCRIPT else capture)
    client = FakeClient()
    service = _service(client, BridgeTransport(evaluator), event_bus)

    result = asyncio.run(service.analyze_current_frame("lighting"))

    assert result.success is True
    assert client.frames == [("QUJD", "lighting", "image/jpeg")]
    assert not frame.exists()
    assert 'runActionModular("captureFrameOptimized"' in evaluator.scripts[-1]
    messages = event_bus.system_messages()
    assert messages[0] == "📸 Capturing frame (optimized)..."
    assert "Frame: 1280×720 (from 1920×1080)" in messages
    assert messages[-1] == "🔍 Analyzing with AI..."
    assert event_bus.of_type(ASSISTANT_MESSAGE)[0].payload["content"] == "Warm key light from the left."


def test_analyze_current_frame_needs_connected_host(event_bus: RecordingEventBus) -> None:
    client = FakeClient()
    service = _service(client, BridgeTransport(), event_bus)

    result = asyncio.run(service.analyze_current_frame())

    assert result.success is False
    assert result.error == "Frame analysis needs a connected host."
    assert client.frames == []


def test_analyze_current_frame_reports_capture_failure(event_bus: RecordingEventBus) -> None:
    failure = json.dumps({"success": False, "error": "No active composition. Please select a composition."})
    evaluator = FakeEvaluator(lambda script: "true" if script == PROBE_SCRIPT else failure)
    service = _service(FakeClient(), BridgeTransport(evaluator), event_bus)

    result = asyncio.run(service.analyze_current_frame())

    assert result.success is False
    assert "Capture failed: No active composition. Please select a composition." in event_bus.system_messages()


def test_analyze_frame_file_reports_read_errors(tmp_path: Path, event_bus: RecordingEventBus) -> None:
    client = FakeClient()
    service = _service(client, BridgeTransport(), event_bus)

    result = asyncio.run(service.analyze_frame_file(str(tmp_path / "missing.png")))

    assert result.success is False
    assert result.error.startswith("File read error:")
    assert client.frames == []


def test_analysis_failure_is_reported(tmp_path: Path, event_bus: RecordingEventBus) -> None:
    image = tmp_path / "frame.png"
    image.write_bytes(b"\x89PNG")
    client = FakeClient(analysis=ChatResult(success=False, error="HTTP 413"))
    service = _service(client, BridgeTransport(), event_bus)

    asyncio.run(service.analyze_frame_file(str(image)))

    assert client.frames[0][2] == "image/png"
    assert event_bus.system_messages()[-1] == "Analysis failed: HTTP 413"


def test_clear_history(event_bus: RecordingEventBus) -> None:
    client = FakeClient()
    service = _service(client, BridgeTransport(), event_bus)

    service.clear_history()

    assert client.cleared is True
    assert len(event_bus.of_type(CONVERSATION_CLEARED)) == 1
