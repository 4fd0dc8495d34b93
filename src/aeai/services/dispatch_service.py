"""
Dispatch loop: one user turn from chat text to host action and back.

A turn refreshes the project snapshot, asks the model, shows the reply, and
when the reply embeds a command, authorizes it against the catalog and sends
it over the bridge. Every status line is returned in the TurnOutcome and
published on the event bus as a SYSTEM_MESSAGE.
"""
import base64
import json
import logging
import mimetypes
import os
from typing import Any, Dict, Optional

from src.aeai.config import HOST_SNAPSHOT_SCRIPT
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
from src.aeai.models.events import Event
from src.aeai.models.exceptions import UnauthorizedActionError
from src.aeai.models.project_snapshot import ProjectSnapshot, snapshot_label
from src.aeai.models.result import BridgeResult, TurnOutcome
from src.aeai.services.action_catalog import ActionCatalog
from src.aeai.services.bridge_transport import BridgeTransport
from src.aeai.services.command_extractor import CommandExtractor
from src.aeai.services.conversation_client import ConversationClient

logger = logging.getLogger(__name__)

FRAME_CAPTURE_PARAMS = {"maxWidth": 1280, "maxHeight": 720, "format": "jpg"}


class DispatchService:
    """Sequences conversation, extraction, authorization and bridge calls for each turn."""

    def __init__(
        self,
        client: ConversationClient,
        catalog: ActionCatalog,
        bridge: BridgeTransport,
        *,
        extractor: Optional[CommandExtractor] = None,
        event_bus: Optional[Any] = None,
    ) -> None:
        self.client = client
        self.catalog = catalog
        self.bridge = bridge
        self.extractor = extractor or CommandExtractor()
        self.event_bus = event_bus
        self.snapshot: Optional[ProjectSnapshot] = None

    # ------------------- Turns -------------------
    async def handle_user_message(self, text: str) -> TurnOutcome:
        outcome = TurnOutcome(user_message=text)
        self._dispatch_event(USER_MESSAGE_SENT, {"text": text})

        await self.refresh_snapshot()

        reply = await self.client.converse(text)
        if not reply.success:
            outcome.error = reply.error
            self._system(outcome, "ERROR", f"Error: {reply.error}")
            return self._finish(outcome)

        outcome.assistant_message = reply.content
        self._dispatch_event(ASSISTANT_MESSAGE, {"content": reply.content, "usage": reply.usage})

        command = self.extractor.extract(reply.content)
        if command is None:
            return self._finish(outcome)

        outcome.command = command
        outcome.result = await self._run_command(command, outcome)
        await self.refresh_snapshot()
        outcome.snapshot = self.snapshot
        return self._finish(outcome)

    async def dispatch_command(self, command: ActionCommand) -> BridgeResult:
        """Authorize and run a command that did not come from a model reply (quick actions)."""
        return await self._run_command(command, None)

    async def _run_command(self, command: ActionCommand, outcome: Optional[TurnOutcome]) -> BridgeResult:
        if command.explanation:
            self._system(outcome, "SYSTEM", f"⚡ {command.explanation}")

        try:
            self.catalog.authorize(command.action)
        except UnauthorizedActionError as exc:
            result = BridgeResult.failure(str(exc))
            self._dispatch_event(ACTION_BLOCKED, {"action": command.action, "error": str(exc)})
            self._system(outcome, "ERROR", f"Action failed: {exc}")
            return result

        self._dispatch_event(ACTION_DISPATCHED, {"action": command.action, "params": command.params})
        if self.bridge.simulated:
            self._system(outcome, "SYSTEM", f"[Simulation] {command.action}")

        result = await self.bridge.call(command.action, command.params)
        self._dispatch_event(
            ACTION_COMPLETED,
            {"action": command.action, "success": result.success, "result": result.to_envelope()},
        )

        if result.success:
            self._report_success(command, result, outcome)
        else:
            self._system(outcome, "ERROR", f"Action failed: {result.error or 'Unknown error'}")
        return result

    def _report_success(
        self, command: ActionCommand, result: BridgeResult, outcome: Optional[TurnOutcome]
    ) -> None:
        self._system(outcome, "SUCCESS", "✓ Action completed")

        if command.manual_steps:
            steps = "\n".join(f"{number}. {step}" for number, step in enumerate(command.manual_steps, start=1))
            self._system(outcome, "SYSTEM", f"📋 Manual steps:\n{steps}")

        manual_step = result.data.get("manualStep")
        if manual_step:
            self._system(outcome, "WARNING", f"⚠️ Manual step: {manual_step}")
        for warning in result.data.get("warnings") or []:
            if warning != manual_step:
                self._system(outcome, "WARNING", f"⚠️ {warning}")

        if command.follow_up:
            self._system(outcome, "SYSTEM", f"💡 Next: {command.follow_up[0]}")

    # ------------------- Snapshot -------------------
    async def refresh_snapshot(self) -> Optional[ProjectSnapshot]:
        """Replace the snapshot from a read-only ``getCompInfo()`` query."""
        snapshot = None
        if not self.bridge.simulated:
            raw = await self.bridge.evaluate(HOST_SNAPSHOT_SCRIPT)
            try:
                info = json.loads(raw) if raw else None
            except json.JSONDecodeError:
                logger.debug("Snapshot query returned non-JSON: %r", raw)
                info = None
            snapshot = ProjectSnapshot.from_comp_info(info)

        self.snapshot = snapshot
        self._dispatch_event(
            PROJECT_SNAPSHOT_UPDATED,
            {"snapshot": snapshot.model_dump() if snapshot else None, "label": snapshot_label(snapshot)},
        )
        return snapshot

    # ------------------- Frame analysis -------------------
    async def analyze_current_frame(self, analysis_type: str = "full") -> ChatResult:
        """Capture the current frame through the bridge and describe it with the vision model."""
        self._system(None, "SYSTEM", "📸 Capturing frame (optimized)...")

        capture = await self.dispatch_command(
            ActionCommand(action="captureFrameOptimized", params=dict(FRAME_CAPTURE_PARAMS))
        )
        if not capture.success:
            error = f"Capture failed: {capture.error}"
            self._system(None, "ERROR", error)
            return ChatResult(success=False, error=error)
        if capture.data.get("simulated"):
            error = "Frame analysis needs a connected host."
            self._system(None, "WARNING", error)
            return ChatResult(success=False, error=error)

        data = capture.data
        size_info = f"{data.get('width')}×{data.get('height')}"
        original = data.get("originalSize")
        if data.get("downscaled") and original:
            size_info += f" (from {original[0]}×{original[1]})"
        self._system(None, "SYSTEM", f"Frame: {size_info}")

        frame_path = data.get("framePath")
        try:
            return await self.analyze_frame_file(frame_path, analysis_type)
        finally:
            if frame_path:
                try:
                    os.remove(frame_path)
                except OSError:
                    logger.debug("Could not remove captured frame %s", frame_path)

    async def analyze_frame_file(self, path: str, analysis_type: str = "full") -> ChatResult:
        """Send an image file to the vision model. The result is display-only."""
        try:
            with open(path, "rb") as handle:
                encoded = base64.b64encode(handle.read()).decode("ascii")
        except (OSError, TypeError) as exc:
            error = f"File read error: {exc}"
            self._system(None, "ERROR", error)
            return ChatResult(success=False, error=error)

        mime_type = mimetypes.guess_type(path)[0] or "image/png"
        self._system(None, "SYSTEM", "🔍 Analyzing with AI...")
        result = await self.client.analyze_frame(encoded, analysis_type, mime_type=mime_type)
        if result.success:
            self._dispatch_event(ASSISTANT_MESSAGE, {"content": result.content, "usage": result.usage})
        else:
            self._system(None, "ERROR", f"Analysis failed: {result.error}")
        return result

    def clear_history(self) -> None:
        self.client.clear_history()
        self._dispatch_event(CONVERSATION_CLEARED, {})

    # ------------------- Helpers -------------------
    def _system(self, outcome: Optional[TurnOutcome], category: str, message: str) -> None:
        if outcome is not None:
            outcome.system_messages.append(message)
        self._dispatch_event(SYSTEM_MESSAGE, {"category": category, "message": message})

    def _finish(self, outcome: TurnOutcome) -> TurnOutcome:
        self._dispatch_event(TURN_COMPLETED, {"outcome": outcome.model_dump(by_alias=True)})
        return outcome

    def _dispatch_event(self, event_type: str, payload: Dict[str, Any]) -> None:
        if self.event_bus is None:
            return
        self.event_bus.dispatch(Event(event_type=event_type, payload=payload))
