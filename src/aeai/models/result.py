from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from src.aeai.models.action import ActionCommand
from src.aeai.models.project_snapshot import ProjectSnapshot


class BridgeCall(BaseModel):
    """Outbound request to the host: an action name and one opaque JSON string."""

    action: str
    params_json: str


class BridgeResult(BaseModel):
    """Decoded host envelope.

    Attributes:
        success: Whether the host reported success.
        data: Every envelope key other than ``success`` and ``error``.
        error: Failure description when ``success`` is False.
    """

    success: bool
    data: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None

    @classmethod
    def from_envelope(cls, envelope: Dict[str, Any]) -> "BridgeResult":
        data = {key: value for key, value in envelope.items() if key not in ("success", "error")}
        error = envelope.get("error")
        success = envelope.get("success")
        if success is None:
            # Envelopes without a success flag only come from host-side crashes.
            success = error is None
        return cls(
            success=bool(success),
            data=data,
            error=None if error is None else str(error),
        )

    @classmethod
    def failure(cls, error: str, **data: Any) -> "BridgeResult":
        return cls(success=False, error=error, data=data)

    def to_envelope(self) -> Dict[str, Any]:
        envelope: Dict[str, Any] = {"success": self.success}
        envelope.update(self.data)
        if self.error is not None:
            envelope["error"] = self.error
        return envelope


class TurnOutcome(BaseModel):
    """Summary of one handled user turn, published when the turn ends."""

    user_message: str
    assistant_message: Optional[str] = None
    command: Optional[ActionCommand] = None
    result: Optional[BridgeResult] = None
    system_messages: List[str] = Field(default_factory=list)
    error: Optional[str] = None
    snapshot: Optional[ProjectSnapshot] = None

    @property
    def dispatched(self) -> bool:
        return self.result is not None
