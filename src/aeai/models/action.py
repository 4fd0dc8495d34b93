from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator


class LayerType(str, Enum):
    """Kind of layer an action operates on."""

    NONE = "none"
    ANY = "any"
    AV = "av"
    TEXT = "text"
    SHAPE = "shape"
    CAMERA = "camera"
    LIGHT = "light"
    AUDIO = "audio"
    EFFECTS = "effects"
    VISUAL = "visual"


class ActionCommand(BaseModel):
    """Structured command pulled out of an assistant reply.

    Attributes:
        action: Name of the host action to run.
        params: Parameters forwarded verbatim to the host.
        explanation: Optional one-line description shown before running.
        manual_steps: Steps the operator has to perform by hand afterwards.
        follow_up: Suggested next requests.
    """

    model_config = ConfigDict(populate_by_name=True)

    action: StrictStr
    params: Dict[str, Any] = Field(default_factory=dict)
    explanation: Optional[str] = None
    manual_steps: List[str] = Field(default_factory=list, alias="manualSteps")
    follow_up: List[str] = Field(default_factory=list, alias="followUp")

    @field_validator("params", mode="before")
    @classmethod
    def _default_params(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("manual_steps", "follow_up", mode="before")
    @classmethod
    def _coerce_steps(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        if isinstance(value, list):
            return [str(item) for item in value]
        return value

    @field_validator("explanation", mode="before")
    @classmethod
    def _coerce_explanation(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        return str(value)


class ActionDescriptor(BaseModel):
    """Catalog entry describing one authorized host action.

    Attributes:
        name: Unique action name, the authorization key.
        category: Grouping used in prompts and listings.
        parameter_shape: Parameter name to a short type description.
        layer_type: Layer kind the host validates against.
        requires_existing_layer: Whether the action targets a layer that must already exist.
        requires_composition: Whether an active composition is needed.
        manual_step: Follow-up the operator must perform in the host UI.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    category: str
    parameter_shape: Dict[str, str] = Field(default_factory=dict)
    layer_type: LayerType = LayerType.NONE
    requires_existing_layer: bool = False
    requires_composition: bool = True
    manual_step: Optional[str] = None

    def shape_summary(self) -> str:
        if not self.parameter_shape:
            return "{}"
        return "{ " + ", ".join(self.parameter_shape.keys()) + " }"
