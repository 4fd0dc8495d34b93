from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class LayerSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    index: int
    name: str
    type: str
    enabled: bool = True
    is_3d: Optional[bool] = None


class ProjectSnapshot(BaseModel):
    """
    Read-only summary of the active composition, replaced wholesale after
    every turn and never mutated in place.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    width: int
    height: int
    duration: Optional[float] = None
    frame_rate: Optional[float] = None
    num_layers: Optional[int] = None
    renderer: Optional[str] = None
    layers: List[LayerSummary] = Field(default_factory=list)

    @classmethod
    def from_comp_info(cls, info: Optional[Dict[str, Any]]) -> Optional["ProjectSnapshot"]:
        """Build a snapshot from a ``getCompInfo()`` envelope, or None if there is no active comp."""
        if not isinstance(info, dict) or not info.get("name"):
            return None
        if info.get("success") is False:
            return None
        layers = []
        for layer in info.get("layers") or []:
            if not isinstance(layer, dict):
                continue
            layers.append(
                LayerSummary(
                    index=int(layer.get("index", 0)),
                    name=str(layer.get("name", "")),
                    type=str(layer.get("type", "unknown")),
                    enabled=bool(layer.get("enabled", True)),
                    is_3d=layer.get("is3D"),
                )
            )
        try:
            return cls(
                name=str(info["name"]),
                width=int(info.get("width") or 0),
                height=int(info.get("height") or 0),
                duration=info.get("duration"),
                frame_rate=info.get("frameRate"),
                num_layers=info.get("numLayers"),
                renderer=info.get("renderer"),
                layers=layers,
            )
        except (TypeError, ValueError):
            return None

    @property
    def label(self) -> str:
        return f"{self.name} · {self.width}×{self.height}"


def snapshot_label(snapshot: Optional[ProjectSnapshot]) -> str:
    return snapshot.label if snapshot else "No Comp"
