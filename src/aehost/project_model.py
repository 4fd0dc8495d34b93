"""
In-memory document model of a compositing project.

Stands in for the host application's object model: a project holds
compositions, compositions hold 1-based layers, and both compositions and
layers carry a marker property whose keys stay sorted by time.
"""
from __future__ import annotations

import copy
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

UNDO_LIMIT = 50

# Two keys closer than this are the same key.
TIME_TOLERANCE = 1e-6

AV_LAYER_TYPES = ("av", "solid", "precomp", "null", "3dmodel")
LAYER_TYPES = AV_LAYER_TYPES + ("text", "shape", "camera", "light")


@dataclass
class MarkerValue:
    comment: str = ""
    chapter: str = ""
    url: str = ""
    frame_target: str = ""
    cue_point_name: str = ""
    duration: float = 0.0
    label: int = 0


class MarkerProperty:
    """Time-keyed marker track. Key indices are 1-based and contiguous."""

    def __init__(self) -> None:
        self._keys: List[Tuple[float, MarkerValue]] = []

    @property
    def num_keys(self) -> int:
        return len(self._keys)

    def _check_index(self, index: int) -> None:
        if not isinstance(index, int) or isinstance(index, bool) or not 1 <= index <= len(self._keys):
            raise IndexError(f"Key index {index} out of range")

    def key_time(self, index: int) -> float:
        self._check_index(index)
        return self._keys[index - 1][0]

    def key_value(self, index: int) -> MarkerValue:
        self._check_index(index)
        return copy.copy(self._keys[index - 1][1])

    def set_value_at_time(self, time: float, value: MarkerValue) -> int:
        """Insert ``value`` at ``time``, replacing a key already at that time. Returns the key index."""
        time = float(time)
        if time < 0:
            raise ValueError(f"Marker time must not be negative: {time}")
        stored = copy.copy(value)
        for position, (key_time, _) in enumerate(self._keys):
            if abs(key_time - time) <= TIME_TOLERANCE:
                self._keys[position] = (key_time, stored)
                return position + 1
            if key_time > time:
                self._keys.insert(position, (time, stored))
                return position + 1
        self._keys.append((time, stored))
        return len(self._keys)

    def remove_key(self, index: int) -> None:
        self._check_index(index)
        del self._keys[index - 1]

    def nearest_key_index(self, time: float) -> int:
        if not self._keys:
            raise ValueError("Marker property has no keys")
        time = float(time)
        best = min(range(len(self._keys)), key=lambda i: (abs(self._keys[i][0] - time), i))
        return best + 1


@dataclass
class Layer:
    name: str
    layer_type: str = "av"
    enabled: bool = True
    three_d: bool = False
    has_audio: bool = False
    marker: MarkerProperty = field(default_factory=MarkerProperty)
    index: int = 0

    @property
    def supports_effects(self) -> bool:
        return self.layer_type not in ("camera", "light")

    @property
    def supports_masks(self) -> bool:
        return self.layer_type not in ("camera", "light")

    def capabilities(self) -> Dict[str, Any]:
        layer_type = self.layer_type
        return {
            "type": layer_type,
            "supportsEffects": self.supports_effects,
            "supportsMasks": self.supports_masks,
            "hasAudio": self.has_audio,
            "canTimeRemap": layer_type in ("av", "precomp"),
            "is3D": self.three_d,
            "allowsNoiseGrain": layer_type in ("av", "solid", "precomp"),
            "allowsKeying": layer_type in ("av", "precomp"),
            "allowsDistortion": layer_type in ("av", "solid", "precomp"),
            "allowsTimeEffects": layer_type in ("av", "precomp"),
            "allowsTextAnimators": layer_type == "text",
            "allowsShapeModifiers": layer_type == "shape",
        }


@dataclass
class Composition:
    name: str
    width: int = 1920
    height: int = 1080
    duration: float = 10.0
    frame_rate: float = 30.0
    renderer: str = "ADBE Advanced 3d"
    time: float = 0.0
    layers: List[Layer] = field(default_factory=list)
    marker_property: MarkerProperty = field(default_factory=MarkerProperty)

    @property
    def num_layers(self) -> int:
        return len(self.layers)

    def layer(self, index: int) -> Optional[Layer]:
        if 1 <= index <= len(self.layers):
            return self.layers[index - 1]
        return None

    def add_layer(self, layer: Layer) -> Layer:
        # New layers go on top, as in the host.
        self.layers.insert(0, layer)
        self._reindex()
        return layer

    def _reindex(self) -> None:
        for position, layer in enumerate(self.layers, start=1):
            layer.index = position


RENDERERS = ("ADBE Advanced 3d", "ADBE Standard 3D", "ADBE Ernst")


@dataclass
class _UndoEntry:
    name: str
    state: Tuple[List[Composition], Optional[int]]


class Project:
    """Project document: compositions, the active item and an undo stack."""

    def __init__(self, file_name: Optional[str] = None) -> None:
        self.file_name = file_name
        self.items: List[Composition] = []
        self.active_item: Optional[Composition] = None
        self._undo_stack: Deque[_UndoEntry] = deque(maxlen=UNDO_LIMIT)
        self._open_group: Optional[_UndoEntry] = None

    def add_comp(self, comp: Composition, *, activate: bool = True) -> Composition:
        self.items.append(comp)
        if activate:
            self.active_item = comp
        return comp

    # ---- Undo groups ----------------------------------------------------
    def _capture(self) -> Tuple[List[Composition], Optional[int]]:
        active_index = self.items.index(self.active_item) if self.active_item in self.items else None
        return copy.deepcopy(self.items), active_index

    def begin_undo_group(self, name: str) -> None:
        if self._open_group is not None:
            logger.debug("Undo group '%s' already open; nesting into it", self._open_group.name)
            return
        self._open_group = _UndoEntry(name=name, state=self._capture())

    def end_undo_group(self) -> None:
        if self._open_group is None:
            return
        self._undo_stack.append(self._open_group)
        self._open_group = None

    def undo(self) -> Optional[str]:
        """Restore the state captured before the most recent undo group. Returns its name."""
        if not self._undo_stack:
            return None
        entry = self._undo_stack.pop()
        items, active_index = entry.state
        self.items = items
        self.active_item = items[active_index] if active_index is not None else None
        return entry.name

    @property
    def undo_depth(self) -> int:
        return len(self._undo_stack)


def build_demo_project() -> Project:
    """Project used by the local host and the host server when no document is supplied."""
    project = Project(file_name="demo.aep")
    comp = Composition(name="Main Comp", width=1920, height=1080, duration=10.0, frame_rate=30.0)
    comp.add_layer(Layer(name="Background Plate", layer_type="av", has_audio=True))
    comp.add_layer(Layer(name="Coin", layer_type="3dmodel", three_d=True))
    comp.add_layer(Layer(name="Title", layer_type="text"))
    comp.add_layer(Layer(name="Main Camera", layer_type="camera", three_d=True))
    project.add_comp(comp)
    return project
