"""Resolution of the active composition and of layer references in action params."""
from typing import Any, Mapping, Optional, Tuple

from src.aehost.project_model import Composition, Layer, Project

NO_ACTIVE_COMP = "No active composition. Please select a composition."


def get_active_comp(project: Project) -> Tuple[Optional[Composition], Optional[str]]:
    comp = project.active_item
    if not isinstance(comp, Composition):
        return None, NO_ACTIVE_COMP
    return comp, None


def as_index(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def get_layer(comp: Composition, params: Mapping[str, Any]) -> Tuple[Optional[Layer], Optional[str]]:
    """
    Resolve ``layerIndex`` (1-based) or ``layerName``; with neither, the top layer.

    Returns:
        ``(layer, None)`` or ``(None, error message)``.
    """
    if params.get("layerIndex") is not None:
        raw_index = params["layerIndex"]
        index = as_index(raw_index)
        if index is None or not 1 <= index <= comp.num_layers:
            return None, f"Layer index out of range: {raw_index}"
        return comp.layer(index), None

    layer_name = params.get("layerName")
    if layer_name:
        for layer in comp.layers:
            if layer.name == layer_name:
                return layer, None
        return None, f"Layer not found: {layer_name}"

    layer = comp.layer(1)
    if layer is None:
        return None, "No layers in composition"
    return layer, None
