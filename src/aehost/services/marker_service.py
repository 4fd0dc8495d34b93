"""
Marker timeline actions for compositions and layers.

Every operation re-resolves its target on each call and validates marker
indices against the current key count, so a stale index fails explicitly
instead of touching the wrong marker.
"""
import logging
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from src.aehost.lookups import as_index, get_active_comp, get_layer
from src.aehost.project_model import MarkerProperty, MarkerValue, Project
from src.aehost.results import ActionResult, error, success

logger = logging.getLogger(__name__)

# Optional MarkerValue attributes, keyed by their parameter names.
_COMP_MARKER_FIELDS = {
    "chapter": "chapter",
    "url": "url",
    "frameTarget": "frame_target",
    "cuePointName": "cue_point_name",
    "duration": "duration",
    "label": "label",
}
_LAYER_MARKER_FIELDS = {"duration": "duration", "label": "label"}
_UPDATABLE_FIELDS = {"comment": "comment", "chapter": "chapter", "url": "url", "duration": "duration"}


def _apply_fields(marker: MarkerValue, params: Mapping[str, Any], fields: Mapping[str, str]) -> None:
    for param_name, attribute in fields.items():
        if params.get(param_name) is not None:
            setattr(marker, attribute, params[param_name])


class MarkerService:
    """Adds, lists, updates and removes markers on the active composition and its layers."""

    def __init__(self, project: Project) -> None:
        self.project = project

    def actions(self) -> Dict[str, Tuple[Callable[[Dict[str, Any]], ActionResult], Optional[Dict[str, Any]]]]:
        """Action name to ``(handler, parameter schema)`` for registration."""
        return {
            "addCompMarker": (self.add_comp_marker, {"time": {"type": "number"}, "comment": {"type": "string"}}),
            "addLayerMarker": (self.add_layer_marker, {"time": {"type": "number"}, "comment": {"type": "string"}}),
            "getCompMarkers": (self.get_comp_markers, None),
            "getLayerMarkers": (self.get_layer_markers, None),
            "removeMarker": (self.remove_marker, {"markerIndex": {"type": "number"}, "time": {"type": "number"}}),
            "updateMarker": (self.update_marker, {"markerIndex": {"type": "number"}}),
            "addMarkersFromArray": (self.add_markers_from_array, {"markers": {"type": "array"}}),
        }

    def _resolve_target(self, params: Mapping[str, Any]) -> Tuple[Optional[MarkerProperty], Optional[str]]:
        comp, comp_error = get_active_comp(self.project)
        if comp_error:
            return None, comp_error
        if params.get("target") == "layer":
            layer, layer_error = get_layer(comp, params)
            if layer_error:
                return None, layer_error
            return layer.marker, None
        return comp.marker_property, None

    def add_comp_marker(self, params: Dict[str, Any]) -> ActionResult:
        try:
            comp, comp_error = get_active_comp(self.project)
            if comp_error:
                return error(comp_error)

            time = params["time"] if params.get("time") is not None else comp.time
            comment = params.get("comment") or ""
            marker = MarkerValue(comment=comment)
            _apply_fields(marker, params, _COMP_MARKER_FIELDS)

            comp.marker_property.set_value_at_time(time, marker)
            logger.debug("Added comp marker at %s on '%s'", time, comp.name)
            return success(time=time, comment=comment)
        except Exception as exc:  # noqa: BLE001 - host failures become result envelopes
            return error(f"Failed to add comp marker: {exc}")

    def add_layer_marker(self, params: Dict[str, Any]) -> ActionResult:
        try:
            comp, comp_error = get_active_comp(self.project)
            if comp_error:
                return error(comp_error)
            layer, layer_error = get_layer(comp, {"layerIndex": params.get("layerIndex")})
            if layer_error:
                return error(layer_error)

            time = params["time"] if params.get("time") is not None else comp.time
            comment = params.get("comment") or ""
            marker = MarkerValue(comment=comment)
            _apply_fields(marker, params, _LAYER_MARKER_FIELDS)

            layer.marker.set_value_at_time(time, marker)
            return success(layer=params.get("layerIndex"), time=time, comment=comment)
        except Exception as exc:  # noqa: BLE001
            return error(f"Failed to add layer marker: {exc}")

    def get_comp_markers(self, params: Dict[str, Any]) -> ActionResult:
        try:
            comp, comp_error = get_active_comp(self.project)
            if comp_error:
                return error(comp_error)

            prop = comp.marker_property
            markers = []
            for index in range(1, prop.num_keys + 1):
                value = prop.key_value(index)
                markers.append(
                    {
                        "index": index,
                        "time": prop.key_time(index),
                        "comment": value.comment,
                        "chapter": value.chapter,
                        "duration": value.duration,
                    }
                )
            return success(markers=markers)
        except Exception as exc:  # noqa: BLE001
            return error(f"Failed to get comp markers: {exc}")

    def get_layer_markers(self, params: Dict[str, Any]) -> ActionResult:
        try:
            comp, comp_error = get_active_comp(self.project)
            if comp_error:
                return error(comp_error)
            layer, layer_error = get_layer(comp, {"layerIndex": params.get("layerIndex")})
            if layer_error:
                return error(layer_error)

            prop = layer.marker
            markers = [
                {"index": index, "time": prop.key_time(index), "comment": prop.key_value(index).comment}
                for index in range(1, prop.num_keys + 1)
            ]
            return success(markers=markers)
        except Exception as exc:  # noqa: BLE001
            return error(f"Failed to get layer markers: {exc}")

    def remove_marker(self, params: Dict[str, Any]) -> ActionResult:
        try:
            prop, target_error = self._resolve_target(params)
            if target_error:
                return error(target_error)

            if params.get("markerIndex") is not None:
                key_index = as_index(params["markerIndex"])
            elif params.get("time") is not None:
                if prop.num_keys == 0:
                    return error("Invalid marker index")
                key_index = prop.nearest_key_index(params["time"])
            else:
                return error("Must specify markerIndex or time")

            if key_index is None or not 1 <= key_index <= prop.num_keys:
                return error("Invalid marker index")

            prop.remove_key(key_index)
            return success(removed=key_index)
        except Exception as exc:  # noqa: BLE001
            return error(f"Failed to remove marker: {exc}")

    def update_marker(self, params: Dict[str, Any]) -> ActionResult:
        """Overlay the supplied fields on the existing marker and write back a full replacement."""
        try:
            prop, target_error = self._resolve_target(params)
            if target_error:
                return error(target_error)

            key_index = as_index(params.get("markerIndex"))
            if key_index is None or not 1 <= key_index <= prop.num_keys:
                return error("Invalid marker index")

            time = prop.key_time(key_index)
            existing = prop.key_value(key_index)
            replacement = MarkerValue(
                comment=existing.comment,
                chapter=existing.chapter,
                url=existing.url,
                frame_target=existing.frame_target,
                cue_point_name=existing.cue_point_name,
                duration=existing.duration,
                label=existing.label,
            )
            _apply_fields(replacement, params, _UPDATABLE_FIELDS)

            prop.set_value_at_time(time, replacement)
            return success(updated=key_index)
        except Exception as exc:  # noqa: BLE001
            return error(f"Failed to update marker: {exc}")

    def add_markers_from_array(self, params: Dict[str, Any]) -> ActionResult:
        """
        Bulk insert on the composition timeline. The first bad item aborts the
        batch; markers already written stay in the surrounding undo group.
        """
        try:
            comp, comp_error = get_active_comp(self.project)
            if comp_error:
                return error(comp_error)

            markers = params.get("markers")
            if not markers:
                return error("No markers provided")

            added_count = 0
            for position, item in enumerate(markers, start=1):
                if not isinstance(item, dict) or item.get("time") is None:
                    raise ValueError(f"marker {position} has no time")
                marker = MarkerValue(comment=item.get("comment") or "")
                _apply_fields(marker, item, _LAYER_MARKER_FIELDS)
                comp.marker_property.set_value_at_time(item["time"], marker)
                added_count += 1

            return success(addedCount=added_count)
        except Exception as exc:  # noqa: BLE001
            return error(f"Failed to add markers from array: {exc}")
