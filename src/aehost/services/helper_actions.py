"""Diagnostic and assistant helper actions that introspect the registry itself."""
import datetime
from typing import Any, Dict, List, Optional

from src.aehost.action_registry import ActionRegistry
from src.aehost.lookups import get_active_comp, get_layer
from src.aehost.results import ActionResult, error, success

# Common next steps after an action.
FOLLOW_UPS = {
    "createComp": ["importAssets", "addTextLayer", "addShapeLayer", "addCamera"],
    "importAssets": ["createComp", "interpretFootage"],
    "addTextLayer": ["addTextAnimator", "animateProperty", "applyGlow"],
    "addShapeLayer": ["addTrimPaths", "addRepeater", "addGradientFill"],
    "addCamera": ["setupDOF", "addLightRig", "animateFocusRack"],
    "addLightRig": ["setupShadows", "addShadowCatcher"],
    "addCompMarker": ["getCompMarkers", "addLayerMarker"],
    "applyKeyingPreset": ["applySpillSuppressor", "applyKeyCleaner"],
    "applyLumetri": ["applyCurves", "applyVibrance", "applyAddGrain"],
    "setup3DCameraTracker": ["linkToTrackPoint"],
    "addToRenderQueue": ["setOutputModule", "setRenderSettings", "startRender"],
}

# Most useful actions per layer type.
PRIORITY_ACTIONS = {
    "text": ["addTextAnimator", "animateProperty", "applyGlow"],
    "shape": ["addTrimPaths", "addRepeater", "addRoundCorners"],
    "av": ["applyLumetri", "applyBlur", "animateProperty"],
    "camera": ["setupDOF", "animateFocusRack", "focusOnLayer"],
    "light": ["setLightFalloff"],
    "null": ["parentLayers", "animateProperty", "applyExpression"],
    "3dmodel": ["precompose", "setup3DLayer", "addLightRig"],
}


def suggest_next(last_action: Optional[str], layer_type: Optional[str]) -> List[str]:
    suggestions = list(FOLLOW_UPS.get(last_action or "", []))
    if layer_type in ("solid", "precomp"):
        layer_type = "av"
    for action in PRIORITY_ACTIONS.get(layer_type or "", []):
        if action not in suggestions:
            suggestions.append(action)
    return suggestions


class HelperActions:
    def __init__(self, registry: ActionRegistry) -> None:
        self.registry = registry

    @property
    def project(self):
        return self.registry.project

    def actions(self):
        return {
            "testScript": (self.test_script, None),
            "getLayerInfo": (self.get_layer_info, None),
            "getActionInfo": (self.get_action_info, None),
            "getSuggestions": (self.get_suggestions, None),
            "getCategories": (self.get_categories, None),
        }

    def test_script(self, params: Dict[str, Any]) -> ActionResult:
        return success(
            message="Modular script is working",
            timestamp=datetime.datetime.now().isoformat(timespec="seconds"),
            registeredActions=len(self.registry.list()),
        )

    def get_layer_info(self, params: Dict[str, Any]) -> ActionResult:
        comp, comp_error = get_active_comp(self.project)
        if comp_error:
            return error(comp_error)
        layer, layer_error = get_layer(comp, params)
        if layer_error:
            return error(layer_error)

        caps = layer.capabilities()
        return success(
            name=layer.name,
            index=layer.index,
            capabilities=caps,
            compatibleActions=self.registry.get_compatible_actions(caps["type"]),
            suggestedActions=suggest_next(None, caps["type"]),
        )

    def get_action_info(self, params: Dict[str, Any]) -> ActionResult:
        action_name = params.get("action") or params.get("actionName")
        if not action_name:
            return error("action parameter required")

        meta = self.registry.get_meta(action_name)
        if meta is None:
            return error(f"Unknown action: {action_name}")
        return success(action=action_name, **meta.to_dict())

    def get_suggestions(self, params: Dict[str, Any]) -> ActionResult:
        layer_type = params.get("layerType")
        if not layer_type and (params.get("layerIndex") or params.get("layerName")):
            comp, comp_error = get_active_comp(self.project)
            if not comp_error:
                layer, layer_error = get_layer(comp, params)
                if not layer_error:
                    layer_type = layer.layer_type
        return success(suggestions=suggest_next(params.get("lastAction"), layer_type))

    def get_categories(self, params: Dict[str, Any]) -> ActionResult:
        categories = {
            category: self.registry.get_by_category(category) for category in self.registry.get_categories()
        }
        return success(categories=categories)
