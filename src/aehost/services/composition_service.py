"""Composition and project queries, composition creation and renderer setup."""
import logging
from typing import Any, Dict

from src.aehost.lookups import get_active_comp
from src.aehost.project_model import RENDERERS, Composition, Project
from src.aehost.results import ActionResult, error, success

logger = logging.getLogger(__name__)

ADVANCED_3D_RENDERER = "ADBE Advanced 3d"
# Display names the host reports for the renderer match names.
_RENDERER_DISPLAY_NAMES = {
    "ADBE Advanced 3d": "Advanced 3D",
    "ADBE Standard 3D": "Classic 3D",
    "ADBE Ernst": "Cinema 4D",
}
_PROJECT_ITEM_LIMIT = 50


def comp_details(comp: Composition) -> Dict[str, Any]:
    layers = []
    for layer in comp.layers:
        layers.append(
            {
                "index": layer.index,
                "name": layer.name,
                "type": layer.layer_type,
                "enabled": layer.enabled,
                "is3D": layer.three_d,
            }
        )
    return {
        "name": comp.name,
        "width": comp.width,
        "height": comp.height,
        "duration": comp.duration,
        "frameRate": comp.frame_rate,
        "numLayers": comp.num_layers,
        "renderer": comp.renderer,
        "layers": layers,
    }


class CompositionService:
    def __init__(self, project: Project) -> None:
        self.project = project

    def actions(self):
        return {
            "createComp": (
                self.create_comp,
                {
                    "name": {"type": "string"},
                    "width": {"type": "number"},
                    "height": {"type": "number"},
                    "duration": {"type": "number"},
                    "frameRate": {"type": "number"},
                    "renderer": {"type": "string"},
                },
            ),
            "getCompInfo": (self.get_comp_info, None),
            "getProjectInfo": (self.get_project_info, None),
            "getRenderers": (self.get_renderers, None),
            "setupAdvanced3D": (self.setup_advanced_3d, None),
        }

    def create_comp(self, params: Dict[str, Any]) -> ActionResult:
        name = params.get("name") or "AI Composition"
        width = params.get("width") or 1920
        height = params.get("height") or 1080
        duration = params.get("duration") or 10
        frame_rate = params.get("frameRate") or 30

        try:
            if width <= 0 or height <= 0 or duration <= 0 or frame_rate <= 0:
                raise ValueError("composition settings must be positive")
            comp = Composition(name=name, width=width, height=height, duration=duration, frame_rate=frame_rate)
            renderer = params.get("renderer")
            if renderer in RENDERERS:
                comp.renderer = renderer
            elif renderer:
                logger.debug("Renderer '%s' not available; keeping %s", renderer, comp.renderer)
            self.project.add_comp(comp)
            logger.info("Created composition '%s' (%sx%s)", name, width, height)
            return success(
                name=comp.name,
                width=comp.width,
                height=comp.height,
                duration=comp.duration,
                renderer=comp.renderer,
            )
        except Exception as exc:  # noqa: BLE001 - host failures become result envelopes
            return error(f"Failed to create composition: {exc}")

    def get_comp_info(self, params: Dict[str, Any] = None) -> ActionResult:
        comp, comp_error = get_active_comp(self.project)
        if comp_error:
            return error(comp_error)
        return success(**comp_details(comp))

    def get_project_info(self, params: Dict[str, Any] = None) -> ActionResult:
        try:
            project = self.project
            items = [
                {"name": item.name, "type": "Composition", "id": position}
                for position, item in enumerate(project.items[:_PROJECT_ITEM_LIMIT], start=1)
            ]
            active = project.active_item
            return success(
                projectName=project.file_name or "Untitled",
                projectPath=project.file_name,
                numItems=len(project.items),
                items=items,
                activeComp=comp_details(active) if isinstance(active, Composition) else None,
            )
        except Exception as exc:  # noqa: BLE001
            return error(f"Failed to get project info: {exc}")

    def get_renderers(self, params: Dict[str, Any] = None) -> ActionResult:
        comp, comp_error = get_active_comp(self.project)
        if comp_error:
            return error(comp_error)
        available = [_RENDERER_DISPLAY_NAMES[r] for r in RENDERERS]
        return success(
            current=comp.renderer,
            available=available,
            hasAdvanced3D="Advanced 3D" in available or "Cinema 4D" in available,
        )

    def setup_advanced_3d(self, params: Dict[str, Any] = None) -> ActionResult:
        comp, comp_error = get_active_comp(self.project)
        if comp_error:
            return error(comp_error)
        comp.renderer = ADVANCED_3D_RENDERER
        return success(renderer=_RENDERER_DISPLAY_NAMES[ADVANCED_3D_RENDERER])
