"""
Frame capture for the in-memory host.

Renders a flat preview of the active composition (one band per enabled
layer over a neutral background) to an image file with Qt's raster engine.
"""
import logging
import os
import tempfile
import time as _time
from typing import Any, Dict, Tuple

from PySide6.QtGui import QColor, QImage, QPainter

from src.aehost.lookups import get_active_comp
from src.aehost.project_model import Composition, Project
from src.aehost.results import ActionResult, error, success

logger = logging.getLogger(__name__)

_BACKGROUND = QColor(24, 26, 31)
_LAYER_COLORS = {
    "av": QColor(70, 110, 160),
    "solid": QColor(120, 120, 120),
    "precomp": QColor(150, 100, 170),
    "text": QColor(220, 200, 90),
    "shape": QColor(90, 180, 120),
    "3dmodel": QColor(200, 150, 60),
}
_FORMATS = {"jpg": "JPG", "jpeg": "JPG", "png": "PNG"}


def fit_within(width: int, height: int, max_width: int, max_height: int) -> Tuple[int, int, bool]:
    """Scale ``width`` x ``height`` down to fit the bounds. Returns ``(w, h, downscaled)``."""
    if width <= max_width and height <= max_height:
        return width, height, False
    scale = min(max_width / width, max_height / height)
    return round(width * scale), round(height * scale), True


class RenderService:
    def __init__(self, project: Project) -> None:
        self.project = project

    def actions(self):
        schema = {
            "time": {"type": "number"},
            "maxWidth": {"type": "number"},
            "maxHeight": {"type": "number"},
            "format": {"type": "string"},
        }
        return {
            "captureFrame": (self.capture_frame, {"time": {"type": "number"}, "outputFolder": {"type": "string"}}),
            "captureFrameOptimized": (self.capture_frame_optimized, schema),
        }

    def capture_frame(self, params: Dict[str, Any]) -> ActionResult:
        options = dict(params)
        options["downscale"] = False
        options.setdefault("format", "png")
        return self.capture_frame_optimized(options)

    def capture_frame_optimized(self, params: Dict[str, Any]) -> ActionResult:
        comp, comp_error = get_active_comp(self.project)
        if comp_error:
            return error(comp_error)

        current_time = params["time"] if params.get("time") is not None else comp.time
        image_format = _FORMATS.get(str(params.get("format") or "jpg").lower())
        if image_format is None:
            return error(f"Unsupported frame format: {params.get('format')}")

        width, height, downscaled = comp.width, comp.height, False
        if params.get("downscale") is not False:
            width, height, downscaled = fit_within(
                comp.width, comp.height, params.get("maxWidth") or 1280, params.get("maxHeight") or 720
            )

        extension = "png" if image_format == "PNG" else "jpg"
        output_folder = params.get("outputFolder") or tempfile.gettempdir()
        file_name = params.get("fileName") or f"ae_frame_{int(_time.time() * 1000)}.{extension}"
        output_path = os.path.join(output_folder, file_name)

        try:
            image = self._render(comp, width, height)
            if not image.save(output_path, image_format):
                return error("Frame capture failed", attemptedPath=output_path)
        except Exception as exc:  # noqa: BLE001 - host failures become result envelopes
            return error(f"Frame capture failed: {exc}")

        logger.debug("Captured '%s' at %ss to %s", comp.name, current_time, output_path)
        return success(
            framePath=output_path,
            time=current_time,
            width=width,
            height=height,
            originalSize=[comp.width, comp.height],
            downscaled=downscaled,
        )

    @staticmethod
    def _render(comp: Composition, width: int, height: int) -> QImage:
        image = QImage(width, height, QImage.Format.Format_RGB32)
        image.fill(_BACKGROUND)
        visible = [layer for layer in comp.layers if layer.enabled and layer.layer_type in _LAYER_COLORS]
        if visible:
            painter = QPainter(image)
            try:
                band = max(1, height // (len(visible) + 1))
                # Bottom layer first so the top layer is painted last.
                for position, layer in enumerate(reversed(visible)):
                    top = band // 2 + position * band
                    painter.fillRect(width // 8, top, width * 3 // 4, band // 2, _LAYER_COLORS[layer.layer_type])
            finally:
                painter.end()
        return image
