"""
Frozen catalog of the host actions the assistant is allowed to invoke.

The catalog is the single authorization boundary between model output and the
host bridge: an action name that is not listed here never reaches the bridge.
It must stay in lockstep with the host-side action registry, which
:meth:`ActionCatalog.verify_against` checks at startup.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

from src.aeai.models.action import ActionDescriptor, LayerType
from src.aeai.models.exceptions import UnauthorizedActionError

logger = logging.getLogger(__name__)

CATALOG_VERSION = "2026.1"

# name, category, layer type, flags ("c" needs an active comp, "l" targets an existing layer)
_CATALOG_ROWS: Tuple[Tuple[str, str, str, str], ...] = (
    # Camera
    ("addCamera", "camera", "none", "c"),
    ("setupDOF", "camera", "camera", "cl"),
    ("setCameraIris", "camera", "camera", "cl"),
    ("animateFocusRack", "camera", "camera", "cl"),
    ("focusOnLayer", "camera", "camera", "cl"),
    # Light
    ("addLightRig", "light", "none", "c"),
    ("setLightFalloff", "light", "light", "cl"),
    ("addEnvironmentLight", "light", "none", "c"),
    ("setupShadows", "light", "any", "c"),
    # Layer
    ("setup3DLayer", "layer", "any", "cl"),
    ("enableMotionBlur", "layer", "any", "c"),
    ("addShadowCatcher", "layer", "none", "c"),
    ("addNullController", "layer", "none", "c"),
    ("parentLayers", "layer", "any", "c"),
    ("unparentLayer", "layer", "any", "cl"),
    # Layer utilities
    ("duplicateLayer", "layer-utils", "any", "cl"),
    ("splitLayer", "layer-utils", "any", "cl"),
    ("timeRemapLayer", "layer-utils", "av", "cl"),
    ("timeStretchLayer", "layer-utils", "any", "cl"),
    ("setCollapseTransformations", "layer-utils", "av", "cl"),
    ("setLayerBlendingMode", "layer-utils", "visual", "cl"),
    ("setLayerQuality", "layer-utils", "any", "cl"),
    ("freezeFrame", "layer-utils", "av", "cl"),
    ("reverseLayer", "layer-utils", "av", "cl"),
    # Effects
    ("applyGlow", "effect", "effects", "cl"),
    ("applyBlur", "effect", "effects", "cl"),
    ("applyLumetri", "color", "effects", "cl"),
    ("applyVibrance", "color", "effects", "cl"),
    ("applyCurves", "color", "effects", "cl"),
    ("addEffect", "effect", "effects", "cl"),
    ("setEffectProperty", "effect", "effects", "cl"),
    ("applyBilateralBlur", "effect", "effects", "cl"),
    ("applyCompoundBlur", "effect", "av", "cl"),
    ("applyVectorBlur", "effect", "av", "cl"),
    # Import
    ("importAssets", "import", "none", ""),
    ("importWithDialog", "import", "none", ""),
    ("import3DModel", "import", "none", ""),
    ("listProjectItems", "import", "none", ""),
    # Composition
    ("createComp", "composition", "none", ""),
    ("getCompInfo", "composition", "none", "c"),
    ("getProjectInfo", "project", "none", ""),
    ("getRenderers", "composition", "none", ""),
    ("setupAdvanced3D", "composition", "none", "c"),
    # Text
    ("addTextLayer", "text", "none", "c"),
    ("updateText", "text", "text", "cl"),
    ("addTextAnimator", "text", "text", "cl"),
    ("addRangeSelector", "text", "text", "cl"),
    ("addWigglySelector", "text", "text", "cl"),
    ("setPerCharacter3D", "text", "text", "cl"),
    ("setTextTracking", "text", "text", "cl"),
    # Shape
    ("addShapeLayer", "shape", "none", "c"),
    ("addTrimPaths", "shape", "shape", "cl"),
    ("addRepeater", "shape", "shape", "cl"),
    ("addGradientFill", "shape", "shape", "cl"),
    ("addGradientStroke", "shape", "shape", "cl"),
    ("addMergePaths", "shape", "shape", "cl"),
    ("addOffsetPaths", "shape", "shape", "cl"),
    ("addRoundCorners", "shape", "shape", "cl"),
    ("addZigZag", "shape", "shape", "cl"),
    ("addPuckerBloat", "shape", "shape", "cl"),
    ("addTwist", "shape", "shape", "cl"),
    ("addWigglePath", "shape", "shape", "cl"),
    # Keying
    ("applyKeylight", "keying", "av", "cl"),
    ("applySpillSuppressor", "keying", "av", "cl"),
    ("applyKeyCleaner", "keying", "av", "cl"),
    ("applyKeyingPreset", "keying", "av", "cl"),
    # Time
    ("applyTimewarp", "time", "av", "cl"),
    ("applyPixelMotionBlur", "time", "av", "cl"),
    ("applyPosterizeTime", "time", "av", "cl"),
    # Distortion
    ("applyWarpStabilizer", "distortion", "av", "cl"),
    ("applyCornerPin", "distortion", "av", "cl"),
    ("applyDisplacementMap", "distortion", "av", "cl"),
    ("applyMeshWarp", "distortion", "av", "cl"),
    ("applyBezierWarp", "distortion", "av", "cl"),
    # Noise and grain
    ("applyFractalNoise", "noise", "av", "cl"),
    ("applyMatchGrain", "noise", "av", "cl"),
    ("applyAddGrain", "noise", "av", "cl"),
    # Generate
    ("applyGradientRamp", "generate", "effects", "cl"),
    ("applyFill", "generate", "effects", "cl"),
    ("apply4ColorGradient", "generate", "effects", "cl"),
    # Property
    ("setProperty", "property", "any", "cl"),
    ("getProperty", "property", "any", "cl"),
    ("addKeyframe", "property", "any", "cl"),
    ("animateProperty", "property", "any", "cl"),
    # Mask
    ("addMask", "mask", "visual", "cl"),
    ("setTrackMatte", "mask", "visual", "cl"),
    ("removeTrackMatte", "mask", "visual", "cl"),
    # Expression
    ("applyExpression", "expression", "any", "cl"),
    ("removeExpression", "expression", "any", "cl"),
    ("applyExpressionPreset", "expression", "any", "cl"),
    # Render
    ("addToRenderQueue", "render", "none", "c"),
    ("listRenderTemplates", "render", "none", ""),
    ("startRender", "render", "none", ""),
    ("captureFrame", "render", "none", "c"),
    ("captureFrameOptimized", "render", "none", "c"),
    ("setOutputModule", "render", "none", ""),
    ("batchRenderComps", "render", "none", ""),
    ("setRenderRegion", "render", "none", "c"),
    ("setRenderSettings", "render", "none", ""),
    ("getRenderStatus", "render", "none", ""),
    ("clearRenderQueue", "render", "none", ""),
    # Workflow
    ("animateCoin", "workflow", "any", "cl"),
    ("createCoinTransition", "workflow", "none", ""),
    ("positionFromAnalysis", "workflow", "any", "cl"),
    ("applyColorMatch", "workflow", "av", "cl"),
    # Tracking
    ("setup3DCameraTracker", "tracking", "av", "cl"),
    ("linkToTrackPoint", "tracking", "any", "c"),
    # Motion graphics templates
    ("exportMOGRT", "mogrt", "none", "c"),
    ("addToEssentialGraphics", "mogrt", "any", "c"),
    # Precomp
    ("precompose", "precomp", "any", "cl"),
    ("duplicateComp", "precomp", "none", "c"),
    ("openCompViewer", "precomp", "none", ""),
    ("replaceCompSource", "precomp", "av", "cl"),
    ("nestComp", "precomp", "none", "c"),
    # Footage
    ("replaceFootage", "footage", "none", ""),
    ("relinkFootage", "footage", "none", ""),
    ("interpretFootage", "footage", "none", ""),
    ("setProxy", "footage", "none", ""),
    ("collectFiles", "footage", "none", ""),
    ("removeUnused", "footage", "none", ""),
    ("findMissingFootage", "footage", "none", ""),
    # Markers
    ("addCompMarker", "marker", "none", "c"),
    ("addLayerMarker", "marker", "any", "cl"),
    ("getCompMarkers", "marker", "none", "c"),
    ("getLayerMarkers", "marker", "any", "cl"),
    ("removeMarker", "marker", "any", "c"),
    ("updateMarker", "marker", "any", "c"),
    ("addMarkersFromArray", "marker", "any", "c"),
    # Color management
    ("setProjectColorDepth", "color", "none", ""),
    ("setProjectWorkingSpace", "color", "none", ""),
    ("applyLUT", "color", "effects", "cl"),
    ("applyColorProfileConverter", "color", "effects", "cl"),
    ("setLinearizeWorkingSpace", "color", "none", ""),
    ("setCompensateForSceneReferredProfiles", "color", "none", ""),
    ("applyColorBalance", "color", "effects", "cl"),
    ("applyPhotoFilter", "color", "effects", "cl"),
    # Audio
    ("setAudioLevel", "audio", "audio", "cl"),
    ("fadeAudioIn", "audio", "audio", "cl"),
    ("fadeAudioOut", "audio", "audio", "cl"),
    ("muteLayer", "audio", "audio", "cl"),
    ("soloAudio", "audio", "audio", "cl"),
    ("setAudioKeyframe", "audio", "audio", "cl"),
    ("getAudioInfo", "audio", "audio", "cl"),
    # Project
    ("getProjectSettings", "project", "none", ""),
    ("setProjectSettings", "project", "none", ""),
    ("saveProject", "project", "none", ""),
    ("closeProject", "project", "none", ""),
    ("createFolder", "project", "none", ""),
    ("organizeProjectItems", "project", "none", ""),
    ("getProjectReport", "project", "none", ""),
    ("reduceProject", "project", "none", ""),
    # Assistant helpers
    ("getLayerInfo", "assistant", "any", "cl"),
    ("getActionInfo", "assistant", "none", ""),
    ("listTemplates", "assistant", "none", ""),
    ("executeTemplate", "assistant", "none", "c"),
    ("getSuggestions", "assistant", "none", ""),
    ("getCategories", "assistant", "none", ""),
    # Diagnostics
    ("testScript", "test", "none", ""),
)

_MANUAL_STEPS: Dict[str, str] = {
    "applyMatchGrain": 'Click "Take Sample" in Effect Controls',
    "applyWarpStabilizer": 'Click "Analyze" in Effect Controls',
    "setup3DCameraTracker": 'Click "Analyze" in Effect Controls, then create Track Null or Camera',
}

_PARAMETER_SHAPES: Dict[str, Dict[str, str]] = {
    "createComp": {
        "name": "string", "width": "number", "height": "number",
        "duration": "number", "frameRate": "number", "renderer": "string",
    },
    "setupAdvanced3D": {},
    "import3DModel": {"path": "string", "addToComp": "boolean"},
    "setup3DLayer": {
        "layerIndex": "number", "position": "number[3]", "scale": "number[3]",
        "rotation": "number[3]", "material": "{castsShadows, acceptsLights, specular, metal}",
    },
    "addCamera": {
        "name": "string", "focalLength": "number", "position": "number[3]",
        "enableDOF": "boolean", "focusDistance": "number", "aperture": "number",
    },
    "addLightRig": {"keyLight": "light", "fillLight": "light", "rimLight": "light", "ambient": "light"},
    "animateCoin": {
        "layerIndex": "number", "startTime": "number", "duration": "number",
        "startScale": "number[3]", "endScale": "number[3]", "rotations": "number",
        "wobble": "boolean", "easing": "string",
    },
    "enableMotionBlur": {"all3D": "boolean", "shutterAngle": "number"},
    "setupDOF": {"focusDistance": "number", "aperture": "number", "blurLevel": "number"},
    "applyColorMatch": {
        "layerIndex": "number", "inputBlack": "number", "inputWhite": "number",
        "gamma": "number", "temperature": "number", "exposure": "number",
    },
    "captureFrame": {"time": "number", "outputFolder": "string"},
    "captureFrameOptimized": {"time": "number", "maxWidth": "number", "maxHeight": "number", "format": "string"},
    "setup3DCameraTracker": {"layerIndex": "number"},
    "linkToTrackPoint": {"coinLayerIndex": "number"},
    "createCoinTransition": {
        "footageName": "string", "modelPath": "string", "compName": "string",
        "coinPosition": "number[2]", "startScale": "number[3]", "endScale": "number[3]",
        "rotations": "number", "enableDOF": "boolean",
    },
    "addShadowCatcher": {"name": "string", "position": "number[3]", "rotationX": "number", "scale": "number[3]"},
    "positionFromAnalysis": {"layerIndex": "number", "analysis": "object", "baseScale": "number", "zDepth": "number"},
    "addCompMarker": {
        "time": "number", "comment": "string", "chapter": "string", "url": "string",
        "frameTarget": "string", "cuePointName": "string", "duration": "number", "label": "number",
    },
    "addLayerMarker": {
        "layerIndex": "number", "time": "number", "comment": "string",
        "duration": "number", "label": "number",
    },
    "getCompMarkers": {},
    "getLayerMarkers": {"layerIndex": "number"},
    "removeMarker": {"target": "'comp'|'layer'", "layerIndex": "number", "markerIndex": "number", "time": "number"},
    "updateMarker": {
        "target": "'comp'|'layer'", "layerIndex": "number", "markerIndex": "number",
        "comment": "string", "chapter": "string", "url": "string", "duration": "number",
    },
    "addMarkersFromArray": {"markers": "[{time, comment, duration}]"},
    "getCompInfo": {},
    "getLayerInfo": {"layerIndex": "number", "layerName": "string"},
    "getActionInfo": {"action": "string"},
    "testScript": {},
}


def _build_descriptors() -> Mapping[str, ActionDescriptor]:
    descriptors: Dict[str, ActionDescriptor] = {}
    for name, category, layer_type, flags in _CATALOG_ROWS:
        if name in descriptors:
            raise ValueError(f"Duplicate action in catalog: {name}")
        descriptors[name] = ActionDescriptor(
            name=name,
            category=category,
            parameter_shape=_PARAMETER_SHAPES.get(name, {}),
            layer_type=LayerType(layer_type),
            requires_existing_layer="l" in flags,
            requires_composition="c" in flags,
            manual_step=_MANUAL_STEPS.get(name),
        )
    return MappingProxyType(descriptors)


@dataclass(frozen=True)
class CatalogConsistencyReport:
    """Result of comparing the catalog with a host registry's action names."""

    catalog_count: int
    registry_count: int
    missing_from_registry: Tuple[str, ...] = field(default_factory=tuple)
    missing_from_catalog: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_consistent(self) -> bool:
        return (
            self.catalog_count == self.registry_count
            and not self.missing_from_registry
            and not self.missing_from_catalog
        )

    def describe(self) -> str:
        if self.is_consistent:
            return f"Catalog and host registry agree on {self.catalog_count} actions."
        parts = [f"catalog={self.catalog_count}", f"registry={self.registry_count}"]
        if self.missing_from_registry:
            parts.append("unreachable in host: " + ", ".join(self.missing_from_registry))
        if self.missing_from_catalog:
            parts.append("not authorized: " + ", ".join(self.missing_from_catalog))
        return "Catalog drift detected (" + "; ".join(parts) + ")"


class ActionCatalog:
    """
    Read-only view over the authorized actions.

    Authorization is a pure membership test on the action name; parameter
    validation belongs to the host-side action registry.
    """

    def __init__(self, descriptors: Optional[Mapping[str, ActionDescriptor]] = None) -> None:
        source = descriptors if descriptors is not None else _DEFAULT_DESCRIPTORS
        self._descriptors: Mapping[str, ActionDescriptor] = MappingProxyType(dict(source))
        self._names: FrozenSet[str] = frozenset(self._descriptors)
        self.version = CATALOG_VERSION

    def is_authorized(self, name: object) -> bool:
        return isinstance(name, str) and name in self._names

    def describe(self, name: str) -> Optional[ActionDescriptor]:
        return self._descriptors.get(name)

    def authorize(self, name: str) -> ActionDescriptor:
        """
        Return the descriptor for ``name``.

        Raises:
            UnauthorizedActionError: If the action is not in the catalog.
        """
        descriptor = self._descriptors.get(name) if isinstance(name, str) else None
        if descriptor is None:
            logger.warning("Blocked action outside the catalog: %r", name)
            raise UnauthorizedActionError(str(name))
        return descriptor

    def names(self) -> FrozenSet[str]:
        return self._names

    def categories(self) -> List[str]:
        seen: Dict[str, None] = {}
        for descriptor in self._descriptors.values():
            seen.setdefault(descriptor.category, None)
        return list(seen)

    def by_category(self, category: str) -> List[ActionDescriptor]:
        return [d for d in self._descriptors.values() if d.category == category]

    def verify_against(self, registered_names: Iterable[str]) -> CatalogConsistencyReport:
        """Compare the catalog with the host registry (count and set equality)."""
        registered = list(registered_names)
        registered_set = set(registered)
        report = CatalogConsistencyReport(
            catalog_count=len(self._names),
            registry_count=len(registered),
            missing_from_registry=tuple(sorted(self._names - registered_set)),
            missing_from_catalog=tuple(sorted(registered_set - self._names)),
        )
        if report.is_consistent:
            logger.info(report.describe())
        else:
            logger.error(report.describe())
        return report

    def __contains__(self, name: object) -> bool:
        return self.is_authorized(name)

    def __len__(self) -> int:
        return len(self._names)


_DEFAULT_DESCRIPTORS = _build_descriptors()
