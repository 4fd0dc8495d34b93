"""
Host-side action registry.

Handlers are looked up by name, their parameters checked against an optional
schema, and layer-targeting actions are validated against the resolved
layer's capabilities before the handler runs. The metadata table below is the
host's own copy of the action list; the client catalog is compared with it
at startup.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from src.aehost.lookups import get_active_comp, get_layer
from src.aehost.project_model import Project
from src.aehost.results import ActionResult, error, validate_params

logger = logging.getLogger(__name__)

Handler = Callable[[Dict[str, Any]], ActionResult]

# name  category  required layer type  needs (comp / layer)
_META_TABLE = """
addCamera                                camera       none     comp
setupDOF                                 camera       camera   comp,layer
setCameraIris                            camera       camera   comp,layer
animateFocusRack                         camera       camera   comp,layer
focusOnLayer                             camera       camera   comp,layer
addLightRig                              light        none     comp
setLightFalloff                          light        light    comp,layer
addEnvironmentLight                      light        none     comp
setupShadows                             light        any      comp
setup3DLayer                             layer        any      comp,layer
enableMotionBlur                         layer        any      comp
addShadowCatcher                         layer        none     comp
addNullController                        layer        none     comp
parentLayers                             layer        any      comp
unparentLayer                            layer        any      comp,layer
duplicateLayer                           layer-utils  any      comp,layer
splitLayer                               layer-utils  any      comp,layer
timeRemapLayer                           layer-utils  av       comp,layer
timeStretchLayer                         layer-utils  any      comp,layer
setCollapseTransformations               layer-utils  av       comp,layer
setLayerBlendingMode                     layer-utils  visual   comp,layer
setLayerQuality                          layer-utils  any      comp,layer
freezeFrame                              layer-utils  av       comp,layer
reverseLayer                             layer-utils  av       comp,layer
applyGlow                                effect       effects  comp,layer
applyBlur                                effect       effects  comp,layer
applyLumetri                             color        effects  comp,layer
applyVibrance                            color        effects  comp,layer
applyCurves                              color        effects  comp,layer
addEffect                                effect       effects  comp,layer
setEffectProperty                        effect       effects  comp,layer
applyBilateralBlur                       effect       effects  comp,layer
applyCompoundBlur                        effect       av       comp,layer
applyVectorBlur                          effect       av       comp,layer
importAssets                             import       none     -
importWithDialog                         import       none     -
import3DModel                            import       none     -
listProjectItems                         import       none     -
createComp                               composition  none     -
getCompInfo                              composition  none     comp
getProjectInfo                           project      none     -
getRenderers                             composition  none     -
setupAdvanced3D                          composition  none     comp
addTextLayer                             text         none     comp
updateText                               text         text     comp,layer
addTextAnimator                          text         text     comp,layer
addRangeSelector                         text         text     comp,layer
addWigglySelector                        text         text     comp,layer
setPerCharacter3D                        text         text     comp,layer
setTextTracking                          text         text     comp,layer
addShapeLayer                            shape        none     comp
addTrimPaths                             shape        shape    comp,layer
addRepeater                              shape        shape    comp,layer
addGradientFill                          shape        shape    comp,layer
addGradientStroke                        shape        shape    comp,layer
addMergePaths                            shape        shape    comp,layer
addOffsetPaths                           shape        shape    comp,layer
addRoundCorners                          shape        shape    comp,layer
addZigZag                                shape        shape    comp,layer
addPuckerBloat                           shape        shape    comp,layer
addTwist                                 shape        shape    comp,layer
addWigglePath                            shape        shape    comp,layer
applyKeylight                            keying       av       comp,layer
applySpillSuppressor                     keying       av       comp,layer
applyKeyCleaner                          keying       av       comp,layer
applyKeyingPreset                        keying       av       comp,layer
applyTimewarp                            time         av       comp,layer
applyPixelMotionBlur                     time         av       comp,layer
applyPosterizeTime                       time         av       comp,layer
applyWarpStabilizer                      distortion   av       comp,layer
applyCornerPin                           distortion   av       comp,layer
applyDisplacementMap                     distortion   av       comp,layer
applyMeshWarp                            distortion   av       comp,layer
applyBezierWarp                          distortion   av       comp,layer
applyFractalNoise                        noise        av       comp,layer
applyMatchGrain                          noise        av       comp,layer
applyAddGrain                            noise        av       comp,layer
applyGradientRamp                        generate     effects  comp,layer
applyFill                                generate     effects  comp,layer
apply4ColorGradient                      generate     effects  comp,layer
setProperty                              property     any      comp,layer
getProperty                              property     any      comp,layer
addKeyframe                              property     any      comp,layer
animateProperty                          property     any      comp,layer
addMask                                  mask         visual   comp,layer
setTrackMatte                            mask         visual   comp,layer
removeTrackMatte                         mask         visual   comp,layer
applyExpression                          expression   any      comp,layer
removeExpression                         expression   any      comp,layer
applyExpressionPreset                    expression   any      comp,layer
addToRenderQueue                         render       none     comp
listRenderTemplates                      render       none     -
startRender                              render       none     -
captureFrame                             render       none     comp
captureFrameOptimized                    render       none     comp
setOutputModule                          render       none     -
batchRenderComps                         render       none     -
setRenderRegion                          render       none     comp
setRenderSettings                        render       none     -
getRenderStatus                          render       none     -
clearRenderQueue                         render       none     -
animateCoin                              workflow     any      comp,layer
createCoinTransition                     workflow     none     -
positionFromAnalysis                     workflow     any      comp,layer
applyColorMatch                          workflow     av       comp,layer
setup3DCameraTracker                     tracking     av       comp,layer
linkToTrackPoint                         tracking     any      comp
exportMOGRT                              mogrt        none     comp
addToEssentialGraphics                   mogrt        any      comp
precompose                               precomp      any      comp,layer
duplicateComp                            precomp      none     comp
openCompViewer                           precomp      none     -
replaceCompSource                        precomp      av       comp,layer
nestComp                                 precomp      none     comp
replaceFootage                           footage      none     -
relinkFootage                            footage      none     -
interpretFootage                         footage      none     -
setProxy                                 footage      none     -
collectFiles                             footage      none     -
removeUnused                             footage      none     -
findMissingFootage                       footage      none     -
addCompMarker                            marker       none     comp
addLayerMarker                           marker       any      comp,layer
getCompMarkers                           marker       none     comp
getLayerMarkers                          marker       any      comp,layer
removeMarker                             marker       any      comp
updateMarker                             marker       any      comp
addMarkersFromArray                      marker       any      comp
setProjectColorDepth                     color        none     -
setProjectWorkingSpace                   color        none     -
applyLUT                                 color        effects  comp,layer
applyColorProfileConverter               color        effects  comp,layer
setLinearizeWorkingSpace                 color        none     -
setCompensateForSceneReferredProfiles    color        none     -
applyColorBalance                        color        effects  comp,layer
applyPhotoFilter                         color        effects  comp,layer
setAudioLevel                            audio        audio    comp,layer
fadeAudioIn                              audio        audio    comp,layer
fadeAudioOut                             audio        audio    comp,layer
muteLayer                                audio        audio    comp,layer
soloAudio                                audio        audio    comp,layer
setAudioKeyframe                         audio        audio    comp,layer
getAudioInfo                             audio        audio    comp,layer
getProjectSettings                       project      none     -
setProjectSettings                       project      none     -
saveProject                              project      none     -
closeProject                             project      none     -
createFolder                             project      none     -
organizeProjectItems                     project      none     -
getProjectReport                         project      none     -
reduceProject                            project      none     -
getLayerInfo                             assistant    any      comp,layer
getActionInfo                            assistant    none     -
listTemplates                            assistant    none     -
executeTemplate                          assistant    none     comp
getSuggestions                           assistant    none     -
getCategories                            assistant    none     -
testScript                               test         none     -
"""

_MANUAL_STEPS = {
    "applyMatchGrain": 'Click "Take Sample" in Effect Controls',
    "applyWarpStabilizer": 'Click "Analyze" in Effect Controls',
    "setup3DCameraTracker": 'Click "Analyze" in Effect Controls, then create Track Null or Camera',
}

_AV_TYPES = ("av", "solid", "precomp")


@dataclass(frozen=True)
class ActionMeta:
    category: str
    layer_type: str = "any"
    needs_comp: bool = False
    needs_layer: bool = False
    manual_step: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "layerType": self.layer_type,
            "needsComp": self.needs_comp,
            "needsLayer": self.needs_layer,
            "category": self.category,
            "manualStep": self.manual_step,
        }


def _parse_meta_table(table: str) -> Dict[str, ActionMeta]:
    meta: Dict[str, ActionMeta] = {}
    for line in table.strip().splitlines():
        name, category, layer_type, needs = line.split()
        flags = needs.split(",")
        meta[name] = ActionMeta(
            category=category,
            layer_type=layer_type,
            needs_comp="comp" in flags,
            needs_layer="layer" in flags,
            manual_step=_MANUAL_STEPS.get(name),
        )
    return meta


ACTION_META: Dict[str, ActionMeta] = _parse_meta_table(_META_TABLE)
_UNKNOWN_META = ActionMeta(category="unknown")


def validate_layer_type(required_type: str, caps: Mapping[str, Any]) -> Dict[str, Any]:
    """Check a layer's capabilities against an action's required layer type."""
    layer_type = caps.get("type")

    if required_type == "av":
        if layer_type in _AV_TYPES:
            return {"allowed": True}
        return {
            "allowed": False,
            "reason": "This action requires an AV layer (footage, solid, or precomp). "
            f"Current layer type: {layer_type}",
        }
    if required_type in ("text", "shape", "camera", "light"):
        if layer_type == required_type:
            return {"allowed": True}
        return {
            "allowed": False,
            "reason": f"This action requires a {required_type} layer. Current layer type: {layer_type}",
        }
    if required_type == "audio":
        if caps.get("hasAudio"):
            return {"allowed": True}
        return {"allowed": False, "reason": "This action requires a layer with audio. Current layer has no audio."}
    if required_type == "effects":
        if caps.get("supportsEffects"):
            return {"allowed": True}
        return {
            "allowed": False,
            "reason": f"This action requires a layer that supports effects. Current layer type: {layer_type}",
        }
    if required_type == "visual":
        if layer_type not in ("camera", "light"):
            return {"allowed": True}
        return {"allowed": False, "reason": "This action cannot be applied to camera or light layers."}
    # "none", "any" and anything unrecognised
    return {"allowed": True}


@dataclass
class _Registration:
    handler: Handler
    schema: Optional[Dict[str, Any]]
    meta: ActionMeta


class ActionRegistry:
    """Name to handler mapping with metadata-driven validation."""

    def __init__(self, project: Project, meta: Optional[Mapping[str, ActionMeta]] = None) -> None:
        self.project = project
        self._meta: Mapping[str, ActionMeta] = meta if meta is not None else ACTION_META
        self._handlers: Dict[str, _Registration] = {}

    def register(self, name: str, handler: Handler, schema: Optional[Dict[str, Any]] = None) -> None:
        if name in self._handlers:
            logger.warning("Re-registering host action '%s'", name)
        self._handlers[name] = _Registration(handler=handler, schema=schema, meta=self._meta.get(name, _UNKNOWN_META))

    def register_many(self, actions: Mapping[str, Any]) -> None:
        """Register ``{name: (handler, schema)}`` as returned by a service's ``actions()``."""
        for name, (handler, schema) in actions.items():
            self.register(name, handler, schema)

    def register_unsupported(self, names: Optional[Iterable[str]] = None) -> List[str]:
        """
        Give every known action without a handler a stub that fails cleanly.

        Returns the names that received a stub.
        """
        stubbed = []
        for name in names if names is not None else self._meta:
            if name in self._handlers:
                continue
            self.register(name, self._unsupported_handler(name))
            stubbed.append(name)
        if stubbed:
            logger.debug("Registered %d unsupported action stubs", len(stubbed))
        return stubbed

    @staticmethod
    def _unsupported_handler(name: str) -> Handler:
        def handler(params: Dict[str, Any]) -> ActionResult:
            return error(f"{name} is not implemented by this host runtime", unsupported=True)

        return handler

    def execute(self, name: str, params: Dict[str, Any]) -> ActionResult:
        registration = self._handlers.get(name)
        if registration is None:
            return {"error": f"Unknown action: {name}"}

        if registration.schema:
            problems = validate_params(params, registration.schema)
            if problems:
                return {"error": ", ".join(problems)}

        return registration.handler(params)

    def execute_with_validation(self, name: str, params: Dict[str, Any]) -> ActionResult:
        """
        Run ``name`` after checking an explicitly referenced layer against the
        action's layer type. Successful results for actions that need a manual
        follow-up carry ``manualStep`` and ``warnings``.
        """
        registration = self._handlers.get(name)
        if registration is None:
            return {"error": f"Unknown action: {name}"}

        meta = registration.meta
        warnings: List[str] = []

        if meta.needs_layer and (params.get("layerIndex") or params.get("layerName")):
            comp, comp_error = get_active_comp(self.project)
            if not comp_error:
                layer, layer_error = get_layer(comp, params)
                if not layer_error:
                    verdict = validate_layer_type(meta.layer_type, layer.capabilities())
                    if not verdict["allowed"]:
                        return {"error": verdict["reason"]}

        result = self.execute(name, params)

        if meta.manual_step and result.get("success"):
            result["manualStep"] = meta.manual_step
            warnings.append(meta.manual_step)
        if warnings:
            result["warnings"] = warnings
        return result

    def exists(self, name: str) -> bool:
        return name in self._handlers

    def list(self) -> List[str]:
        return list(self._handlers)

    def get_meta(self, name: str) -> Optional[ActionMeta]:
        registration = self._handlers.get(name)
        if registration is not None:
            return registration.meta
        return self._meta.get(name)

    def get_by_category(self, category: str) -> List[str]:
        return [name for name, reg in self._handlers.items() if reg.meta.category == category]

    def get_compatible_actions(self, layer_type: str) -> List[str]:
        compatible = []
        for name, registration in self._handlers.items():
            required = registration.meta.layer_type
            if required in ("none", "any"):
                compatible.append(name)
            elif required == "av" and layer_type in _AV_TYPES:
                compatible.append(name)
            elif required == layer_type:
                compatible.append(name)
            elif required in ("effects", "visual") and layer_type not in ("camera", "light"):
                compatible.append(name)
        return compatible

    def get_categories(self) -> List[str]:
        categories: Dict[str, None] = {}
        for meta in self._meta.values():
            categories.setdefault(meta.category, None)
        return list(categories)
