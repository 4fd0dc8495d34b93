"""
Host runtime: the script-evaluation surface the client bridge talks to.

The bridge only ever sends three kinds of script text, so evaluation is a
small dispatcher rather than an interpreter:

* ``typeof <name> === "function"`` probes
* ``getCompInfo()`` snapshot queries
* ``runActionModular(<json string>, <json string>)`` action calls

Anything else evaluates to the host's generic ``EvalScript error.`` string.
Every state-changing action call runs inside one named undo group.
"""
import json
import logging
import re
from typing import Optional

from src.aehost.action_registry import ActionRegistry
from src.aehost.project_model import Project, build_demo_project
from src.aehost.services.composition_service import CompositionService
from src.aehost.services.helper_actions import HelperActions
from src.aehost.services.marker_service import MarkerService
from src.aehost.services.render_service import RenderService

logger = logging.getLogger(__name__)

EVAL_ERROR = "EvalScript error."
UNDO_GROUP_PREFIX = "AI Assistant: "

_PROBE_PATTERN = re.compile(r'^typeof\s+([A-Za-z_$][\w$]*)\s*===\s*["\']function["\']$')
_CALL_PATTERN = re.compile(r"^([A-Za-z_$][\w$]*)\((.*)\);?$", re.DOTALL)

READ_ONLY_ACTIONS = frozenset(
    {
        "testScript",
        "getActionInfo",
        "getLayerInfo",
        "getSuggestions",
        "getCategories",
        "getCompInfo",
        "getProjectInfo",
        "getRenderers",
        "getCompMarkers",
        "getLayerMarkers",
        "captureFrame",
        "captureFrameOptimized",
    }
)


class HostRuntime:
    """In-process stand-in for the host scripting engine with the action scripts loaded."""

    def __init__(self, project: Optional[Project] = None) -> None:
        self.project = project if project is not None else build_demo_project()
        self.registry = ActionRegistry(self.project)
        self.compositions = CompositionService(self.project)
        self.registry.register_many(self.compositions.actions())
        self.registry.register_many(MarkerService(self.project).actions())
        self.registry.register_many(RenderService(self.project).actions())
        self.registry.register_many(HelperActions(self.registry).actions())
        self.registry.register_unsupported()
        self.loaded = True
        logger.info("Host runtime ready with %d registered actions", len(self.registry.list()))

    # ---- Script loading -------------------------------------------------
    def unload(self) -> None:
        """Drop the action scripts, as when the host panel reloads without them."""
        self.loaded = False

    def reload(self) -> None:
        self.loaded = True

    # ---- Evaluation -----------------------------------------------------
    def eval_script(self, script: str) -> str:
        script = (script or "").strip()

        probe = _PROBE_PATTERN.match(script)
        if probe:
            return "true" if self.loaded and probe.group(1) in ("runActionModular", "getCompInfo") else "false"

        if not self.loaded:
            return EVAL_ERROR

        call = _CALL_PATTERN.match(script)
        if call is None:
            logger.debug("Unsupported script text: %.80s", script)
            return EVAL_ERROR

        function_name, raw_args = call.groups()
        try:
            args = json.loads("[" + raw_args + "]")
        except json.JSONDecodeError:
            logger.debug("Could not parse arguments for %s", function_name)
            return EVAL_ERROR

        if function_name == "getCompInfo" and not args:
            return json.dumps(self.compositions.get_comp_info({}))
        if function_name == "runActionModular" and len(args) == 2 and all(isinstance(a, str) for a in args):
            return self.run_action_modular(args[0], args[1])
        return EVAL_ERROR

    def run_action_modular(self, action_name: str, params_json: str) -> str:
        """Execute one registered action and return its JSON result. Read-only actions skip the undo group."""
        try:
            params = json.loads(params_json) if params_json else {}
            if not isinstance(params, dict):
                params = {}

            if not self.registry.exists(action_name):
                return json.dumps({"success": False, "error": f"Action not found in registry: {action_name}"})

            if action_name in READ_ONLY_ACTIONS:
                return json.dumps(self.registry.execute_with_validation(action_name, params), default=str)

            self.project.begin_undo_group(UNDO_GROUP_PREFIX + action_name)
            try:
                result = self.registry.execute_with_validation(action_name, params)
            finally:
                self.project.end_undo_group()
            return json.dumps(result, default=str)
        except Exception as exc:  # noqa: BLE001 - the host reports script errors as data
            traceback = exc.__traceback__
            while traceback is not None and traceback.tb_next is not None:
                traceback = traceback.tb_next
            logger.exception("Action '%s' raised", action_name)
            return json.dumps({"error": str(exc), "line": traceback.tb_lineno if traceback else None})
