"""Tests for HostRuntime - script dispatch, undo groups and error envelopes."""

from __future__ import annotations

import json

import pytest

from src.aehost.project_model import UNDO_LIMIT
from src.aehost.runtime import EVAL_ERROR, UNDO_GROUP_PREFIX, HostRuntime


def test_probe_answers_true_when_loaded(host_runtime: HostRuntime) -> None:
    assert host_runtime.eval_script('typeof runActionModular === "function"') == "true"
    assert host_runtime.eval_script("typeof getCompInfo === 'function'") == "true"
    assert host_runtime.eval_script('typeof deleteEverything === "function"') == "false"


def test_unloaded_runtime_answers_probe_false_and_errors_otherwise(host_runtime: HostRuntime) -> None:
    host_runtime.unload()

    assert host_runtime.eval_script('typeof runActionModular === "function"') == "false"
    assert host_runtime.eval_script('runActionModular("testScript", "{}")') == EVAL_ERROR

    host_runtime.reload()
    assert host_runtime.eval_script('typeof runActionModular === "function"') == "true"


@pytest.mark.parametrize(
    "script",
    [
        "app.project.close()",
        'runActionModular("testScript")',
        'runActionModular("testScript", {"time": 1})',
        "runActionModular(testScript, '{}')",
        "",
    ],
)
def test_unrecognised_scripts_are_eval_errors(host_runtime: HostRuntime, script: str) -> None:
    assert host_runtime.eval_script(script) == EVAL_ERROR


def test_get_comp_info_script(host_runtime: HostRuntime) -> None:
    info = json.loads(host_runtime.eval_script("getCompInfo()"))

    assert info["success"] is True
    assert info["name"] == "Main Comp"
    assert info["numLayers"] == 4
    assert [layer["type"] for layer in info["layers"]] == ["camera", "text", "3dmodel", "av"]


def test_run_action_modular_script_text(host_runtime: HostRuntime) -> None:
    script = 'runActionModular("addCompMarker", "{\\"time\\": 2, \\"comment\\": \\"intro\\"}")'

    result = json.loads(host_runtime.eval_script(script))

    assert result == {"success": True, "time": 2, "comment": "intro"}


def test_unregistered_action_is_not_found(host_runtime: HostRuntime) -> None:
    result = json.loads(host_runtime.run_action_modular("deleteProject", "{}"))

    assert result == {"success": False, "error": "Action not found in registry: deleteProject"}


def test_null_params_become_empty(host_runtime: HostRuntime) -> None:
    result = json.loads(host_runtime.run_action_modular("testScript", "null"))

    assert result["success"] is True
    assert result["message"] == "Modular script is working"


def test_non_object_params_json_is_ignored(host_runtime: HostRuntime) -> None:
    result = json.loads(host_runtime.run_action_modular("getCompMarkers", "[1, 2, 3]"))

    assert result == {"success": True, "markers": []}


def test_invalid_params_json_reports_error_and_line(host_runtime: HostRuntime) -> None:
    result = json.loads(host_runtime.run_action_modular("testScript", "{not json"))

    assert "error" in result
    assert isinstance(result["line"], int)


def test_handler_exception_is_returned_as_data(host_runtime: HostRuntime) -> None:
    def explode(params):
        raise RuntimeError("handler blew up")

    host_runtime.registry.register("updateMarker", explode)

    result = json.loads(host_runtime.run_action_modular("updateMarker", "{}"))

    assert result["error"] == "handler blew up"
    assert "line" in result
    assert host_runtime.project.undo_depth == 1


def test_each_state_change_is_one_undo_group(host_runtime: HostRuntime, run_action) -> None:
    run_action("addMarkersFromArray", {"markers": [{"time": 1, "comment": "a"}, {"time": 2, "comment": "b"}]})
    assert len(run_action("getCompMarkers")["markers"]) == 2

    assert host_runtime.project.undo_depth == 1
    assert host_runtime.project.undo() == UNDO_GROUP_PREFIX + "addMarkersFromArray"
    assert run_action("getCompMarkers")["markers"] == []
    assert host_runtime.project.undo() is None


@pytest.mark.parametrize("action", ["getCompMarkers", "getCompInfo", "testScript", "getLayerInfo"])
def test_read_only_actions_leave_undo_stack_alone(host_runtime: HostRuntime, action: str) -> None:
    for _ in range(20):
        host_runtime.run_action_modular(action, json.dumps({"layerIndex": 1}))

    assert host_runtime.project.undo_depth == 0


def test_undo_stack_is_capped(run_action, host_runtime: HostRuntime) -> None:
    for second in range(UNDO_LIMIT + 25):
        run_action("addCompMarker", {"time": second, "comment": f"m{second}"})

    assert host_runtime.project.undo_depth == UNDO_LIMIT
    assert host_runtime.project.undo() == UNDO_GROUP_PREFIX + "addCompMarker"
    assert len(run_action("getCompMarkers")["markers"]) == UNDO_LIMIT + 24


def test_unsupported_actions_fail_cleanly(run_action) -> None:
    result = run_action("applyGlow", {"layerIndex": 2})

    assert result["success"] is False
    assert result["unsupported"] is True
    assert result["error"] == "applyGlow is not implemented by this host runtime"


def test_layer_type_validation_runs_before_handler(run_action) -> None:
    # Layer 1 of the demo comp is a camera.
    result = run_action("applyWarpStabilizer", {"layerIndex": 1})

    assert result == {
        "error": "This action requires an AV layer (footage, solid, or precomp). Current layer type: camera"
    }
