"""Tests for BridgeTransport - script building, probing and result decoding."""

from __future__ import annotations

import asyncio
import json

import pytest

from src.aeai.models.exceptions import BridgeDecodeError
from src.aeai.services.bridge_transport import (
    HOST_NOT_LOADED_MESSAGE,
    NO_RESPONSE_MESSAGE,
    PROBE_SCRIPT,
    BridgeTransport,
    build_call,
    build_script,
    decode_result,
)
from src.aeai.services.script_evaluators import LocalScriptHost
from src.aehost.runtime import HostRuntime
from tests.conftest import FakeEvaluator


def _answering(result: str) -> FakeEvaluator:
    return FakeEvaluator(lambda script: "true" if script == PROBE_SCRIPT else result)


# -- Encoding --------------------------------------------------------------------------


def test_params_are_double_encoded() -> None:
    call = build_call("addCompMarker", {"time": 2, "comment": 'say "hi"'})

    script = build_script(call)

    assert call.params_json == '{"time": 2, "comment": "say \\"hi\\""}'
    assert script.startswith('runActionModular("addCompMarker", "')
    decoded_args = json.loads("[" + script[len("runActionModular("):-1] + "]")
    assert decoded_args[0] == "addCompMarker"
    assert json.loads(decoded_args[1]) == {"time": 2, "comment": 'say "hi"'}


def test_missing_params_encode_as_empty_object() -> None:
    assert build_call("testScript").params_json == "{}"


def test_decode_result_splits_envelope() -> None:
    result = decode_result('{"success": true, "time": 2, "comment": "intro"}')

    assert result.success is True
    assert result.data == {"time": 2, "comment": "intro"}
    assert result.error is None


def test_decode_result_treats_bare_error_as_failure() -> None:
    result = decode_result('{"error": "boom", "line": 12}')

    assert result.success is False
    assert result.error == "boom"
    assert result.data == {"line": 12}


@pytest.mark.parametrize("raw", ["EvalScript error.", "[1, 2]", None])
def test_decode_result_rejects_non_objects(raw) -> None:
    with pytest.raises(BridgeDecodeError) as excinfo:
        decode_result(raw)

    assert str(excinfo.value) == f"Invalid response: {raw}"


# -- Calls -----------------------------------------------------------------------------


def test_simulation_mode_reports_simulated_success() -> None:
    transport = BridgeTransport()

    result = asyncio.run(transport.call("addCompMarker", {"time": 2}))

    assert transport.simulated is True
    assert result.success is True
    assert result.data == {"simulated": True, "action": "addCompMarker"}


def test_call_probes_once_then_sends_script() -> None:
    evaluator = _answering('{"success": true, "markers": []}')
    transport = BridgeTransport(evaluator)

    first = asyncio.run(transport.call("getCompMarkers"))
    second = asyncio.run(transport.call("getCompMarkers"))

    assert first.success and second.success
    assert evaluator.scripts.count(PROBE_SCRIPT) == 1
    assert evaluator.scripts[1] == 'runActionModular("getCompMarkers", "{}")'


def test_missing_entry_point_fails_without_sending_action() -> None:
    evaluator = FakeEvaluator(lambda script: "false")
    transport = BridgeTransport(evaluator)

    result = asyncio.run(transport.call("addCompMarker", {"time": 2}))

    assert result.success is False
    assert result.error == HOST_NOT_LOADED_MESSAGE
    assert evaluator.scripts == [PROBE_SCRIPT]


def test_failed_probe_is_retried_on_next_call() -> None:
    answers = iter(["EvalScript error.", "true", '{"success": true}'])
    evaluator = FakeEvaluator(lambda script: next(answers))
    transport = BridgeTransport(evaluator)

    first = asyncio.run(transport.call("testScript"))
    second = asyncio.run(transport.call("testScript"))

    assert first.error == HOST_NOT_LOADED_MESSAGE
    assert second.success is True
    assert evaluator.scripts.count(PROBE_SCRIPT) == 2


@pytest.mark.parametrize("raw", ["", "undefined", "null", "  "])
def test_empty_answers_mean_no_response(raw: str) -> None:
    transport = BridgeTransport(_answering(raw))

    result = asyncio.run(transport.call("testScript"))

    assert result.success is False
    assert result.error == NO_RESPONSE_MESSAGE


def test_non_json_answer_is_an_invalid_response() -> None:
    transport = BridgeTransport(_answering("EvalScript error."))

    result = asyncio.run(transport.call("testScript"))

    assert result.success is False
    assert result.error == "Invalid response: EvalScript error."


def test_timeout_yields_no_response() -> None:
    evaluator = FakeEvaluator(lambda script: "true" if script == PROBE_SCRIPT else None)
    transport = BridgeTransport(evaluator)

    result = asyncio.run(transport.call("testScript", timeout=0.05))

    assert result.success is False
    assert result.error == NO_RESPONSE_MESSAGE


def test_reset_probe_forces_a_new_probe() -> None:
    evaluator = _answering('{"success": true}')
    transport = BridgeTransport(evaluator)

    asyncio.run(transport.call("testScript"))
    transport.reset_probe()
    asyncio.run(transport.call("testScript"))

    assert evaluator.scripts.count(PROBE_SCRIPT) == 2


# -- Against the in-process host -------------------------------------------------------


def test_round_trip_through_local_host() -> None:
    host = LocalScriptHost(HostRuntime())
    transport = BridgeTransport(host)
    try:
        added = asyncio.run(transport.call("addCompMarker", {"time": 2, "comment": "intro"}))
        listed = asyncio.run(transport.call("getCompMarkers"))
    finally:
        host.close()

    assert added.success is True
    assert added.data == {"time": 2, "comment": "intro"}
    assert [(m["time"], m["comment"]) for m in listed.data["markers"]] == [(2.0, "intro")]


def test_unloaded_host_is_reported() -> None:
    runtime = HostRuntime()
    runtime.unload()
    host = LocalScriptHost(runtime)
    try:
        result = asyncio.run(BridgeTransport(host).call("testScript"))
    finally:
        host.close()

    assert result.error == HOST_NOT_LOADED_MESSAGE
