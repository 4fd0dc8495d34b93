"""Tests for the line-delimited JSON host server."""

from __future__ import annotations

import io
import json
import logging
import sys

import pytest

from src.aeai.services.logging_service import LoggingService
from src.aehost.runtime import EVAL_ERROR, HostRuntime
from src.aehost.server import handle_line, main, serve


def test_blank_lines_are_ignored(host_runtime: HostRuntime) -> None:
    assert handle_line(host_runtime, "   \n") is None


def test_request_is_evaluated(host_runtime: HostRuntime) -> None:
    response = handle_line(host_runtime, json.dumps({"id": 7, "script": 'typeof runActionModular === "function"'}))

    assert response == {"id": 7, "result": "true"}


def test_malformed_line(host_runtime: HostRuntime) -> None:
    response = handle_line(host_runtime, "{oops")

    assert response["id"] is None
    assert response["result"] == ""
    assert response["error"].startswith("Malformed request:")


def test_missing_script(host_runtime: HostRuntime) -> None:
    assert handle_line(host_runtime, json.dumps({"id": 3})) == {"id": 3, "result": "", "error": "Missing script"}
    assert handle_line(host_runtime, json.dumps([1, 2])) == {"id": None, "result": "", "error": "Missing script"}


def test_serve_answers_each_line_in_order(host_runtime: HostRuntime) -> None:
    requests = [
        {"id": 1, "script": 'runActionModular("addCompMarker", "{\\"time\\": 1}")'},
        {"id": 2, "script": "getCompInfo()"},
        {"id": 3, "script": "alert('hi')"},
    ]
    stdin = io.StringIO("".join(json.dumps(r) + "\n" for r in requests) + "\n")
    stdout = io.StringIO()

    serve(host_runtime, stdin, stdout)

    responses = [json.loads(line) for line in stdout.getvalue().splitlines()]
    assert [r["id"] for r in responses] == [1, 2, 3]
    assert json.loads(responses[0]["result"])["success"] is True
    assert json.loads(responses[1]["result"])["name"] == "Main Comp"
    assert responses[2]["result"] == EVAL_ERROR


def test_main_logs_to_stderr_and_keeps_stdout_for_responses(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = []
    monkeypatch.setattr(LoggingService, "setup_logging", staticmethod(lambda **kwargs: calls.append(kwargs)))
    monkeypatch.setattr(sys, "stdin", io.StringIO(json.dumps({"id": 1, "script": "getCompInfo()"}) + "\n"))
    stdout = io.StringIO()
    monkeypatch.setattr(sys, "stdout", stdout)

    assert main(["--no-demo", "--log-level", "debug"]) == 0

    assert calls == [{"stream": sys.stderr, "log_file": "aehost.log", "console_level": logging.DEBUG}]
    response = json.loads(stdout.getvalue())
    assert json.loads(response["result"])["success"] is False
