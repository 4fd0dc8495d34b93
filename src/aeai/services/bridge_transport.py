"""
Bridge transport: turns an authorized action into host script text, sends it
through a script evaluator and decodes the string that comes back.

Parameters cross the boundary double-encoded. The params dict is serialized
to JSON, and that JSON string is serialized again as a string literal, so the
host receives one opaque string argument regardless of what the values
contain:

    runActionModular("addCompMarker", "{\\"time\\": 2, \\"comment\\": \\"intro\\"}")
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, Optional

from src.aeai.config import HOST_ENTRY_POINT
from src.aeai.models.exceptions import BridgeDecodeError, HostScriptNotLoadedError
from src.aeai.models.result import BridgeCall, BridgeResult
from src.aeai.services.script_evaluators import ScriptEvaluator

logger = logging.getLogger(__name__)

PROBE_SCRIPT = f'typeof {HOST_ENTRY_POINT} === "function"'
HOST_NOT_LOADED_MESSAGE = "Host script not loaded. Reload the host scripts and try again."
NO_RESPONSE_MESSAGE = "No response from host script"
_EMPTY_RESULTS = ("", "undefined", "null")


def build_call(action: str, params: Optional[Dict[str, Any]] = None) -> BridgeCall:
    return BridgeCall(action=action, params_json=json.dumps(params or {}))


def build_script(call: BridgeCall) -> str:
    return f"{HOST_ENTRY_POINT}({json.dumps(call.action)}, {json.dumps(call.params_json)})"


def decode_result(raw: Optional[str]) -> BridgeResult:
    """
    Map the host's raw string onto a result envelope.

    Raises:
        BridgeDecodeError: If the string is not a JSON object.
    """
    try:
        envelope = json.loads(raw)
    except (TypeError, json.JSONDecodeError) as exc:
        raise BridgeDecodeError(f"Invalid response: {raw}", raw=raw) from exc
    if not isinstance(envelope, dict):
        raise BridgeDecodeError(f"Invalid response: {raw}", raw=raw)
    return BridgeResult.from_envelope(envelope)


class BridgeTransport:
    """
    Sends one action at a time to the host.

    With no evaluator attached the transport runs in simulation mode and
    reports every call as a simulated success.
    """

    def __init__(self, evaluator: Optional[ScriptEvaluator] = None) -> None:
        self.evaluator = evaluator
        self._host_verified = False

    @property
    def simulated(self) -> bool:
        return self.evaluator is None

    def reset_probe(self) -> None:
        """Forget a successful probe, e.g. after the host scripts were reloaded."""
        self._host_verified = False

    async def call(
        self,
        action: str,
        params: Optional[Dict[str, Any]] = None,
        *,
        timeout: Optional[float] = None,
    ) -> BridgeResult:
        """Run ``action`` on the host. Never raises for host-side problems."""
        if self.evaluator is None:
            logger.info("[Simulation] %s", action)
            return BridgeResult(success=True, data={"simulated": True, "action": action})

        try:
            await self.ensure_host_loaded(timeout=timeout)
        except HostScriptNotLoadedError as exc:
            return BridgeResult.failure(str(exc))

        bridge_call = build_call(action, params)
        raw = await self.evaluate(build_script(bridge_call), timeout=timeout)
        logger.debug("Host result for %s: %s", action, raw)

        if raw is None or raw.strip() in _EMPTY_RESULTS:
            return BridgeResult.failure(NO_RESPONSE_MESSAGE)
        try:
            return decode_result(raw)
        except BridgeDecodeError as exc:
            logger.error("Undecodable host result for %s: %r", action, exc.raw)
            return BridgeResult.failure(str(exc))

    async def ensure_host_loaded(self, *, timeout: Optional[float] = None) -> None:
        """
        Probe for the host entry point once per session.

        Raises:
            HostScriptNotLoadedError: If the probe does not answer ``"true"``.
                The probe is repeated on the next call.
        """
        if self._host_verified:
            return
        answer = await self.evaluate(PROBE_SCRIPT, timeout=timeout)
        if (answer or "").strip() != "true":
            logger.error("Host entry point %s is missing (probe answered %r)", HOST_ENTRY_POINT, answer)
            raise HostScriptNotLoadedError(HOST_NOT_LOADED_MESSAGE)
        self._host_verified = True

    async def evaluate(self, script: str, *, timeout: Optional[float] = None) -> str:
        """
        Evaluate raw script text and return the host's string result.

        A missing evaluator or an expired ``timeout`` yields the empty string.
        """
        if self.evaluator is None:
            return ""

        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()

        def _deliver(result: str) -> None:
            if not future.done():
                future.set_result(result)

        def _callback(result: str) -> None:
            try:
                loop.call_soon_threadsafe(_deliver, result)
            except RuntimeError:
                # The awaiting loop is gone; the result has nowhere to go.
                logger.debug("Dropping late host result for %.60s", script)

        self.evaluator.eval_script(script, _callback)
        if timeout is None:
            return await future
        try:
            return await asyncio.wait_for(future, timeout)
        except asyncio.TimeoutError:
            logger.warning("Host did not answer within %.0fs", timeout)
            return ""
