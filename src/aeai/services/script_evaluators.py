"""
Script evaluators: the callback-style ``eval_script(script, callback)`` surface
the bridge transport drives.

- LocalScriptHost runs a HostRuntime in-process on one dedicated worker thread.
- SubprocessScriptHost spawns the host server and talks line-delimited JSON
  over its stdin/stdout, with a per-request timeout.

Both always invoke the callback exactly once with a string. A timeout or a dead
host delivers the empty string, which the bridge reports as "no response".
"""
from __future__ import annotations

import json
import logging
import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from subprocess import PIPE, Popen
from typing import Callable, Dict, List, Optional, Protocol

from src.aeai.config import HOST_REQUEST_TIMEOUT_SECONDS, HOST_SERVER_MODULE, ROOT_DIR
from src.aehost.runtime import HostRuntime

logger = logging.getLogger(__name__)

ScriptCallback = Callable[[str], None]


class ScriptEvaluator(Protocol):
    def eval_script(self, script: str, callback: ScriptCallback) -> None:
        ...


class LocalScriptHost:
    """Evaluates scripts against an in-process host runtime, serialized on a single thread."""

    def __init__(self, runtime=None) -> None:
        self.runtime = runtime if runtime is not None else HostRuntime()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="host-eval")

    def eval_script(self, script: str, callback: ScriptCallback) -> None:
        def _run() -> None:
            try:
                result = self.runtime.eval_script(script)
            except Exception as exc:  # noqa: BLE001
                logger.error("Local host evaluation failed: %s", exc, exc_info=True)
                result = ""
            callback(result)

        self._executor.submit(_run)

    def close(self) -> None:
        self._executor.shutdown(wait=True)


@dataclass
class _PendingScript:
    callback: ScriptCallback
    timer: Optional[threading.Timer] = None


class SubprocessScriptHost:
    """Drives the host server process over stdin/stdout."""

    def __init__(
        self,
        command: Optional[List[str]] = None,
        *,
        timeout_seconds: float = HOST_REQUEST_TIMEOUT_SECONDS,
        cwd: Optional[str] = None,
    ) -> None:
        self.command = command or [sys.executable, "-m", HOST_SERVER_MODULE]
        self.timeout_seconds = timeout_seconds
        self.cwd = cwd or str(ROOT_DIR)
        self._process: Optional[Popen[str]] = None
        self._pending: Dict[int, _PendingScript] = {}
        self._lock = threading.RLock()
        self._next_id = 1

    # ---- Lifecycle ------------------------------------------------------
    def start(self) -> None:
        if self.is_running:
            return
        try:
            # Text mode for line-by-line JSON messages
            self._process = Popen(
                self.command,
                stdin=PIPE,
                stdout=PIPE,
                stderr=PIPE,
                text=True,
                bufsize=1,
                cwd=self.cwd,
            )
        except OSError as exc:
            raise RuntimeError(f"Failed to spawn host server: {exc}") from exc

        logger.info("Host server started (pid=%s)", self._process.pid)
        self._start_reader_threads(self._process)

    @property
    def is_running(self) -> bool:
        return self._process is not None and self._process.poll() is None

    def close(self, timeout: float = 5.0) -> None:
        process = self._process
        if process is None:
            return
        self._process = None
        try:
            if process.stdin:
                process.stdin.close()
            process.wait(timeout=timeout)
        except Exception:  # noqa: BLE001
            logger.warning("Host server did not exit cleanly; terminating")
            process.terminate()
        self._fail_all_pending()

    # ---- Evaluation -----------------------------------------------------
    def eval_script(self, script: str, callback: ScriptCallback) -> None:
        if not self.is_running:
            try:
                self.start()
            except RuntimeError as exc:
                logger.error("%s", exc)
                callback("")
                return

        with self._lock:
            request_id = self._next_id
            self._next_id += 1
            pending = _PendingScript(callback=callback)
            pending.timer = threading.Timer(self.timeout_seconds, self._expire, args=(request_id,))
            pending.timer.daemon = True
            self._pending[request_id] = pending
            # Started before the write; the reply can arrive before write() returns.
            pending.timer.start()

        process = self._process
        if process is None or process.stdin is None:
            logger.error("Host server is not running; dropping request %s", request_id)
            self._resolve(request_id, "")
            return

        data = json.dumps({"id": request_id, "script": script})
        try:
            process.stdin.write(data + "\n")
            process.stdin.flush()
            logger.debug("[host] -> %s", data)
        except (BrokenPipeError, OSError) as exc:
            logger.error("Broken pipe writing to host server: %s", exc)
            self._resolve(request_id, "")

    # ---- Internal helpers ----------------------------------------------
    def _start_reader_threads(self, process: Popen[str]) -> None:
        def _stdout_reader() -> None:
            try:
                for line in process.stdout:
                    raw = line.strip()
                    if not raw:
                        continue
                    try:
                        message = json.loads(raw)
                    except json.JSONDecodeError:
                        logger.error("Malformed JSON from host server: %r", raw)
                        continue
                    self._handle_incoming(message)
            except Exception as exc:  # noqa: BLE001
                logger.error("Host stdout reader failed: %s", exc, exc_info=True)
            finally:
                logger.info("Host stdout reader exiting")
                self._fail_all_pending()

        def _stderr_reader() -> None:
            try:
                for line in process.stderr:
                    text = line.rstrip("\n")
                    if text:
                        logger.debug("[host|stderr] %s", text)
            except Exception as exc:  # noqa: BLE001
                logger.error("Host stderr reader failed: %s", exc, exc_info=True)

        threading.Thread(target=_stdout_reader, name="host-stdout", daemon=True).start()
        threading.Thread(target=_stderr_reader, name="host-stderr", daemon=True).start()

    def _handle_incoming(self, message: dict) -> None:
        logger.debug("[host] <- %s", message)
        request_id = message.get("id")
        if not isinstance(request_id, int):
            logger.warning("Host response without a request id: %s", message.get("error"))
            return
        if message.get("error"):
            logger.warning("Host server reported: %s", message["error"])
        result = message.get("result")
        self._resolve(request_id, result if isinstance(result, str) else "")

    def _expire(self, request_id: int) -> None:
        logger.warning("Host request %s timed out after %.0fs", request_id, self.timeout_seconds)
        self._resolve(request_id, "")

    def _resolve(self, request_id: int, result: str) -> None:
        with self._lock:
            pending = self._pending.pop(request_id, None)
        if pending is None:
            return
        if pending.timer is not None:
            pending.timer.cancel()
        pending.callback(result)

    def _fail_all_pending(self) -> None:
        with self._lock:
            request_ids = list(self._pending)
        for request_id in request_ids:
            self._resolve(request_id, "")
