"""
Line-delimited JSON server around :class:`HostRuntime`.

Reads ``{"id": ..., "script": "..."}`` requests from stdin and writes
``{"id": ..., "result": "..."}`` responses to stdout, one object per line.
Logging goes to stderr because stdout is the wire.

Run with ``python -m src.aehost.server``.
"""
import argparse
import json
import logging
import sys
from typing import IO, Any, Dict, Optional

from src.aeai.services.logging_service import LoggingService
from src.aehost.project_model import Project
from src.aehost.runtime import HostRuntime

logger = logging.getLogger(__name__)


def handle_line(runtime: HostRuntime, line: str) -> Optional[Dict[str, Any]]:
    """Evaluate one request line. Returns the response object, or None for a blank line."""
    line = line.strip()
    if not line:
        return None
    try:
        request = json.loads(line)
    except json.JSONDecodeError as exc:
        logger.error("Malformed request line: %s", exc)
        return {"id": None, "result": "", "error": f"Malformed request: {exc}"}

    if not isinstance(request, dict) or not isinstance(request.get("script"), str):
        return {"id": request.get("id") if isinstance(request, dict) else None, "result": "", "error": "Missing script"}

    request_id = request.get("id")
    try:
        result = runtime.eval_script(request["script"])
    except Exception as exc:  # noqa: BLE001 - one bad script must not stop the server
        logger.exception("Script evaluation failed for request %s", request_id)
        return {"id": request_id, "result": "", "error": str(exc)}
    return {"id": request_id, "result": result}


def serve(runtime: HostRuntime, stdin: IO[str], stdout: IO[str]) -> None:
    logger.info("Host server listening on stdin")
    for line in stdin:
        response = handle_line(runtime, line)
        if response is None:
            continue
        stdout.write(json.dumps(response) + "\n")
        stdout.flush()
    logger.info("Host server input closed; exiting")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Serve the host action runtime over stdin/stdout.")
    parser.add_argument("--log-level", default="INFO", help="Logging level for stderr output")
    parser.add_argument("--no-demo", action="store_true", help="Start with an empty project instead of the demo")
    args = parser.parse_args(argv)

    # stdout carries the wire protocol.
    LoggingService.setup_logging(
        stream=sys.stderr,
        log_file="aehost.log",
        console_level=getattr(logging, args.log_level.upper(), logging.INFO),
    )

    runtime = HostRuntime(Project() if args.no_demo else None)
    serve(runtime, sys.stdin, sys.stdout)
    return 0


if __name__ == "__main__":
    sys.exit(main())
