"""
Drive a real host server process through the bridge and report which actions
round-trip correctly.

Spawns ``python -m src.aehost.server`` (an empty project, no demo layers),
authorizes every call against the action catalog the way the assistant does,
and prints a pass/fail table. Exits non-zero if any check fails.

    python scripts/verify_host_actions.py
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

# Add the repo root so 'src.*' imports resolve when run as a plain script.
repo_root = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(repo_root))

from src.aeai.config import HOST_SERVER_MODULE, VERIFICATION_TIMEOUT_SECONDS  # noqa: E402
from src.aeai.models.exceptions import UnauthorizedActionError  # noqa: E402
from src.aeai.models.result import BridgeResult  # noqa: E402
from src.aeai.services.action_catalog import ActionCatalog  # noqa: E402
from src.aeai.services.bridge_transport import BridgeTransport  # noqa: E402
from src.aeai.services.logging_service import LoggingService  # noqa: E402
from src.aeai.services.script_evaluators import SubprocessScriptHost  # noqa: E402

logger = logging.getLogger("verify_host_actions")

Check = Tuple[str, Dict[str, Any], Callable[[BridgeResult], Optional[str]]]


def _expect_success(result: BridgeResult) -> Optional[str]:
    return None if result.success else (result.error or "failed without an error message")


def _expect_markers(count: int) -> Callable[[BridgeResult], Optional[str]]:
    def check(result: BridgeResult) -> Optional[str]:
        if not result.success:
            return result.error
        markers = result.data.get("markers") or []
        if len(markers) != count:
            return f"expected {count} marker(s), host reported {len(markers)}"
        return None

    return check


def _expect_failure(result: BridgeResult) -> Optional[str]:
    return "host accepted an invalid request" if result.success else None


CHECKS: List[Check] = [
    ("testScript", {}, _expect_success),
    ("createComp", {"name": "Verify", "width": 1280, "height": 720, "duration": 5, "frameRate": 24}, _expect_success),
    ("addCompMarker", {"time": 2, "comment": "intro"}, _expect_success),
    ("getCompMarkers", {}, _expect_markers(1)),
    ("updateMarker", {"markerIndex": 1, "comment": "opening"}, _expect_success),
    ("removeMarker", {"markerIndex": 5}, _expect_failure),
    ("removeMarker", {"markerIndex": 1}, _expect_success),
    ("getCompMarkers", {}, _expect_markers(0)),
]


async def run_checks(transport: BridgeTransport, catalog: ActionCatalog, timeout: float) -> List[Tuple[str, bool, str]]:
    rows: List[Tuple[str, bool, str]] = []
    for action, params, check in CHECKS:
        catalog.authorize(action)
        result = await transport.call(action, params, timeout=timeout)
        problem = check(result)
        rows.append((action, problem is None, problem or "ok"))

    try:
        catalog.authorize("deleteProject")
        rows.append(("deleteProject", False, "catalog authorized an unknown action"))
    except UnauthorizedActionError as exc:
        rows.append(("deleteProject", True, f"blocked ({exc})"))
    return rows


def print_table(rows: List[Tuple[str, bool, str]]) -> None:
    width = max(len(name) for name, _, _ in rows)
    for name, passed, detail in rows:
        status = "PASS" if passed else "FAIL"
        print(f"{status}  {name.ljust(width)}  {detail}")


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--timeout", type=float, default=VERIFICATION_TIMEOUT_SECONDS)
    parser.add_argument("--log-level", default="WARNING")
    args = parser.parse_args(argv)
    LoggingService.setup_logging(
        stream=sys.stderr,
        log_file="verify_host_actions.log",
        console_level=getattr(logging, args.log_level.upper(), logging.WARNING),
    )

    host = SubprocessScriptHost(
        [sys.executable, "-m", HOST_SERVER_MODULE, "--no-demo"],
        timeout_seconds=args.timeout,
        cwd=str(repo_root),
    )
    try:
        rows = asyncio.run(run_checks(BridgeTransport(host), ActionCatalog(), args.timeout))
    finally:
        host.close()

    print_table(rows)
    failed = [name for name, passed, _ in rows if not passed]
    if failed:
        print(f"\n{len(failed)} check(s) failed.")
        return 1
    print(f"\nAll {len(rows)} checks passed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
