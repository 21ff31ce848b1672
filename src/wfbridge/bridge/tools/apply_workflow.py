"""Apply a workflow through the active provider."""

from __future__ import annotations

import json
import time
from typing import TYPE_CHECKING, Any

from ...logger import get_logger
from ..errors import BridgeToolError, ProviderConflict, ProviderError

if TYPE_CHECKING:
    from ..manager import BridgeManager


_log = get_logger("wfbridge.bridge.tools.apply_workflow")


def parse_workflow_argument(workflow_json: str) -> dict[str, Any]:
    """Decode the tool's ``workflow`` argument into a JSON object."""
    try:
        workflow = json.loads(workflow_json)
    except json.JSONDecodeError as exc:
        raise BridgeToolError(
            {"success": False, "error": f"Invalid JSON: {exc.msg} (line {exc.lineno}, column {exc.colno})"}
        ) from exc
    if not isinstance(workflow, dict):
        raise BridgeToolError({"success": False, "error": "Workflow must be a JSON object"})
    return workflow


async def apply_workflow(manager: BridgeManager, *, workflow_json: str, description: str | None = None) -> dict[str, Any]:
    """Commit a workflow as the new current state.

    A stale base is not a failure: the result carries ``conflict: True`` so
    the agent can fetch the workflow again and retry.

    Returns:
        ``{"success": bool}`` or ``{"success": False, "conflict": True, "error": ...}``

    Raises:
        BridgeToolError: If the argument is not a workflow or the provider failed
    """
    workflow = parse_workflow_argument(workflow_json)
    node_count = len(workflow["nodes"]) if isinstance(workflow.get("nodes"), list) else None

    _log.info(
        f"apply_workflow: {description or 'no description'}",
        extra={"event": "apply_workflow_start", "description": description, "node_count": node_count},
    )

    start_time = time.perf_counter()
    try:
        applied = await manager.apply_workflow(workflow, description)
    except ProviderConflict as exc:
        _log.warning(
            f"apply_workflow conflict: {exc}",
            extra={"event": "apply_workflow_conflict", "duration_ms": (time.perf_counter() - start_time) * 1000},
        )
        return {"success": False, "conflict": True, "error": str(exc)}
    except ProviderError as exc:
        duration_ms = (time.perf_counter() - start_time) * 1000
        _log.error(
            f"apply_workflow FAILED [Duration: {duration_ms:.2f}ms]",
            extra={
                "event": "apply_workflow_error",
                "duration_ms": duration_ms,
                "error_type": type(exc).__name__,
                "error_message": str(exc),
            },
            exc_info=True,
        )
        raise BridgeToolError({"success": False, "error": str(exc), "errorType": type(exc).__name__}) from exc

    duration_ms = (time.perf_counter() - start_time) * 1000
    _log.info(
        f"apply_workflow {'applied' if applied else 'declined'} [Duration: {duration_ms:.2f}ms]",
        extra={"event": "apply_workflow_complete", "duration_ms": duration_ms, "applied": applied},
    )
    return {"success": applied}
