"""Read the current workflow."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

from ...logger import get_logger
from ..errors import BridgeToolError, ProviderError

if TYPE_CHECKING:
    from ..manager import BridgeManager


_log = get_logger("wfbridge.bridge.tools.get_current_workflow")

NO_WORKFLOW_MESSAGE = "No active workflow. Open a workflow in the editor or apply a new one first."


async def get_current_workflow(manager: BridgeManager) -> dict[str, Any]:
    """Fetch the current workflow through the active provider.

    Returns:
        ``{"success": True, "isStale": bool, "workflow": {...}}``, or
        ``{"success": False, "error": ...}`` when no workflow exists yet

    Raises:
        BridgeToolError: If the provider failed (timeout, no editor, I/O)
    """
    start_time = time.perf_counter()
    try:
        snapshot = await manager.get_current_workflow()
    except ProviderError as exc:
        duration_ms = (time.perf_counter() - start_time) * 1000
        _log.error(
            f"get_current_workflow FAILED [Duration: {duration_ms:.2f}ms]",
            extra={
                "event": "get_workflow_error",
                "duration_ms": duration_ms,
                "error_type": type(exc).__name__,
                "error_message": str(exc),
            },
            exc_info=True,
        )
        raise BridgeToolError({"success": False, "error": str(exc), "errorType": type(exc).__name__}) from exc

    duration_ms = (time.perf_counter() - start_time) * 1000
    _log.info(
        f"get_current_workflow [Duration: {duration_ms:.2f}ms]",
        extra={
            "event": "get_workflow_complete",
            "duration_ms": duration_ms,
            "found": snapshot.workflow is not None,
            "is_stale": snapshot.is_stale,
        },
    )

    if snapshot.workflow is None:
        return {"success": False, "error": NO_WORKFLOW_MESSAGE}
    return {"success": True, "isStale": snapshot.is_stale, "workflow": snapshot.workflow}
