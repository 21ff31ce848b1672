"""Workflow document model and migration.

A workflow is kept as the plain JSON object it was read from. The bridge never
reinterprets nodes or connections; it only carries the document between the
agent, the file on disk and the live editor.

- Workflow: type alias for the JSON object
- WorkflowSnapshot: result of asking a provider for the current state
- migrate_workflow: pure, idempotent upgrade of older document shapes
"""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from .logger import get_logger

Workflow = dict[str, Any]

_log = get_logger("wfbridge.workflow")


@dataclass(frozen=True)
class WorkflowSnapshot:
    """Current workflow as seen by a provider.

    ``workflow`` is None when no workflow exists yet. ``is_stale`` is True when
    the snapshot may lag behind the live editor's in-memory document.
    """

    workflow: Workflow | None
    is_stale: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"workflow": self.workflow, "isStale": self.is_stale}


# =============================================================================
# Serialization
# =============================================================================


def dumps_workflow(workflow: Workflow) -> str:
    """Stable on-disk form: 2-space indent, keys in document order."""
    return json.dumps(workflow, indent=2, ensure_ascii=False)


def loads_workflow(text: str) -> Any:
    return json.loads(text)


# =============================================================================
# Migration
# =============================================================================


def _nodes_map_to_list(workflow: Workflow) -> Workflow:
    """Legacy documents stored nodes as ``{id: node}``; current ones use a list."""
    nodes = workflow.get("nodes")
    if not isinstance(nodes, Mapping):
        return workflow
    if not all(isinstance(node, Mapping) for node in nodes.values()):
        return workflow

    migrated_nodes = [{**node, "id": node.get("id", node_id)} for node_id, node in nodes.items()]
    return {**workflow, "nodes": migrated_nodes}


MIGRATIONS: tuple[Callable[[Workflow], Workflow], ...] = (_nodes_map_to_list,)


def migrate_workflow(workflow: Any) -> Any:
    """Upgrade ``workflow`` to the current document shape.

    Never mutates its input and never raises: anything that is not a JSON
    object, or that a step cannot make sense of, is returned as it was so that
    validation can report it later.
    """
    if not isinstance(workflow, dict):
        return workflow

    current = workflow
    for step in MIGRATIONS:
        try:
            current = step(current)
        except Exception as exc:
            _log.warning(
                f"Migration step {step.__name__} skipped: {exc}",
                extra={"event": "migration_step_skipped", "step": step.__name__},
            )
    return current
