"""Headless provider that reads and writes a workflow JSON file directly."""

from __future__ import annotations

import json
from pathlib import Path

from ...filesystem import FileSystem, LocalFileSystem
from ...logger import get_logger
from ...workflow import Workflow, WorkflowSnapshot, dumps_workflow, loads_workflow, migrate_workflow
from ..errors import InvalidWorkflowFile, ProviderIOError

_log = get_logger("wfbridge.bridge.providers.file")


class FileWorkflowProvider:
    """Workflow provider for a single JSON file.

    Nothing else writes the file while the bridge runs, so snapshots are never
    stale and applies never conflict.
    """

    def __init__(self, path: str | Path, fs: FileSystem | None = None) -> None:
        self._path = str(Path(path))
        self._fs = fs or LocalFileSystem()

    @property
    def path(self) -> str:
        return self._path

    async def get_current_workflow(self) -> WorkflowSnapshot:
        try:
            if not await self._fs.file_exists(self._path):
                return WorkflowSnapshot(workflow=None, is_stale=False)
            content = await self._fs.read_file(self._path)
        except UnicodeDecodeError as exc:
            raise InvalidWorkflowFile(path=self._path, cause=exc) from exc
        except OSError as exc:
            raise ProviderIOError(path=self._path, cause=exc) from exc

        try:
            document = loads_workflow(content)
        except json.JSONDecodeError as exc:
            raise InvalidWorkflowFile(path=self._path, cause=exc) from exc
        if not isinstance(document, dict):
            raise InvalidWorkflowFile(path=self._path, reason=f"expected a JSON object, got {type(document).__name__}")

        return WorkflowSnapshot(workflow=migrate_workflow(document), is_stale=False)

    async def apply_workflow(self, workflow: Workflow, description: str | None = None) -> bool:
        content = dumps_workflow(workflow)
        try:
            await self._fs.write_file(self._path, content)
        except OSError as exc:
            raise ProviderIOError(path=self._path, cause=exc) from exc

        _log.info(
            f"Wrote workflow to {self._path}",
            extra={"event": "workflow_file_written", "path": self._path, "description": description, "bytes": len(content)},
        )
        return True
