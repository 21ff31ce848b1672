"""Workspace layout for workflow files."""

from __future__ import annotations

from pathlib import Path

from .filesystem import FileSystem

WORKFLOWS_SUBDIR = (".vscode", "workflows")
DEFAULT_WORKFLOW_NAME = "workflow"


class WorkflowFiles:
    """Resolves and lists ``<workspace>/.vscode/workflows/<name>.json`` files."""

    def __init__(self, fs: FileSystem, workspace_path: str | Path) -> None:
        self._fs = fs
        self._workspace_path = Path(workspace_path)
        self._workflows_directory = self._workspace_path.joinpath(*WORKFLOWS_SUBDIR)

    @property
    def workspace_path(self) -> Path:
        return self._workspace_path

    @property
    def workflows_directory(self) -> Path:
        return self._workflows_directory

    def workflow_file_path(self, name: str = DEFAULT_WORKFLOW_NAME) -> Path:
        return self._workflows_directory / f"{name}.json"

    async def ensure_workflows_directory(self) -> None:
        if not await self._fs.file_exists(str(self._workflows_directory)):
            await self._fs.create_directory(str(self._workflows_directory))

    async def list_workflow_names(self) -> list[str]:
        """Names of the workflow files in the workflows directory; empty if it is missing."""
        try:
            entries = await self._fs.read_directory(str(self._workflows_directory))
        except FileNotFoundError:
            return []
        return [entry.name.removesuffix(".json") for entry in entries if entry.is_file and entry.name.endswith(".json")]
