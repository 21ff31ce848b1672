"""Workflow provider protocol.

Defines where the current workflow lives and how edits land.
"""

from typing import Protocol

from ...workflow import Workflow, WorkflowSnapshot


class WorkflowProvider(Protocol):
    """Supplies and commits the current workflow document.

    Implementations:
    - FileWorkflowProvider: a JSON file on disk (headless)
    - LiveSessionProvider: a live editor behind the message transport
    """

    async def get_current_workflow(self) -> WorkflowSnapshot:
        """Return the current workflow.

        A missing workflow is ``WorkflowSnapshot(None)``, not an error.

        Raises:
            ProviderIOError: the backend could not be read
            ProviderTimeout: the live editor did not answer in time
        """
        ...

    async def apply_workflow(self, workflow: Workflow, description: str | None = None) -> bool:
        """Commit ``workflow`` as the new current state.

        Returns:
            True when committed, False when the backend declined it

        Raises:
            ProviderConflict: the live editor saw a concurrent edit
        """
        ...
