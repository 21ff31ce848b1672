"""wfbridge - MCP bridge between AI agents and workflow documents."""

from .workflow import Workflow, WorkflowSnapshot, migrate_workflow

__version__ = "0.1.0"

__all__ = ["Workflow", "WorkflowSnapshot", "__version__", "migrate_workflow"]
