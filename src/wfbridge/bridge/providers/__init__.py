from .base import WorkflowProvider
from .file import FileWorkflowProvider
from .live import LiveSessionProvider

__all__ = ["FileWorkflowProvider", "LiveSessionProvider", "WorkflowProvider"]
