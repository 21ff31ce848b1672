from .config import BridgeConfig
from .errors import (
    AlreadyRunning,
    BridgeError,
    InvalidWorkflowFile,
    NoPeerConnected,
    PeerReplaced,
    ProviderConflict,
    ProviderError,
    ProviderIOError,
    ProviderTimeout,
    ServerStopped,
)
from .manager import BridgeManager, BridgeState
from .providers import FileWorkflowProvider, LiveSessionProvider, WorkflowProvider
from .transport import Envelope, MessageTransport

__all__ = [
    "AlreadyRunning",
    "BridgeConfig",
    "BridgeError",
    "BridgeManager",
    "BridgeState",
    "Envelope",
    "FileWorkflowProvider",
    "InvalidWorkflowFile",
    "LiveSessionProvider",
    "MessageTransport",
    "NoPeerConnected",
    "PeerReplaced",
    "ProviderConflict",
    "ProviderError",
    "ProviderIOError",
    "ProviderTimeout",
    "ServerStopped",
    "WorkflowProvider",
]
