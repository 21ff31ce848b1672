"""Bridge errors."""

from __future__ import annotations

from typing import Any


class BridgeError(RuntimeError):
    """Base class for everything the bridge raises on purpose."""


class ProviderError(BridgeError):
    """A workflow provider could not complete a read or an apply."""


class InvalidWorkflowFile(ProviderError):
    def __init__(self, *, path: str, cause: BaseException | None = None, reason: str | None = None):
        self.path = path
        self.cause = cause
        detail = reason or (f"{type(cause).__name__}: {cause}" if cause else "not a workflow document")
        super().__init__(f"invalid workflow file '{path}': {detail}")


class ProviderIOError(ProviderError):
    def __init__(self, *, path: str, cause: BaseException):
        self.path = path
        self.cause = cause
        super().__init__(f"cannot access '{path}': {type(cause).__name__}: {cause}")


class ProviderTimeout(ProviderError):
    def __init__(self, *, request_type: str, timeout: float):
        self.request_type = request_type
        self.timeout = timeout
        super().__init__(f"no response to '{request_type}' from the live editor within {timeout:g}s")


class ProviderConflict(ProviderError):
    """The live editor rejected an apply because the caller's base was stale."""

    def __init__(self, message: str = "workflow changed in the editor since it was read"):
        super().__init__(message)


class ProtocolError(ProviderError):
    """The live editor answered with a payload the bridge does not understand."""

    def __init__(self, *, request_type: str, detail: str):
        self.request_type = request_type
        super().__init__(f"malformed '{request_type}' response: {detail}")


class NoPeerConnected(ProviderError):
    def __init__(self, message: str = "no live editor is connected; open the workflow editor first"):
        super().__init__(message)


class PeerReplaced(ProviderError):
    def __init__(self, message: str = "live editor connection was replaced before it answered"):
        super().__init__(message)


class ServerStopped(ProviderError):
    def __init__(self, message: str = "bridge stopped before the live editor answered"):
        super().__init__(message)


class NoWorkflowProvider(ProviderError):
    def __init__(self, message: str = "no workflow provider is configured; open the workflow editor first"):
        super().__init__(message)


class AlreadyRunning(BridgeError):
    def __init__(self, *, port: int | None):
        self.port = port
        super().__init__(f"bridge is already running on port {port}" if port else "bridge is already starting")


class BridgeStartupError(BridgeError):
    """The HTTP listener did not come up."""


class BridgeToolError(RuntimeError):
    """Raised by tool implementations; ``payload`` becomes the MCP error text."""

    def __init__(self, payload: dict[str, Any]):
        self.payload = payload
        super().__init__(payload.get("error", "tool failed"))
