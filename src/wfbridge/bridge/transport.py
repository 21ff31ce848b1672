"""Message transport between the bridge and a single live editor.

This module holds the wire-level pieces of the live-session path:
- Envelope: typed, optionally request-correlated message unit
- Peer: the duplex channel implementation the transport writes to
- PendingRequest / PendingRequests: correlation table with deadlines
- MessageTransport: single-peer channel owning the pending table
"""

from __future__ import annotations

import json
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

import anyio
from pydantic import BaseModel, ConfigDict, Field

from ..logger import get_logger
from .errors import NoPeerConnected, PeerReplaced, ProviderTimeout, ServerStopped

GET_WORKFLOW_REQUEST = "get-workflow-request"
GET_WORKFLOW_RESPONSE = "get-workflow-response"
APPLY_WORKFLOW_REQUEST = "apply-workflow-request"
APPLY_WORKFLOW_RESPONSE = "apply-workflow-response"

_log = get_logger("wfbridge.bridge.transport")


# =============================================================================
# Envelopes
# =============================================================================


class Envelope(BaseModel):
    """One message on the live-editor channel.

    ``request_id`` correlates a response with exactly one request; envelopes
    without it are fire-and-forget notifications.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    type: str = Field(min_length=1)
    request_id: str | None = Field(default=None, alias="requestId")
    payload: Any = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type}
        if self.request_id is not None:
            data["requestId"] = self.request_id
        if self.payload is not None:
            data["payload"] = self.payload
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @property
    def is_notification(self) -> bool:
        return self.request_id is None


class Peer(Protocol):
    """A connected live editor."""

    def deliver(self, envelope: Envelope) -> None:
        """Queue ``envelope`` for the editor without blocking."""
        ...

    def close(self) -> None:
        """Stop delivering; called when the transport lets go of this peer."""
        ...


MessageHandler = Callable[[Envelope], None]
ErrorFactory = Callable[[], BaseException]


# =============================================================================
# Pending requests
# =============================================================================


@dataclass(eq=False)
class PendingRequest:
    request_id: str
    request_type: str
    timeout: float
    deadline: float
    _done: anyio.Event = field(default_factory=anyio.Event, repr=False)
    _payload: Any = field(default=None, repr=False)
    _error: BaseException | None = field(default=None, repr=False)

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def resolve(self, payload: Any) -> None:
        if self.done:
            return
        self._payload = payload
        self._done.set()

    def reject(self, error: BaseException) -> None:
        if self.done:
            return
        self._error = error
        self._done.set()


class PendingRequests:
    """Outstanding requests of one transport connection, keyed by request id."""

    def __init__(self) -> None:
        self._requests: dict[str, PendingRequest] = {}

    def __len__(self) -> int:
        return len(self._requests)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._requests

    def open(self, request_type: str, timeout: float) -> PendingRequest:
        """Register a new request with a fresh id and a deadline ``timeout`` seconds away."""
        request_id = uuid.uuid4().hex
        pending = PendingRequest(
            request_id=request_id,
            request_type=request_type,
            timeout=timeout,
            deadline=anyio.current_time() + timeout,
        )
        self._requests[request_id] = pending
        return pending

    def resolve(self, request_id: str, payload: Any) -> bool:
        """Complete the request with ``payload``. False if nobody is waiting for it."""
        pending = self._requests.pop(request_id, None)
        if pending is None:
            return False
        pending.resolve(payload)
        return True

    def discard(self, request_id: str) -> None:
        self._requests.pop(request_id, None)

    def reject_all(self, error_factory: ErrorFactory) -> int:
        requests = list(self._requests.values())
        self._requests.clear()
        for pending in requests:
            pending.reject(error_factory())
        return len(requests)

    async def wait(self, pending: PendingRequest) -> Any:
        """Suspend until ``pending`` is resolved, rejected or past its deadline.

        The entry is always removed on the way out, so a response arriving
        after the deadline finds nothing to resolve.
        """
        try:
            with anyio.CancelScope(deadline=pending.deadline):
                await pending._done.wait()
        finally:
            if self._requests.get(pending.request_id) is pending:
                del self._requests[pending.request_id]

        if not pending.done:
            raise ProviderTimeout(request_type=pending.request_type, timeout=pending.timeout)
        if pending._error is not None:
            raise pending._error
        return pending._payload


# =============================================================================
# Transport
# =============================================================================


class MessageTransport:
    """Duplex channel to at most one live editor.

    A workflow can be live-edited in one place at a time, so attaching a new
    peer replaces the old one and fails everything still waiting on it.
    """

    def __init__(self) -> None:
        self._peer: Peer | None = None
        self._handler: MessageHandler | None = None
        self._dispatching = False
        self.pending = PendingRequests()

    @property
    def peer(self) -> Peer | None:
        return self._peer

    @property
    def connected(self) -> bool:
        return self._peer is not None

    def set_peer(self, peer: Peer | None) -> None:
        previous = self._peer
        if previous is peer:
            return

        self._peer = peer
        error_factory: ErrorFactory = PeerReplaced if peer is not None else NoPeerConnected
        rejected = self.pending.reject_all(error_factory)
        if previous is not None:
            previous.close()

        if peer is None:
            _log.info("Live editor detached", extra={"event": "peer_detached", "rejected_requests": rejected})
        elif previous is None:
            _log.info("Live editor attached", extra={"event": "peer_attached"})
        else:
            _log.warning(
                "Live editor replaced by a new connection",
                extra={"event": "peer_replaced", "rejected_requests": rejected},
            )

    def close(self, error_factory: ErrorFactory = ServerStopped) -> None:
        """Detach the peer, failing pending requests with ``error_factory()``."""
        previous = self._peer
        self._peer = None
        rejected = self.pending.reject_all(error_factory)
        if previous is not None:
            previous.close()
            _log.info("Transport closed", extra={"event": "transport_closed", "rejected_requests": rejected})

    def send(self, envelope: Envelope) -> None:
        if self._peer is None:
            raise NoPeerConnected()
        self._peer.deliver(envelope)

    def on_message(self, handler: MessageHandler) -> None:
        self._handler = handler

    def dispatch_incoming(self, envelope: Envelope) -> None:
        """Hand one inbound envelope to the registered handler."""
        if self._handler is None:
            _log.debug(f"Dropped {envelope.type}: no handler", extra={"event": "envelope_dropped"})
            return
        if self._dispatching:
            raise RuntimeError("dispatch_incoming called from inside the message handler")

        self._dispatching = True
        try:
            self._handler(envelope)
        finally:
            self._dispatching = False
