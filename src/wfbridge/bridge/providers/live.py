"""Provider backed by a live editor reached through the message transport."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ...logger import get_logger
from ...workflow import Workflow, WorkflowSnapshot, migrate_workflow
from ..errors import ProtocolError, ProviderConflict
from ..transport import (
    APPLY_WORKFLOW_REQUEST,
    APPLY_WORKFLOW_RESPONSE,
    GET_WORKFLOW_REQUEST,
    GET_WORKFLOW_RESPONSE,
    Envelope,
    MessageTransport,
)

if TYPE_CHECKING:
    from ..config import BridgeConfig

DEFAULT_REQUEST_TIMEOUT = 10.0
DEFAULT_REVIEW_TIMEOUT = 120.0

RESPONSE_TYPES = {
    GET_WORKFLOW_REQUEST: GET_WORKFLOW_RESPONSE,
    APPLY_WORKFLOW_REQUEST: APPLY_WORKFLOW_RESPONSE,
}

_log = get_logger("wfbridge.bridge.providers.live")

_PayloadT = TypeVar("_PayloadT", bound=BaseModel)


class SnapshotPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    workflow: dict[str, Any] | None = None
    is_stale: bool = Field(default=False, alias="isStale")


class ApplyResultPayload(BaseModel):
    success: bool
    conflict: bool = False
    error: str | None = None


class LiveSessionProvider:
    """Workflow provider that asks the connected live editor.

    Every call is a correlated round trip: open a pending request, send the
    request envelope, wait for the response carrying the same request id.
    The editor owns staleness; its ``isStale`` flag is relayed untouched.
    """

    def __init__(
        self,
        transport: MessageTransport,
        *,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        review_timeout: float = DEFAULT_REVIEW_TIMEOUT,
        review_before_apply: bool = True,
    ) -> None:
        self._transport = transport
        self._request_timeout = request_timeout
        self._review_timeout = review_timeout
        self.review_before_apply = review_before_apply
        transport.on_message(self.handle_message)

    @classmethod
    def from_config(cls, transport: MessageTransport, config: BridgeConfig) -> LiveSessionProvider:
        return cls(
            transport,
            request_timeout=config.request_timeout,
            review_timeout=config.review_timeout,
            review_before_apply=config.review_before_apply,
        )

    @property
    def transport(self) -> MessageTransport:
        return self._transport

    def handle_message(self, envelope: Envelope) -> None:
        """Inbound handler: route responses to their waiting callers by request id."""
        if not envelope.is_notification and envelope.type in RESPONSE_TYPES.values():
            if not self._transport.pending.resolve(envelope.request_id, envelope):
                _log.warning(
                    f"Ignoring {envelope.type} for unknown or expired request",
                    extra={"event": "late_response_ignored", "request_id": envelope.request_id},
                )
            return
        _log.debug(f"Ignoring {envelope.type} message", extra={"event": "envelope_ignored"})

    async def get_current_workflow(self) -> WorkflowSnapshot:
        response = await self._round_trip(GET_WORKFLOW_REQUEST, None, self._request_timeout)
        payload = _parse_payload(SnapshotPayload, response)
        workflow = migrate_workflow(payload.workflow) if payload.workflow is not None else None
        return WorkflowSnapshot(workflow=workflow, is_stale=payload.is_stale)

    async def apply_workflow(self, workflow: Workflow, description: str | None = None) -> bool:
        require_confirmation = self.review_before_apply
        timeout = self._review_timeout if require_confirmation else self._request_timeout
        response = await self._round_trip(
            APPLY_WORKFLOW_REQUEST,
            {"workflow": workflow, "description": description, "requireConfirmation": require_confirmation},
            timeout,
        )
        result = _parse_payload(ApplyResultPayload, response)

        if result.conflict:
            raise ProviderConflict(result.error or "workflow changed in the editor since it was read")
        if not result.success:
            _log.warning(
                f"Live editor declined the workflow: {result.error or 'no reason given'}",
                extra={"event": "apply_declined", "request_id": response.request_id},
            )
        return result.success

    async def _round_trip(self, request_type: str, payload: Any, timeout: float) -> Envelope:
        pending = self._transport.pending.open(request_type, timeout)
        try:
            self._transport.send(Envelope(type=request_type, request_id=pending.request_id, payload=payload))
        except BaseException:
            self._transport.pending.discard(pending.request_id)
            raise

        _log.debug(
            f"Sent {request_type}",
            extra={"event": "request_sent", "request_id": pending.request_id, "timeout": timeout},
        )
        response: Envelope = await self._transport.pending.wait(pending)

        expected = RESPONSE_TYPES[request_type]
        if response.type != expected:
            raise ProtocolError(request_type=request_type, detail=f"expected '{expected}', got '{response.type}'")
        return response


def _parse_payload(model: type[_PayloadT], response: Envelope) -> _PayloadT:
    try:
        return model.model_validate(response.payload if response.payload is not None else {})
    except ValidationError as exc:
        raise ProtocolError(request_type=response.type, detail=str(exc)) from exc
