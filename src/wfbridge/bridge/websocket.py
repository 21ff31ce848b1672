"""WebSocket endpoint the live editor connects to."""

from __future__ import annotations

import math
from collections.abc import Awaitable, Callable
from typing import Protocol

import anyio
from pydantic import ValidationError
from starlette.websockets import WebSocket, WebSocketDisconnect, WebSocketState

from ..logger import get_logger
from .errors import NoPeerConnected
from .transport import Envelope, MessageTransport

CLOSE_GOING_AWAY = 1001
CLOSE_NO_TRANSPORT = 1013
CLOSE_REPLACED = 4000

_log = get_logger("wfbridge.bridge.websocket")


class TextSocket(Protocol):
    async def send_text(self, data: str) -> None: ...


class WebSocketPeer:
    """Peer that writes envelopes to one WebSocket, in the order they were queued."""

    def __init__(self, websocket: TextSocket) -> None:
        self._websocket = websocket
        self._send_stream, self._receive_stream = anyio.create_memory_object_stream(max_buffer_size=math.inf)

    def deliver(self, envelope: Envelope) -> None:
        try:
            self._send_stream.send_nowait(envelope)
        except (anyio.ClosedResourceError, anyio.BrokenResourceError) as exc:
            raise NoPeerConnected() from exc

    def close(self) -> None:
        self._send_stream.close()

    async def pump(self) -> None:
        """Write queued envelopes until the peer is closed or the socket drops."""
        async with self._receive_stream:
            async for envelope in self._receive_stream:
                try:
                    await self._websocket.send_text(envelope.to_json())
                except WebSocketDisconnect:
                    _log.info("Live editor went away while sending", extra={"event": "peer_send_failed"})
                    return


def live_editor_endpoint(
    get_transport: Callable[[], MessageTransport | None],
) -> Callable[[WebSocket], Awaitable[None]]:
    """Build the Starlette WebSocket endpoint bound to the bridge's transport."""

    async def endpoint(websocket: WebSocket) -> None:
        transport = get_transport()
        if transport is None:
            _log.warning("Rejected live editor: bridge runs headless", extra={"event": "peer_rejected"})
            await websocket.close(code=CLOSE_NO_TRANSPORT)
            return

        peer = WebSocketPeer(websocket)
        transport.set_peer(peer)

        try:
            await websocket.accept()
            async with anyio.create_task_group() as tg:

                async def pump_until_closed() -> None:
                    await peer.pump()
                    tg.cancel_scope.cancel()

                tg.start_soon(pump_until_closed)
                await _read_envelopes(websocket, transport, peer)
                tg.cancel_scope.cancel()
        finally:
            if transport.peer is peer:
                transport.set_peer(None)
            else:
                peer.close()

        if websocket.client_state == WebSocketState.CONNECTED:
            # Still open means the bridge let go first: replaced by another editor or shutting down.
            await websocket.close(code=CLOSE_REPLACED if transport.connected else CLOSE_GOING_AWAY)

    return endpoint


async def _read_envelopes(websocket: WebSocket, transport: MessageTransport, peer: WebSocketPeer) -> None:
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return
        if transport.peer is not peer:
            return

        text = message.get("text")
        if text is None:
            _log.error(
                "Discarded binary frame from live editor",
                extra={"event": "envelope_invalid", "bytes": len(message.get("bytes") or b"")},
            )
            continue
        try:
            envelope = Envelope.model_validate_json(text)
        except ValidationError as exc:
            _log.error(
                "Discarded malformed message from live editor",
                extra={"event": "envelope_invalid", "error_message": str(exc), "raw": text},
            )
            continue

        try:
            transport.dispatch_incoming(envelope)
        except Exception:
            _log.error(
                f"Handler failed for {envelope.type}",
                extra={"event": "envelope_handler_error", "request_id": envelope.request_id},
                exc_info=True,
            )
