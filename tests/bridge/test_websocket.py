from __future__ import annotations

import json

import pytest
from starlette.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from wfbridge.bridge.errors import NoPeerConnected
from wfbridge.bridge.manager import BridgeManager
from wfbridge.bridge.providers import LiveSessionProvider
from wfbridge.bridge.server import create_bridge_app
from wfbridge.bridge.transport import Envelope, MessageTransport
from wfbridge.bridge.websocket import CLOSE_NO_TRANSPORT, CLOSE_REPLACED, WebSocketPeer


class RecordingSocket:
    def __init__(self, fail_after: int | None = None) -> None:
        self.texts: list[str] = []
        self.fail_after = fail_after

    async def send_text(self, data: str) -> None:
        if self.fail_after is not None and len(self.texts) >= self.fail_after:
            raise WebSocketDisconnect(code=1006)
        self.texts.append(data)


# =============================================================================
# WebSocketPeer
# =============================================================================


@pytest.mark.anyio
async def test_peer_writes_in_queue_order():
    """Queued envelopes reach the socket as JSON in delivery order."""
    socket = RecordingSocket()
    peer = WebSocketPeer(socket)
    peer.deliver(Envelope(type="get-workflow-request", request_id="r1"))
    peer.deliver(Envelope(type="apply-workflow-request", request_id="r2", payload={"workflow": {}}))
    peer.close()

    await peer.pump()

    assert [json.loads(text) for text in socket.texts] == [
        {"type": "get-workflow-request", "requestId": "r1"},
        {"type": "apply-workflow-request", "requestId": "r2", "payload": {"workflow": {}}},
    ]


@pytest.mark.anyio
async def test_peer_stops_when_socket_drops():
    """The pump returns once the socket disconnects."""
    socket = RecordingSocket(fail_after=1)
    peer = WebSocketPeer(socket)
    for index in range(3):
        peer.deliver(Envelope(type="ping", request_id=str(index)))
    peer.close()

    await peer.pump()

    assert len(socket.texts) == 1


def test_deliver_after_close_fails():
    """Delivering to a closed peer raises NoPeerConnected."""
    peer = WebSocketPeer(RecordingSocket())
    peer.close()
    with pytest.raises(NoPeerConnected):
        peer.deliver(Envelope(type="ping"))


# =============================================================================
# Endpoint
# =============================================================================


@pytest.fixture
def live_manager():
    manager = BridgeManager()
    transport = MessageTransport()

    def echo(envelope: Envelope) -> None:
        transport.send(Envelope(type=f"{envelope.type}-echo", request_id=envelope.request_id, payload=envelope.payload))

    transport.on_message(echo)
    manager.set_transport(transport)
    return manager


def test_endpoint_routes_messages_both_ways(live_manager):
    """Inbound envelopes reach the handler and replies reach the editor."""
    client = TestClient(create_bridge_app(live_manager))

    with client.websocket_connect("/ws") as ws:
        ws.send_text("not an envelope")
        ws.send_text(json.dumps({"type": "ping", "requestId": "r1", "payload": {"n": 1}}))
        assert json.loads(ws.receive_text()) == {"type": "ping-echo", "requestId": "r1", "payload": {"n": 1}}
        assert live_manager.transport.connected

    assert not live_manager.transport.connected


def test_binary_frames_are_skipped(live_manager):
    """A binary frame is dropped without closing the connection."""
    client = TestClient(create_bridge_app(live_manager))

    with client.websocket_connect("/ws") as ws:
        ws.send_bytes(b"\x00\x01")
        ws.send_text(json.dumps({"type": "ping", "requestId": "r2"}))
        assert json.loads(ws.receive_text()) == {"type": "ping-echo", "requestId": "r2"}


def test_editor_connects_to_provider_installed_directly():
    """A live provider set via set_workflow_provider accepts the editor."""
    manager = BridgeManager()
    provider = LiveSessionProvider(MessageTransport())
    manager.set_workflow_provider(provider)
    client = TestClient(create_bridge_app(manager))

    with client.websocket_connect("/ws"):
        assert provider.transport.connected

    assert not provider.transport.connected


def test_new_connection_replaces_old_one(live_manager):
    """A second editor takes over and the first is closed with 4000."""
    client = TestClient(create_bridge_app(live_manager))

    with client.websocket_connect("/ws") as first:
        with client.websocket_connect("/ws") as second:
            message = first.receive()
            assert message["type"] == "websocket.close"
            assert message["code"] == CLOSE_REPLACED

            second.send_text(json.dumps({"type": "ping"}))
            assert json.loads(second.receive_text()) == {"type": "ping-echo"}


def test_headless_bridge_refuses_editor():
    """Without a transport the endpoint closes with 1013."""
    client = TestClient(create_bridge_app(BridgeManager()))

    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/ws"):
            pass
    assert exc_info.value.code == CLOSE_NO_TRANSPORT
