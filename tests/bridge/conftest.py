from __future__ import annotations

import anyio
import pytest

from wfbridge.bridge.transport import Envelope, MessageTransport


class FakePeer:
    """Peer that records what the bridge sends to the editor."""

    def __init__(self) -> None:
        self.sent: list[Envelope] = []
        self.closed = False

    def deliver(self, envelope: Envelope) -> None:
        self.sent.append(envelope)

    def close(self) -> None:
        self.closed = True

    async def wait_for(self, count: int, timeout: float = 2.0) -> list[Envelope]:
        with anyio.fail_after(timeout):
            while len(self.sent) < count:
                await anyio.sleep(0.001)
        return self.sent


@pytest.fixture
def make_peer():
    return FakePeer


@pytest.fixture
def peer() -> FakePeer:
    return FakePeer()


@pytest.fixture
def transport(peer: FakePeer) -> MessageTransport:
    transport = MessageTransport()
    transport.set_peer(peer)
    return transport


def reply(transport: MessageTransport, request: Envelope, payload: object) -> None:
    """Answer ``request`` the way the live editor does."""
    response_type = request.type.replace("-request", "-response")
    transport.dispatch_incoming(Envelope(type=response_type, request_id=request.request_id, payload=payload))


@pytest.fixture
def respond():
    return reply
