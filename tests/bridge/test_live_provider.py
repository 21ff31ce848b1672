"""Tests for the live-editor provider over an in-memory transport."""

from __future__ import annotations

import anyio
import pytest

from wfbridge.bridge.errors import NoPeerConnected, ProtocolError, ProviderConflict, ProviderTimeout
from wfbridge.bridge.providers import LiveSessionProvider
from wfbridge.bridge.transport import Envelope, MessageTransport


@pytest.mark.anyio
async def test_get_current_workflow_round_trip(transport, peer, respond, sample_workflow):
    """A read returns the editor's workflow and staleness flag."""
    provider = LiveSessionProvider(transport)
    results = []

    async def call():
        results.append(await provider.get_current_workflow())

    async with anyio.create_task_group() as tg:
        tg.start_soon(call)
        (request,) = await peer.wait_for(1)
        assert request.type == "get-workflow-request"
        assert request.request_id
        respond(transport, request, {"workflow": sample_workflow, "isStale": True})

    assert results[0].workflow == sample_workflow
    assert results[0].is_stale is True


@pytest.mark.anyio
async def test_editor_without_workflow(transport, peer, respond):
    """An editor with nothing open reports no workflow."""
    provider = LiveSessionProvider(transport)
    results = []

    async def call():
        results.append(await provider.get_current_workflow())

    async with anyio.create_task_group() as tg:
        tg.start_soon(call)
        (request,) = await peer.wait_for(1)
        respond(transport, request, {"workflow": None})

    assert results[0].workflow is None
    assert results[0].is_stale is False


@pytest.mark.anyio
async def test_concurrent_reads_correlate_out_of_order(transport, peer, respond):
    """Replies answered out of order reach the right callers."""
    provider = LiveSessionProvider(transport)
    results: dict[int, object] = {}

    async def call(index):
        results[index] = (await provider.get_current_workflow()).workflow

    async with anyio.create_task_group() as tg:
        tg.start_soon(call, 0)
        await peer.wait_for(1)
        tg.start_soon(call, 1)
        first, second = await peer.wait_for(2)
        respond(transport, second, {"workflow": {"name": "second"}})
        respond(transport, first, {"workflow": {"name": "first"}})

    assert results == {0: {"name": "first"}, 1: {"name": "second"}}


@pytest.mark.anyio
async def test_apply_sends_review_request(transport, peer, respond, sample_workflow):
    """Applies ask the editor for confirmation and return its verdict."""
    provider = LiveSessionProvider(transport, review_timeout=5)
    results = []

    async def call():
        results.append(await provider.apply_workflow(sample_workflow, "add a draft step"))

    async with anyio.create_task_group() as tg:
        tg.start_soon(call)
        (request,) = await peer.wait_for(1)
        assert request.type == "apply-workflow-request"
        assert request.payload == {
            "workflow": sample_workflow,
            "description": "add a draft step",
            "requireConfirmation": True,
        }
        respond(transport, request, {"success": True})

    assert results == [True]


@pytest.mark.anyio
async def test_apply_declined_by_editor(transport, peer, respond, sample_workflow):
    """A declined apply returns False instead of raising."""
    provider = LiveSessionProvider(transport, review_before_apply=False)
    results = []

    async def call():
        results.append(await provider.apply_workflow(sample_workflow))

    async with anyio.create_task_group() as tg:
        tg.start_soon(call)
        (request,) = await peer.wait_for(1)
        assert request.payload["requireConfirmation"] is False
        respond(transport, request, {"success": False, "error": "User rejected the change"})

    assert results == [False]


@pytest.mark.anyio
async def test_apply_conflict(transport, peer, respond, sample_workflow):
    """A conflict reply raises ProviderConflict."""
    provider = LiveSessionProvider(transport)

    async def answer():
        (request,) = await peer.wait_for(1)
        respond(transport, request, {"success": False, "conflict": True, "error": "stale base"})

    async with anyio.create_task_group() as tg:
        tg.start_soon(answer)
        with pytest.raises(ProviderConflict, match="stale base"):
            await provider.apply_workflow(sample_workflow)


@pytest.mark.anyio
async def test_timeout_then_late_response_is_ignored(transport, peer, respond):
    """A reply after the deadline is dropped."""
    provider = LiveSessionProvider(transport, request_timeout=0.05)

    with pytest.raises(ProviderTimeout):
        await provider.get_current_workflow()

    (request,) = peer.sent
    respond(transport, request, {"workflow": {"name": "late"}})
    assert len(transport.pending) == 0


@pytest.mark.anyio
async def test_no_peer_fails_immediately():
    """With no editor attached the read fails at once."""
    provider = LiveSessionProvider(MessageTransport())

    with pytest.raises(NoPeerConnected):
        await provider.get_current_workflow()
    assert len(provider.transport.pending) == 0


@pytest.mark.anyio
async def test_malformed_payload_is_protocol_error(transport, peer, respond, sample_workflow):
    """A payload of the wrong shape raises ProtocolError."""
    provider = LiveSessionProvider(transport)

    async def answer():
        (request,) = await peer.wait_for(1)
        respond(transport, request, {"success": "maybe"})

    async with anyio.create_task_group() as tg:
        tg.start_soon(answer)
        with pytest.raises(ProtocolError):
            await provider.apply_workflow(sample_workflow)


@pytest.mark.anyio
async def test_response_type_must_match_request(transport, peer, sample_workflow):
    """A reply of the wrong type raises ProtocolError."""
    provider = LiveSessionProvider(transport)

    async def answer():
        (request,) = await peer.wait_for(1)
        transport.dispatch_incoming(
            Envelope(type="apply-workflow-response", request_id=request.request_id, payload={"success": True})
        )

    async with anyio.create_task_group() as tg:
        tg.start_soon(answer)
        with pytest.raises(ProtocolError, match="expected 'get-workflow-response'"):
            await provider.get_current_workflow()


def test_notifications_are_ignored(transport):
    """Envelopes without a request id are ignored."""
    LiveSessionProvider(transport)
    transport.dispatch_incoming(Envelope(type="workflow-changed", payload={"name": "x"}))
    assert len(transport.pending) == 0
