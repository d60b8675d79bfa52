"""Tests for EnvelopePump and MemoryTransport."""

import asyncio
import random

import pytest

from webbridge.channel import EnvelopePump, MemoryTransport
from webbridge.core.errors import TransportClosed
from webbridge.core.messages import MessageEnvelope, MessageType
from webbridge.core.routing import MessageRouter

from tests.helpers import drain


@pytest.mark.asyncio
async def test_memory_transport_round_trip():
    host, ui = MemoryTransport.pair()
    await host.send(MessageEnvelope(MessageType.STATUS, {"message": "hi"}, request_id="r1"))

    frame = await ui.receive()
    assert frame["type"] == "status"
    assert frame["payload"] == {"message": "hi"}
    assert frame["requestId"] == "r1"


@pytest.mark.asyncio
async def test_memory_transport_close_ends_both_sides():
    host, ui = MemoryTransport.pair()
    await ui.close()

    with pytest.raises(TransportClosed):
        await host.receive()
    with pytest.raises(TransportClosed):
        await ui.receive()
    with pytest.raises(TransportClosed):
        await ui.send(MessageEnvelope(MessageType.STATUS, {}))
    await ui.close()


@pytest.mark.asyncio
async def test_chunks_of_one_request_dispatch_in_order_despite_slow_handler():
    router = MessageRouter("ui")
    seen = []

    async def handler(envelope):
        # Uneven handler latency must not reorder one request's chunks.
        await asyncio.sleep(random.random() / 500)
        seen.append((envelope.request_id, envelope.payload["token"]))

    router.register(MessageType.STREAM_CHUNK, handler)
    host, ui = MemoryTransport.pair()
    pump = EnvelopePump(ui, router)
    run = asyncio.create_task(pump.run())

    for i in range(20):
        for rid in ("a", "b"):
            await host.send(MessageEnvelope(
                MessageType.STREAM_CHUNK,
                {"requestId": rid, "domain": "analysis", "token": f"{rid}{i}"},
                request_id=rid,
            ))
    await drain(lambda: len(seen) == 40)
    await pump.wait_idle()

    for rid in ("a", "b"):
        assert [token for r, token in seen if r == rid] == [f"{rid}{i}" for i in range(20)]

    await host.close()
    await run


@pytest.mark.asyncio
async def test_payload_request_id_is_used_for_ordering():
    router = MessageRouter()
    seen = []

    async def handler(envelope):
        await asyncio.sleep(0.001 if envelope.payload["token"] == "first" else 0)
        seen.append(envelope.payload["token"])

    router.register(MessageType.STREAM_CHUNK, handler)
    host, ui = MemoryTransport.pair()
    pump = EnvelopePump(ui, router)

    pump.feed({"type": "stream_chunk", "payload": {"requestId": "r", "domain": "analysis", "token": "first"}})
    pump.feed({"type": "stream_chunk", "payload": {"requestId": "r", "domain": "analysis", "token": "second"}})
    await pump.wait_idle()

    assert seen == ["first", "second"]


@pytest.mark.asyncio
async def test_uncorrelated_envelope_does_not_wait_for_slow_handler():
    router = MessageRouter()
    release = asyncio.Event()
    seen = []

    async def slow(envelope):
        await release.wait()
        seen.append("slow")

    router.register(MessageType.REQUEST_MODEL_DATA, slow)
    router.register(MessageType.TAB_CHANGED, lambda e: seen.append("fast"))
    host, ui = MemoryTransport.pair()
    pump = EnvelopePump(ui, router)

    pump.feed({"type": "request_model_data", "payload": {}})
    pump.feed({"type": "tab_changed", "payload": {"tabId": "analysis"}})
    await drain(lambda: "fast" in seen)
    await asyncio.sleep(0.01)

    assert seen == ["fast"]
    assert pump.pending == 1
    release.set()
    await pump.wait_idle()
    assert seen == ["fast", "slow"]
    assert pump.pending == 0


@pytest.mark.asyncio
async def test_malformed_frames_are_counted_and_skipped():
    router = MessageRouter()
    seen = []
    router.register(MessageType.STATUS, seen.append)
    host, ui = MemoryTransport.pair()
    pump = EnvelopePump(ui, router)
    run = asyncio.create_task(pump.run())

    await host.send_raw("this is not json")
    await host.send_raw('{"payload": {}}')
    await host.send(MessageEnvelope(MessageType.STATUS, {"message": "ok"}))
    await drain(lambda: len(seen) == 1)

    assert pump.received == 3
    assert pump.malformed == 2

    await host.close()
    await run


@pytest.mark.asyncio
async def test_unknown_type_is_routed_to_unroutable_callback():
    reported = []
    router = MessageRouter(on_unroutable=reported.append)
    host, ui = MemoryTransport.pair()
    pump = EnvelopePump(ui, router)

    pump.feed({"type": "from_the_future", "payload": {}})
    await pump.wait_idle()

    assert [e.type for e in reported] == ["from_the_future"]


@pytest.mark.asyncio
async def test_stop_cancels_pending_dispatches():
    router = MessageRouter()

    async def never(envelope):
        await asyncio.Event().wait()

    router.register(MessageType.STATUS, never)
    host, ui = MemoryTransport.pair()
    pump = EnvelopePump(ui, router)
    pump.feed({"type": "status", "payload": {}})
    pump.feed({"type": "status", "payload": {}, "requestId": "r"})
    await asyncio.sleep(0)

    assert pump.pending == 2
    await pump.stop()
    assert pump.pending == 0
