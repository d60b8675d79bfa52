"""
Host <-> UI round trips over the in-memory transport.
"""

import asyncio
from contextlib import asynccontextmanager

import pytest

from webbridge.channel import MemoryTransport
from webbridge.client import BridgeClient
from webbridge.core.messages import MessageEnvelope, MessageType, StreamingDomain
from webbridge.core.streaming import StreamingPolicy, StreamState
from webbridge.host import BridgeHost

from tests.helpers import ManualScheduler, ScriptedGenerator, drain


@asynccontextmanager
async def bridge(generator, settings, scheduler=None, **host_kwargs):
    host_end, ui_end = MemoryTransport.pair()
    host = BridgeHost(host_end, settings=settings, generator=generator, **host_kwargs)
    serve = asyncio.create_task(host.serve())
    client = BridgeClient(ui_end, scheduler=scheduler or ManualScheduler())
    await client.start()
    try:
        yield host, client
    finally:
        await client.close()
        await asyncio.wait_for(serve, timeout=2)


@pytest.mark.asyncio
async def test_prose_analysis_streams_and_settles(settings):
    generator = ScriptedGenerator(["Vary ", "sentence ", "length."])
    async with bridge(generator, settings) as (host, client):
        request_id = await client.analyze_prose("The cat sat. The dog sat. The bird sat.")
        result = await client.state.wait_for_result(StreamingDomain.ANALYSIS, timeout=2)

        session = client.streams.session(StreamingDomain.ANALYSIS)
        assert session.request_id == request_id
        assert session.state is StreamState.SETTLED
        assert session.display_content == "Vary sentence length."
        assert session.token_count == 3
        assert not session.has_pending_timers
        assert result["result"] == "Vary sentence length."
        assert result["toolName"] == "prose_analysis"
        assert client.state.status == ""


@pytest.mark.asyncio
async def test_paced_display_over_the_wire(settings):
    scheduler = ManualScheduler()
    generator = ScriptedGenerator(["a", "b", "c"], hold=True)
    async with bridge(generator, settings, scheduler) as (host, client):
        await client.lookup_dictionary("abc")
        session = client.streams.session(StreamingDomain.DICTIONARY)
        await drain(lambda: session.token_count == 3)

        assert session.is_buffering
        assert session.display_content == ""
        scheduler.advance(5.0)
        assert session.display_content == ""
        scheduler.advance(0.1)
        assert session.display_content == "abc"

        generator.release()
        await client.state.wait_for_result(StreamingDomain.DICTIONARY, timeout=2)
        assert session.state is StreamState.SETTLED
        assert scheduler.pending == 0


@pytest.mark.asyncio
async def test_user_cancel_stops_host_stream(settings):
    generator = ScriptedGenerator(["partial "], hold=True)
    async with bridge(generator, settings) as (host, client):
        request_id = await client.analyze_dialogue('"Hello," he said.')
        session = client.streams.session(StreamingDomain.ANALYSIS)
        await drain(lambda: session.buffer == "partial ")

        assert await client.cancel(StreamingDomain.ANALYSIS) == request_id
        assert session.cancelled
        assert session.display_content == ""

        await drain(lambda: not host.producer.is_active(request_id))
        await asyncio.sleep(0.01)
        assert StreamingDomain.ANALYSIS not in client.state.results
        assert session.state is StreamState.SETTLED
        assert generator.closed == 1


@pytest.mark.asyncio
async def test_new_request_replaces_running_stream_in_slot(settings):
    generator = ScriptedGenerator(["x"], hold=True)
    async with bridge(generator, settings) as (host, client):
        first = await client.generate_context("Chapter one.")
        session = client.streams.session(StreamingDomain.CONTEXT)
        await drain(lambda: session.buffer == "x")

        second = await client.generate_context("Chapter two.")
        await drain(lambda: session.request_id == second and session.buffer == "x")
        assert first != second

        generator.release()
        await drain(lambda: session.state is StreamState.SETTLED)
        assert session.request_id == second
        assert session.display_content == "x"


@pytest.mark.asyncio
async def test_generator_failure_reaches_ui(settings):
    generator = ScriptedGenerator(["half "], fail_with="model overloaded")
    async with bridge(generator, settings) as (host, client):
        await client.analyze_prose("Text.")
        session = client.streams.session(StreamingDomain.ANALYSIS)
        await drain(lambda: session.state is StreamState.SETTLED)

        assert session.display_content == "half "
        assert not session.cancelled
        assert client.state.errors[-1].source == "analysis"
        assert "model overloaded" in client.state.errors[-1].details
        assert StreamingDomain.ANALYSIS not in client.state.results


@pytest.mark.asyncio
async def test_settings_and_model_round_trip(settings):
    async with bridge(ScriptedGenerator(), settings) as (host, client):
        await client.request_settings()
        await drain(lambda: client.state.settings)
        assert client.state.settings["maxTokens"] == 10000

        await client.update_setting("maxTokens", 2000)
        await drain(lambda: client.state.settings.get("maxTokens") == 2000)

        await client.set_model("dictionary", "openai/gpt-4o-mini")
        await drain(lambda: client.state.model_data)
        assert client.state.model_data["selections"]["dictionary"] == "openai/gpt-4o-mini"
        assert settings.get_models()["dictionary"] == "openai/gpt-4o-mini"


@pytest.mark.asyncio
async def test_unknown_message_type_gets_error_reply(settings):
    async with bridge(ScriptedGenerator(), settings) as (host, client):
        await client.transport.send_raw('{"type": "summon_dragon", "payload": {}}')
        await drain(lambda: client.state.errors)

        error = client.state.errors[-1]
        assert error.source == "unknown"
        assert error.message == "Unknown message type"
        assert "summon_dragon" in error.details
        assert host.router.stats.unroutable == 1


@pytest.mark.asyncio
async def test_failing_handler_is_reported_and_channel_survives(settings):
    async with bridge(ScriptedGenerator(["ok"]), settings) as (host, client):
        await client.send(MessageType.CANCEL_DICTIONARY_REQUEST, {"domain": "dictionary"})
        await drain(lambda: client.state.errors)

        error = client.state.errors[-1]
        assert error.source == "dictionary"
        assert error.message == "Error processing request"

        await client.lookup_dictionary("still works")
        result = await client.state.wait_for_result(StreamingDomain.DICTIONARY, timeout=2)
        assert result["result"] == "ok"


@pytest.mark.asyncio
async def test_tab_change_is_recorded_on_host(settings):
    async with bridge(ScriptedGenerator(), settings) as (host, client):
        await client.tab_changed("dictionary")
        ui_group = next(g for g in host.groups if g.message_types == frozenset({MessageType.TAB_CHANGED}))
        await drain(lambda: ui_group.active_tab == "dictionary")


@pytest.mark.asyncio
async def test_host_serve_returns_when_ui_disconnects(settings):
    host_end, ui_end = MemoryTransport.pair()
    host = BridgeHost(host_end, settings=settings, generator=ScriptedGenerator(hold=True))
    serve = asyncio.create_task(host.serve())

    await ui_end.send(MessageEnvelope(MessageType.ANALYZE_PROSE, {"text": "x"}, request_id="r1"))
    await drain(lambda: host.producer.is_active("r1"))
    await ui_end.close()

    await asyncio.wait_for(serve, timeout=2)
    assert host.producer.active_requests == []


@pytest.mark.asyncio
async def test_real_timers_pace_end_to_end(settings):
    host_end, ui_end = MemoryTransport.pair()
    host = BridgeHost(host_end, settings=settings, generator=ScriptedGenerator(["a", "b"], hold=True))
    serve = asyncio.create_task(host.serve())
    client = BridgeClient(ui_end, policy=StreamingPolicy(buffer_seconds=0.2, debounce_seconds=0.01))
    await client.start()
    try:
        await client.analyze_prose("x")
        session = client.streams.session(StreamingDomain.ANALYSIS)
        await drain(lambda: session.buffer == "ab")
        assert session.display_content == ""
        await drain(lambda: session.display_content == "ab")
        assert session.state is StreamState.ACTIVE
    finally:
        await client.close()
        await asyncio.wait_for(serve, timeout=2)
