"""
WebSocket bridge and HTTP introspection tests.
"""

import pytest
from fastapi import WebSocketDisconnect
from fastapi.testclient import TestClient

from webbridge.core.messages import PROTOCOL_VERSION, MessageType
from webbridge.infra.config import get_default_config
from webbridge.infra.settings import SettingsStore
from webbridge.web.app import create_app

from tests.helpers import ScriptedGenerator


def receive_until(ws, predicate, limit=50):
    frames = []
    for _ in range(limit):
        frame = ws.receive_json()
        frames.append(frame)
        if predicate(frame):
            return frames
    raise AssertionError(f"predicate never matched; got {[f.get('type') for f in frames]}")


def _client(api_key="", tokens=None):
    config = get_default_config()
    config["bridge"]["web"]["api_key"] = api_key
    app = create_app(
        config,
        generator=ScriptedGenerator(tokens or ["Show, ", "don't ", "tell."]),
        settings=SettingsStore(config, persist=False),
    )
    return TestClient(app)


def test_protocol_endpoint_lists_message_types():
    response = _client().get("/api/protocol")
    assert response.status_code == 200
    body = response.json()
    assert body["version"] == PROTOCOL_VERSION
    assert set(body["message_types"]) == {t.value for t in MessageType}


def test_routes_endpoint_lists_host_groups():
    body = _client().get("/api/routes").json()
    assert body["groups"]["UIHandler"] == ["tab_changed"]
    assert "lookup_dictionary" in body["groups"]["DictionaryHandler"]
    assert body["active_connections"] == 0


def test_ws_analysis_streams_in_order():
    client = _client()
    with client.websocket_connect("/ws/bridge") as ws:
        ws.send_json({"type": "analyze_prose", "payload": {"text": "He was very sad."}, "requestId": "r1"})
        frames = receive_until(ws, lambda f: f["type"] == "analysis_result")

    types = [f["type"] for f in frames]
    assert types[0] == "status"
    stream = [f for f in frames if f.get("requestId") == "r1"]
    assert [f["type"] for f in stream] == [
        "stream_started",
        "stream_chunk",
        "stream_chunk",
        "stream_chunk",
        "stream_complete",
        "analysis_result",
    ]
    tokens = [f["payload"]["token"] for f in stream if f["type"] == "stream_chunk"]
    assert "".join(tokens) == "Show, don't tell."
    assert stream[-2]["payload"]["content"] == "Show, don't tell."
    assert stream[-1]["payload"]["result"] == "Show, don't tell."


def test_ws_settings_request():
    with _client().websocket_connect("/ws/bridge") as ws:
        ws.send_json({"type": "request_settings_data", "payload": {}})
        frame = ws.receive_json()
    assert frame["type"] == "settings_data"
    assert "temperature" in frame["payload"]["settings"]


def test_ws_unknown_type_and_bad_frames_keep_connection_alive():
    with _client().websocket_connect("/ws/bridge") as ws:
        ws.send_text("not json at all")
        ws.send_json({"payload": {}})
        ws.send_json({"type": "summon_dragon", "payload": {}})
        error = ws.receive_json()
        assert error["type"] == "error"
        assert error["payload"]["source"] == "unknown"

        ws.send_json({"type": "request_model_data", "payload": {}})
        assert ws.receive_json()["type"] == "model_data"


class TestAuth:
    def test_http_requires_key_when_configured(self):
        client = _client(api_key="s3cret")
        assert client.get("/api/protocol").status_code == 401
        assert client.get("/api/protocol", headers={"X-API-Key": "wrong"}).status_code == 401
        assert client.get("/api/protocol", headers={"X-API-Key": "s3cret"}).status_code == 200
        assert client.get("/api/routes?api_key=s3cret").status_code == 200

    def test_ws_rejects_missing_key(self):
        client = _client(api_key="s3cret")
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/ws/bridge"):
                pass
        assert exc_info.value.code == 4001

    def test_ws_accepts_query_key(self):
        client = _client(api_key="s3cret")
        with client.websocket_connect("/ws/bridge?api_key=s3cret") as ws:
            ws.send_json({"type": "request_settings_data", "payload": {}})
            assert ws.receive_json()["type"] == "settings_data"
