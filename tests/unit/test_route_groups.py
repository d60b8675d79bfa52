"""Tests for route group composition and the startup self-check."""

import pytest

from webbridge.core.errors import MissingRouteError, RoutingError
from webbridge.core.messages import MessageType
from webbridge.core.routing import MessageRouter, RouteGroup, include_all, verify_groups
from webbridge.core.streaming import StreamingSessions, StreamProducer
from webbridge.client import UiState
from webbridge.host import build_host_router, describe_routes

from tests.helpers import RecordingPost, ScriptedGenerator


class _Group:
    def __init__(self, types):
        self.message_types = frozenset(types)

    def register_routes(self, router):
        for message_type in self.message_types:
            router.register(message_type, lambda e: None)


def test_groups_satisfy_protocol():
    assert isinstance(_Group([MessageType.STATUS]), RouteGroup)
    assert isinstance(StreamingSessions(), RouteGroup)
    assert isinstance(UiState(), RouteGroup)


def test_verify_passes_for_disjoint_groups():
    router = MessageRouter()
    groups = [_Group([MessageType.STATUS]), _Group([MessageType.ERROR, MessageType.MODEL_DATA])]
    include_all(router, groups)
    verify_groups(router, groups)
    assert router.handler_count == 3


def test_verify_detects_missing_route():
    router = MessageRouter()
    groups = [_Group([MessageType.STATUS]), _Group([MessageType.ERROR])]
    router.include(groups[0])

    with pytest.raises(MissingRouteError) as exc_info:
        verify_groups(router, groups)
    assert exc_info.value.missing == ["error"]


def test_verify_detects_undeclared_routes():
    router = MessageRouter()
    groups = [_Group([MessageType.STATUS])]
    include_all(router, groups)
    router.register(MessageType.ERROR, lambda e: None)

    with pytest.raises(RoutingError):
        verify_groups(router, groups)


def test_host_route_table_is_complete_and_disjoint(settings):
    post = RecordingPost()
    router, groups = build_host_router(post, StreamProducer(post), ScriptedGenerator(), settings)

    declared = [t for group in groups for t in group.message_types]
    assert len(declared) == len(set(declared))
    assert router.handler_count == len(declared)
    for message_type in (
        MessageType.ANALYZE_DIALOGUE,
        MessageType.ANALYZE_PROSE,
        MessageType.LOOKUP_DICTIONARY,
        MessageType.GENERATE_CONTEXT,
        MessageType.TAB_CHANGED,
        MessageType.REQUEST_SETTINGS_DATA,
        MessageType.UPDATE_SETTING,
        MessageType.REQUEST_MODEL_DATA,
        MessageType.SET_MODEL_SELECTION,
        MessageType.CANCEL_ANALYSIS_REQUEST,
        MessageType.CANCEL_DICTIONARY_REQUEST,
        MessageType.CANCEL_CONTEXT_REQUEST,
    ):
        assert router.has_handler(message_type), message_type


def test_host_and_ui_tables_cover_every_message_type(settings):
    post = RecordingPost()
    host_router, _ = build_host_router(post, StreamProducer(post), ScriptedGenerator(), settings)
    ui_router = MessageRouter("ui")
    include_all(ui_router, [StreamingSessions(), UiState()])

    covered = set(host_router.registered_types()) | set(ui_router.registered_types())
    assert covered == set(MessageType)
    assert not set(host_router.registered_types()) & set(ui_router.registered_types())


def test_describe_routes_lists_groups(settings):
    table = describe_routes(settings)
    assert table["ConfigurationHandler"] == sorted([
        "request_model_data",
        "request_settings_data",
        "set_model_selection",
        "update_setting",
    ])
    assert table["UIHandler"] == ["tab_changed"]
    assert "cancel_analysis_request" in table["AnalysisHandler"]
