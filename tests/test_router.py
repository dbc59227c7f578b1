"""Tests del router de observaciones.

Cubre:
1. status -> node ledger + node count
2. topic-depth -> topic ledger + topic gauges
3. topic-channel-depth -> channel ledger + channel gauges
4. Filtro ephemeral
5. Errores y payloads malformados
"""

from unittest.mock import MagicMock

import pytest

from nsq_exporter.observations import (
    EphemeralFilter,
    NodeIdentity,
    NodeStatus,
    ObservationRouter,
    Ready,
    TopicChannelDepth,
    TopicDepth,
    WatcherError,
    bind_emitter,
)
from nsq_exporter.state import ExporterState


def node_count(registry):
    return registry.get_sample_value("nsq_cluster_node_count")


# =============================================================================
# STATUS
# =============================================================================

class TestNodeStatus:

    def test_status_records_node(self, router, state, registry, node_a):
        router.handle(NodeStatus({}, node_a))

        assert "nsqd-a:4151" in state.nodes
        assert node_count(registry) == 1.0

    def test_node_count_follows_ledger(self, router, state, registry, node_a, node_b):
        router.handle(NodeStatus({}, node_a))
        router.handle(NodeStatus({}, node_b))
        router.handle(NodeStatus({}, node_a))

        assert len(state.nodes) == 2
        assert node_count(registry) == 2.0

    def test_touch_uses_processing_time(self, router, state, clock, node_a):
        clock.now = 42.0
        router.handle(NodeStatus({"uptime": "1h"}, node_a))

        assert state.nodes.last_seen("nsqd-a:4151") == 42.0

    def test_node_identity_object(self, router, state):
        node = NodeIdentity(broadcast_address="10.0.0.5", http_port=4151)
        router.handle(NodeStatus({}, node))

        assert "10.0.0.5:4151" in state.nodes

    def test_camel_case_node(self, router, state):
        router.handle(NodeStatus({}, {"broadcastAddress": "nsqd-c", "httpPort": 4251}))

        assert "nsqd-c:4251" in state.nodes


# =============================================================================
# TOPIC DEPTH
# =============================================================================

class TestTopicDepth:

    def test_topic_depth_sets_gauges(self, router, state, registry, node_a):
        router.handle(TopicDepth("orders", 5, {"message_count": 10}, node_a))

        labels = {"topic": "orders", "node": "nsqd-a:4151"}
        assert ("orders", "nsqd-a:4151") in state.topics
        assert registry.get_sample_value("nsq_topic_depth", labels) == 5.0
        assert registry.get_sample_value("nsq_topic_message_count", labels) == 10.0

    def test_same_topic_on_two_nodes(self, router, state, node_a, node_b):
        router.handle(TopicDepth("orders", 1, {"message_count": 1}, node_a))
        router.handle(TopicDepth("orders", 2, {"message_count": 2}, node_b))

        assert len(state.topics) == 2

    def test_repeated_observation_is_idempotent(self, router, state, registry, node_a):
        event = TopicDepth("orders", 5, {"message_count": 10}, node_a)
        router.handle(event)
        router.handle(event)

        assert len(state.topics) == 1
        assert registry.get_sample_value(
            "nsq_topic_depth", {"topic": "orders", "node": "nsqd-a:4151"}
        ) == 5.0

    def test_last_write_wins(self, router, registry, node_a):
        router.handle(TopicDepth("orders", 5, {"message_count": 10}, node_a))
        router.handle(TopicDepth("orders", 0, {"message_count": 12}, node_a))

        labels = {"topic": "orders", "node": "nsqd-a:4151"}
        assert registry.get_sample_value("nsq_topic_depth", labels) == 0.0
        assert registry.get_sample_value("nsq_topic_message_count", labels) == 12.0


# =============================================================================
# TOPIC CHANNEL DEPTH
# =============================================================================

class TestTopicChannelDepth:

    def test_each_channel_recorded(self, router, state, registry):
        router.handle(TopicChannelDepth("orders", 5, {"billing": 3, "shipping": 2}))

        assert ("orders", "billing") in state.channels
        assert ("orders", "shipping") in state.channels
        assert registry.get_sample_value(
            "nsq_channel_depth", {"topic": "orders", "channel": "shipping"}
        ) == 2.0

    def test_empty_channel_map(self, router, state):
        router.handle(TopicChannelDepth("orders", 0, {}))

        assert len(state.channels) == 0


# =============================================================================
# EPHEMERAL FILTER
# =============================================================================

class TestEphemeralFilter:

    def test_ephemeral_topic_depth_ignored(self, router, state, registry, node_a):
        router.handle(TopicDepth("orders#ephemeral", 5, {"message_count": 10}, node_a))

        assert len(state.topics) == 0
        assert registry.get_sample_value(
            "nsq_topic_depth", {"topic": "orders#ephemeral", "node": "nsqd-a:4151"}
        ) is None
        assert router.stats.filtered == 1

    def test_ephemeral_topic_drops_whole_channel_event(self, router, state):
        router.handle(TopicChannelDepth("orders#ephemeral", 3, {"billing": 3}))

        assert len(state.channels) == 0

    def test_ephemeral_channel_skipped_siblings_kept(self, router, state, registry):
        router.handle(
            TopicChannelDepth("orders", 10, {"billing": 3, "shipping#ephemeral": 7})
        )

        assert list(dict(state.channels.all_entries())) == [("orders", "billing")]
        assert registry.get_sample_value(
            "nsq_channel_depth", {"topic": "orders", "channel": "billing"}
        ) == 3.0
        assert registry.get_sample_value(
            "nsq_channel_depth", {"topic": "orders", "channel": "shipping#ephemeral"}
        ) is None

    def test_filter_disabled(self, clock, registry, node_a):
        state = ExporterState.create(
            ephemeral=EphemeralFilter.disabled(), registry=registry, clock=clock
        )
        router = ObservationRouter(state)
        router.handle(TopicDepth("orders#ephemeral", 5, {"message_count": 10}, node_a))

        assert ("orders#ephemeral", "nsqd-a:4151") in state.topics

    def test_custom_suffix(self, clock, registry):
        state = ExporterState.create(
            ephemeral=EphemeralFilter(suffix=".tmp"), registry=registry, clock=clock
        )
        router = ObservationRouter(state)
        router.handle(TopicChannelDepth("orders", 1, {"a.tmp": 1, "b#ephemeral": 1}))

        assert list(dict(state.channels.all_entries())) == [("orders", "b#ephemeral")]

    def test_empty_suffix_rejected(self):
        with pytest.raises(ValueError):
            EphemeralFilter(enabled=True, suffix="")


# =============================================================================
# ERRORS / READY / MALFORMED
# =============================================================================

class TestErrorsAndMalformed:

    def test_error_counts_and_logs(self, router, state, registry, caplog):
        with caplog.at_level("ERROR"):
            router.handle(WatcherError(RuntimeError("lookupd unreachable")))

        assert registry.get_sample_value("nsq_watcher_error_count_total") == 1.0
        assert "lookupd unreachable" in caplog.text
        assert len(state.nodes) == 0

    def test_ready_is_logged(self, router, caplog):
        with caplog.at_level("INFO"):
            router.handle(Ready())

        assert "[READY]" in caplog.text
        assert router.stats.handled["ready"] == 1

    def test_node_without_port_skipped(self, router, state, node_a):
        router.handle(NodeStatus({}, {"broadcast_address": "nsqd-x"}))
        router.handle(NodeStatus({}, node_a))

        assert list(dict(state.nodes.all_entries())) == ["nsqd-a:4151"]
        assert router.stats.malformed == 1

    def test_meta_without_message_count_skipped(self, router, state, node_a):
        router.handle(TopicDepth("orders", 5, {"depth": 5}, node_a))

        assert len(state.topics) == 0
        assert router.stats.malformed == 1

    def test_bad_channel_depth_does_not_touch_siblings(self, router, state, registry):
        router.handle(TopicChannelDepth("orders", 5, {"billing": "lots", "shipping": 2}))

        assert ("orders", "billing") not in state.channels
        assert ("orders", "shipping") in state.channels
        assert router.stats.malformed == 1

    def test_channel_map_not_a_mapping_skipped(self, router, state):
        router.handle(TopicChannelDepth("orders", 1, None))
        router.handle(TopicChannelDepth("orders", 1, ["billing", 3]))

        assert len(state.channels) == 0
        assert router.stats.malformed == 2

    def test_topic_not_a_string_skipped(self, router, state, node_a):
        router.handle(TopicDepth(None, 1, {"message_count": 1}, node_a))
        router.handle(TopicChannelDepth(42, 1, {"billing": 3}))

        assert len(state.topics) == 0
        assert len(state.channels) == 0
        assert router.stats.malformed == 2

    def test_channel_name_not_a_string_skipped(self, router, state):
        router.handle(TopicChannelDepth("orders", 4, {None: 1, "billing": 3}))

        assert list(dict(state.channels.all_entries())) == [("orders", "billing")]
        assert router.stats.malformed == 1

    def test_malformed_event_through_emitter_does_not_raise(self, router, state):
        callbacks = {}
        emitter = MagicMock()
        emitter.on.side_effect = lambda name, callback: callbacks.__setitem__(name, callback)
        bind_emitter(emitter, router.handle)

        callbacks["topic-channel-depth"]("orders", 1, None)

        assert router.stats.malformed == 1

    def test_negative_depth_rejected(self, router, state, node_a):
        router.handle(TopicDepth("orders", -1, {"message_count": 1}, node_a))

        assert len(state.topics) == 0

    def test_unknown_event_type(self, router):
        with pytest.raises(TypeError):
            router.handle(MagicMock())
