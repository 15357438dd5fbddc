"""Tests for the MQTT publisher."""

import json
from datetime import datetime
from unittest.mock import MagicMock, patch

import paho.mqtt.client as mqtt
import pytest

from warehouse_shift_sim.config import MQTTConfig, TopicConfig
from warehouse_shift_sim.metrics import calculate_kpis
from warehouse_shift_sim.models import (
    CartActivity,
    CartMovementSample,
    RobotStatus,
    RobotTelemetrySample,
    ShiftSnapshot,
)
from warehouse_shift_sim.publisher import Message, MQTTPublisher, slugify

NOW = datetime(2025, 9, 7, 14, 0)


def queued(publisher):
    return list(publisher._publish_queue.queue)


class TestMQTTPublisher:
    """Tests for MQTTPublisher."""

    @pytest.fixture
    def mqtt_config(self):
        return MQTTConfig(
            broker="localhost",
            port=1883,
            client_id="test-client",
        )

    @pytest.fixture
    def topic_config(self):
        return TopicConfig(topic_prefix="warehouse/v1", site="test_site")

    @pytest.fixture
    def publisher(self, mqtt_config, topic_config):
        return MQTTPublisher(mqtt_config, topic_config)

    @pytest.fixture
    def snapshot(self):
        robot = RobotTelemetrySample(
            time=NOW,
            robot_id="AMR-001",
            status=RobotStatus.ACTIVE,
            location="A4-R2-B",
            battery=42.0,
            tasks_completed=28,
            total_distance=4000,
        )
        cart = CartMovementSample(
            time=NOW,
            cart_id="CART-003",
            status=CartActivity.IDLE,
            items_in_cart=0,
            capacity_utilization=0,
        )
        return ShiftSnapshot(
            robots=[], pickers=[], carts=[], orders=[],
            robot_telemetry=[robot], picker_activity=[],
            order_events=[], cart_movement=[cart],
            shift_start=datetime(2025, 9, 7, 8, 0),
            shift_end=NOW,
            as_of=NOW,
        )

    def test_base_topic(self, publisher):
        assert publisher.base_topic == "warehouse/v1/test_site"

    def test_publish_kpis_topics(self, publisher):
        count = publisher.publish_kpis(calculate_kpis([], [], [], []))

        messages = queued(publisher)
        assert count == 10
        assert len(messages) == 10
        assert messages[0].topic == "warehouse/v1/test_site/_kpi/orders_completed"
        assert messages[6].topic == "warehouse/v1/test_site/_kpi/order_fulfillment_rate"
        assert messages[0].retain is True
        assert messages[0].payload["unit"] == "orders"
        assert "timestamp_ms" in messages[0].payload

    def test_publish_realtime(self, publisher):
        publisher.publish_realtime({"activeRobots": 3})

        (message,) = queued(publisher)
        assert message.topic == "warehouse/v1/test_site/_realtime"
        assert message.payload["activeRobots"] == 3

    def test_publish_latest_state(self, publisher, snapshot):
        count = publisher.publish_latest_state(snapshot)

        topics = [m.topic for m in queued(publisher)]
        assert count == 2
        assert topics == [
            "warehouse/v1/test_site/_state/robots/AMR-001",
            "warehouse/v1/test_site/_state/carts/CART-003",
        ]

    def test_publish_status_uses_root_topic(self, publisher, snapshot):
        publisher.publish_status(snapshot)

        (message,) = queued(publisher)
        assert message.topic == "shift-sim/status"
        assert message.payload["site"] == "test_site"
        assert message.payload["as_of"] == "2025-09-07T14:00:00"

    def test_dry_run_connect(self, publisher):
        result = publisher.connect(dry_run=True)

        assert result is True
        assert publisher.connected is True
        publisher.disconnect()

    def test_dry_run_disconnect_flushes_queue(self, publisher):
        publisher.connect(dry_run=True)
        publisher.publish_kpis(calculate_kpis([], [], [], []))
        publisher.disconnect()

        assert publisher.connected is False
        assert publisher.messages_published == 10

    def test_do_publish_with_client(self, publisher):
        publisher._client = MagicMock()
        publisher._client.publish.return_value.rc = mqtt.MQTT_ERR_SUCCESS
        publisher._connected = True

        publisher._do_publish(Message(topic="t", payload={"value": 1}, retain=True))

        publisher._client.publish.assert_called_once_with(
            "t", json.dumps({"value": 1}), qos=1, retain=True
        )
        assert publisher.messages_published == 1

    def test_do_publish_failure_is_dropped(self, publisher):
        publisher._client = MagicMock()
        publisher._client.publish.return_value.rc = mqtt.MQTT_ERR_NO_CONN
        publisher._connected = True

        publisher._do_publish(Message(topic="t", payload={}))

        assert publisher.messages_published == 0
        assert publisher._messages_dropped == 1

    def test_do_publish_without_connection_is_dropped(self, publisher):
        publisher._do_publish(Message(topic="t", payload={}))

        assert publisher._messages_dropped == 1

    def test_connect_waits_for_connack(self, publisher):
        with patch("warehouse_shift_sim.publisher.mqtt.Client") as client_cls:
            client = client_cls.return_value
            client.connect.side_effect = lambda *args: publisher._on_connect(
                client, None, None, 0
            )

            assert publisher.connect(timeout=1) is True

        client.loop_start.assert_called_once()
        assert publisher.connected is True

        client.publish.return_value.rc = mqtt.MQTT_ERR_SUCCESS
        publisher.publish_realtime({"activeRobots": 1})
        publisher.disconnect()

        assert publisher.messages_published == 1
        client.disconnect.assert_called_once()

    def test_connect_times_out_without_connack(self, publisher):
        with patch("warehouse_shift_sim.publisher.mqtt.Client") as client_cls:
            assert publisher.connect(timeout=0.01) is False

        client_cls.return_value.loop_stop.assert_called_once()
        assert publisher.connected is False

    def test_connect_refused(self, publisher):
        with patch("warehouse_shift_sim.publisher.mqtt.Client") as client_cls:
            client = client_cls.return_value
            client.connect.side_effect = lambda *args: publisher._on_connect(
                client, None, None, 5
            )

            assert publisher.connect(timeout=1) is False

    def test_connect_network_error(self, publisher):
        with patch("warehouse_shift_sim.publisher.mqtt.Client") as client_cls:
            client_cls.return_value.connect.side_effect = ConnectionRefusedError("no broker")

            assert publisher.connect(timeout=1) is False

    def test_disconnect_without_connect_drops_queue(self, publisher):
        publisher.publish_realtime({"activeRobots": 1})

        publisher.disconnect()

        assert queued(publisher) == []
        assert publisher._messages_dropped == 1

    def test_invalid_topic_is_dropped(self, publisher):
        publisher._client = MagicMock()
        publisher._client.publish.side_effect = ValueError("Publish topic cannot contain wildcards.")
        publisher._connected = True

        assert publisher._do_publish(Message(topic="bad/#", payload={})) is False
        assert publisher._messages_dropped == 1

    def test_on_connect_callbacks(self, publisher):
        publisher._on_connect(None, None, None, 0)
        assert publisher.connected is True

        publisher._on_disconnect(None, None, None, 0)
        assert publisher.connected is False


class TestSlugify:
    """Tests for KPI topic slugs."""

    def test_slugify(self):
        assert slugify("Order Fulfillment Rate") == "order_fulfillment_rate"
        assert slugify("Carts in Use") == "carts_in_use"
        assert slugify("Picks Per Hour") == "picks_per_hour"


class TestMessage:
    """Tests for Message dataclass."""

    def test_message_defaults(self):
        msg = Message(topic="test", payload={"value": 1})

        assert msg.retain is False
        assert msg.qos == 1
