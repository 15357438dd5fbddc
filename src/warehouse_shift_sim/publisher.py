"""MQTT publisher for shift KPIs, live counters and latest entity state."""

import json
import logging
import re
import threading
import time
from dataclasses import dataclass
from queue import Empty, Queue
from typing import Any, Dict, Iterable, Optional

import paho.mqtt.client as mqtt

from .config import MQTTConfig, TopicConfig
from .models import KPI, ShiftSnapshot

logger = logging.getLogger(__name__)


def slugify(name: str) -> str:
    """'Order Fulfillment Rate' -> 'order_fulfillment_rate'."""
    return re.sub(r"[^a-z0-9]+", "_", name.lower()).strip("_")


@dataclass
class Message:
    """MQTT message to be published."""

    topic: str
    payload: Dict[str, Any]
    retain: bool = False
    qos: int = 1


class MQTTPublisher:
    """MQTT client that publishes through a background queue.

    Messages are queued by the ``publish_*`` methods and sent by one worker
    thread. ``disconnect`` enqueues a stop marker, so everything queued
    before it is still sent.
    """

    # Root-level status topic, outside the site path
    CONTROL_ROOT = "shift-sim"
    STATUS_TOPIC = f"{CONTROL_ROOT}/status"

    def __init__(self, mqtt_config: MQTTConfig, topic_config: TopicConfig):
        self.mqtt_config = mqtt_config
        self.topic_config = topic_config

        self._client: Optional[mqtt.Client] = None
        self._connected = False
        self._connack = threading.Event()
        # None is the worker's stop marker
        self._publish_queue: "Queue[Optional[Message]]" = Queue()
        self._worker: Optional[threading.Thread] = None
        self._dry_run = False

        # Stats
        self._messages_published = 0
        self._messages_dropped = 0

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def base_topic(self) -> str:
        return f"{self.topic_config.topic_prefix}/{self.topic_config.site}"

    @property
    def messages_published(self) -> int:
        return self._messages_published

    def _create_client(self) -> mqtt.Client:
        client = mqtt.Client(
            client_id=self.mqtt_config.client_id,
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
        )
        if self.mqtt_config.username:
            client.username_pw_set(self.mqtt_config.username, self.mqtt_config.password)
        client.on_connect = self._on_connect
        client.on_disconnect = self._on_disconnect
        return client

    def connect(self, dry_run: bool = False, timeout: float = 10.0) -> bool:
        """Connect and start the publish worker; False if the broker never answers."""
        self._dry_run = dry_run
        if dry_run:
            logger.info("Dry run mode - messages go to the debug log only")
            self._connected = True
            self._start_worker()
            return True

        broker, port = self.mqtt_config.broker, self.mqtt_config.port
        client = self._create_client()
        logger.info(f"Connecting to MQTT broker {broker}:{port}")
        try:
            client.connect(broker, port)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to connect to MQTT broker {broker}:{port}: {e}")
            return False

        client.loop_start()
        self._client = client
        if not self._connack.wait(timeout) or not self._connected:
            logger.error(f"No successful CONNACK from {broker}:{port} within {timeout:g}s")
            client.loop_stop()
            self._client = None
            return False

        self._start_worker()
        return True

    def disconnect(self) -> None:
        """Send everything queued so far, then disconnect."""
        if self._worker is not None:
            self._publish_queue.put(None)
            self._worker.join(timeout=2)
            self._worker = None

        # Anything the worker did not reach (or everything, if it never ran)
        while True:
            try:
                msg = self._publish_queue.get_nowait()
            except Empty:
                break
            if msg is not None:
                self._do_publish(msg)

        if self._client is not None:
            self._client.loop_stop()
            self._client.disconnect()
            self._client = None

        self._connected = False
        self._connack.clear()
        logger.info(
            f"Disconnected from MQTT broker ({self._messages_published} published, "
            f"{self._messages_dropped} dropped)"
        )

    def publish(self, topic: str, payload: Dict[str, Any], retain: bool = False) -> bool:
        """Queue a message under the site base topic."""
        return self.publish_raw(f"{self.base_topic}/{topic}", payload, retain=retain)

    def publish_raw(self, topic: str, payload: Dict[str, Any], retain: bool = False) -> bool:
        """Queue a message on a raw topic (no base path)."""
        msg = Message(topic=topic, payload=payload, retain=retain, qos=self.mqtt_config.qos)
        self._publish_queue.put(msg)
        return True

    # ===== Domain payloads =====

    def publish_kpis(self, kpis: Iterable[KPI]) -> int:
        """One retained message per KPI under ``_kpi/<slug>``."""
        count = 0
        timestamp_ms = int(time.time() * 1000)
        for kpi in kpis:
            payload = {**kpi.to_dict(), "timestamp_ms": timestamp_ms}
            self.publish(f"_kpi/{slugify(kpi.name)}", payload, retain=True)
            count += 1
        return count

    def publish_realtime(self, counts: Dict[str, int]) -> bool:
        payload = {**counts, "timestamp_ms": int(time.time() * 1000)}
        return self.publish("_realtime", payload, retain=True)

    def publish_latest_state(self, snapshot: ShiftSnapshot) -> int:
        """Latest sample per robot, picker and cart under ``_state/<kind>/<id>``."""
        count = 0
        for kind, samples in (
            ("robots", snapshot.robot_telemetry),
            ("pickers", snapshot.picker_activity),
            ("carts", snapshot.cart_movement),
        ):
            for sample in samples:
                self.publish(f"_state/{kind}/{sample.entity_id}", sample.to_dict(), retain=True)
                count += 1
        return count

    def publish_status(self, snapshot: Optional[ShiftSnapshot] = None) -> None:
        """Publish publisher status to the root-level topic."""
        status: Dict[str, Any] = {
            "site": self.topic_config.site,
            "messages_published": self._messages_published,
            "messages_dropped": self._messages_dropped,
            "timestamp_ms": int(time.time() * 1000),
        }
        if snapshot is not None:
            status["shift_start"] = snapshot.shift_start.isoformat()
            status["shift_end"] = snapshot.shift_end.isoformat()
            status["as_of"] = snapshot.as_of.isoformat()
        self.publish_raw(self.STATUS_TOPIC, status, retain=True)

    # ===== Publish worker =====

    def _start_worker(self) -> None:
        self._worker = threading.Thread(
            target=self._drain, name="mqtt-publisher", daemon=True
        )
        self._worker.start()

    def _drain(self) -> None:
        """Publish queued messages until the stop marker arrives."""
        for msg in iter(self._publish_queue.get, None):
            self._do_publish(msg)

    def _record(self, ok: bool) -> bool:
        if ok:
            self._messages_published += 1
        else:
            self._messages_dropped += 1
        return ok

    def _do_publish(self, msg: Message) -> bool:
        """Send one message; returns whether it was handed to the broker."""
        payload = json.dumps(msg.payload)

        if self._dry_run:
            logger.debug(f"[DRY RUN] {msg.topic}: {payload[:100]}")
            return self._record(True)

        if self._client is None or not self._connected:
            return self._record(False)

        try:
            info = self._client.publish(msg.topic, payload, qos=msg.qos, retain=msg.retain)
        except ValueError as e:
            # paho rejects invalid topics and oversized payloads up front
            logger.error(f"Rejected publish to {msg.topic}: {e}")
            return self._record(False)

        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            logger.warning(f"Publish to {msg.topic} failed: {mqtt.error_string(info.rc)}")
        return self._record(info.rc == mqtt.MQTT_ERR_SUCCESS)

    # ===== paho callbacks (CallbackAPIVersion.VERSION2) =====

    def _on_connect(self, client, userdata, flags, reason_code, properties=None) -> None:
        self._connected = reason_code == 0
        if self._connected:
            logger.info("Connected to MQTT broker")
        else:
            logger.error(f"Broker refused connection: {reason_code}")
        self._connack.set()

    def _on_disconnect(self, client, userdata, flags, reason_code, properties=None) -> None:
        was_connected, self._connected = self._connected, False
        if was_connected and reason_code != 0:
            logger.warning(f"Lost connection to MQTT broker: {reason_code}")
