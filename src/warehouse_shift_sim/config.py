"""Configuration management for the shift simulator."""

import os
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from .errors import ConfigurationError


def _parse_time(value: Any) -> time:
    """Parse an ``HH:MM`` string (YAML may also hand us minutes as int)."""
    if isinstance(value, time):
        return value
    if isinstance(value, int):
        # YAML 1.1 reads unquoted 08:00 as sexagesimal minutes
        return time(value // 60, value % 60)
    try:
        return datetime.strptime(str(value), "%H:%M").time()
    except ValueError as e:
        raise ConfigurationError(f"Invalid time of day: {value!r}") from e


def _parse_date(value: Any) -> Optional[date]:
    if value is None or isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError as e:
        raise ConfigurationError(f"Invalid shift date: {value!r}") from e


@dataclass
class MQTTConfig:
    """MQTT broker configuration."""

    broker: str = "localhost"
    port: int = 1883
    username: str = ""
    password: str = ""
    client_id: str = "shift-sim"
    qos: int = 1


@dataclass
class TopicConfig:
    """Topic layout for published metrics."""

    topic_prefix: str = "warehouse/v1"
    site: str = "dc_main"


@dataclass
class CacheConfig:
    """Snapshot cache settings."""

    ttl_seconds: float = 30.0


@dataclass
class ShiftConfig:
    """Shift window, entity counts and tick grid."""

    date: Optional[date] = None  # None means today
    start: time = time(8, 0)
    end: time = time(14, 0)
    break_start: time = time(11, 30)
    break_end: time = time(12, 30)

    robots: int = 8
    pickers: int = 8
    carts: int = 20
    orders: int = 200

    robot_tick_minutes: int = 5
    picker_tick_minutes: int = 5
    cart_tick_minutes: int = 10

    random_seed: Optional[int] = None

    def window(self, today: Optional[date] = None) -> Tuple[datetime, datetime]:
        """Get the concrete shift start and end."""
        day = self.date or today or date.today()
        return datetime.combine(day, self.start), datetime.combine(day, self.end)

    def break_window(self, today: Optional[date] = None) -> Tuple[datetime, datetime]:
        """Get the concrete picker break start and end."""
        day = self.date or today or date.today()
        return datetime.combine(day, self.break_start), datetime.combine(day, self.break_end)

    @property
    def robot_tick(self) -> timedelta:
        return timedelta(minutes=self.robot_tick_minutes)

    @property
    def picker_tick(self) -> timedelta:
        return timedelta(minutes=self.picker_tick_minutes)

    @property
    def cart_tick(self) -> timedelta:
        return timedelta(minutes=self.cart_tick_minutes)

    def validate(self) -> None:
        """Raise ConfigurationError for an unusable shift definition."""
        if self.end <= self.start:
            raise ConfigurationError(
                f"Shift end {self.end} must be after start {self.start}"
            )
        if self.break_end < self.break_start:
            raise ConfigurationError("Break end must not precede break start")
        if self.break_start < self.start or self.break_end > self.end:
            raise ConfigurationError("Break window must lie inside the shift")

        for name in ("robots", "pickers", "carts", "orders"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"Entity count '{name}' must be positive")

        for name in ("robot_tick_minutes", "picker_tick_minutes", "cart_tick_minutes"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"Tick interval '{name}' must be positive")


@dataclass
class Config:
    """Main configuration container."""

    shift: ShiftConfig = field(default_factory=ShiftConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    mqtt: MQTTConfig = field(default_factory=MQTTConfig)
    topics: TopicConfig = field(default_factory=TopicConfig)

    @classmethod
    def default(cls) -> "Config":
        """Create default configuration (8 robots, 8 pickers, 20 carts, 200 orders)."""
        return cls()

    @classmethod
    def from_yaml(cls, config_path: Path) -> "Config":
        """Load configuration from YAML file."""
        if not config_path.exists():
            return cls.default()

        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

        return cls._from_dict(data)

    @classmethod
    def from_env(cls, base: Optional["Config"] = None) -> "Config":
        """Apply environment variable overrides on top of ``base`` (or defaults)."""
        config = base or cls.default()

        shift_date = os.getenv("SHIFT_DATE")
        if shift_date:
            config.shift.date = _parse_date(shift_date)

        seed = os.getenv("SHIFT_RANDOM_SEED")
        if seed:
            config.shift.random_seed = int(seed)

        config.shift.robots = int(os.getenv("SHIFT_ROBOTS", config.shift.robots))
        config.shift.pickers = int(os.getenv("SHIFT_PICKERS", config.shift.pickers))
        config.shift.carts = int(os.getenv("SHIFT_CARTS", config.shift.carts))
        config.shift.orders = int(os.getenv("SHIFT_ORDERS", config.shift.orders))

        config.cache.ttl_seconds = float(
            os.getenv("CACHE_TTL_SECONDS", config.cache.ttl_seconds)
        )

        # Override MQTT settings from env
        config.mqtt.broker = os.getenv("MQTT_BROKER", config.mqtt.broker)
        config.mqtt.port = int(os.getenv("MQTT_PORT", config.mqtt.port))
        config.mqtt.username = os.getenv("MQTT_USERNAME", config.mqtt.username)
        config.mqtt.password = os.getenv("MQTT_PASSWORD", config.mqtt.password)

        config.topics.site = os.getenv("SHIFT_SITE", config.topics.site)

        return config

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Create config from dictionary."""
        config = cls.default()

        if "shift" in data:
            shift_data = data["shift"] or {}
            defaults = config.shift
            config.shift = ShiftConfig(
                date=_parse_date(shift_data.get("date", defaults.date)),
                start=_parse_time(shift_data.get("start", defaults.start)),
                end=_parse_time(shift_data.get("end", defaults.end)),
                break_start=_parse_time(shift_data.get("break_start", defaults.break_start)),
                break_end=_parse_time(shift_data.get("break_end", defaults.break_end)),
                robots=shift_data.get("robots", defaults.robots),
                pickers=shift_data.get("pickers", defaults.pickers),
                carts=shift_data.get("carts", defaults.carts),
                orders=shift_data.get("orders", defaults.orders),
                robot_tick_minutes=shift_data.get(
                    "robot_tick_minutes", defaults.robot_tick_minutes
                ),
                picker_tick_minutes=shift_data.get(
                    "picker_tick_minutes", defaults.picker_tick_minutes
                ),
                cart_tick_minutes=shift_data.get(
                    "cart_tick_minutes", defaults.cart_tick_minutes
                ),
                random_seed=shift_data.get("random_seed"),
            )

        if "cache" in data:
            cache_data = data["cache"] or {}
            config.cache = CacheConfig(
                ttl_seconds=cache_data.get("ttl_seconds", config.cache.ttl_seconds),
            )

        if "mqtt" in data:
            mqtt_data = data["mqtt"] or {}
            config.mqtt = MQTTConfig(
                broker=mqtt_data.get("broker", config.mqtt.broker),
                port=mqtt_data.get("port", config.mqtt.port),
                username=mqtt_data.get("username", config.mqtt.username),
                password=mqtt_data.get("password", config.mqtt.password),
                client_id=mqtt_data.get("client_id", config.mqtt.client_id),
                qos=mqtt_data.get("qos", config.mqtt.qos),
            )

        if "topics" in data:
            topic_data = data["topics"] or {}
            config.topics = TopicConfig(
                topic_prefix=topic_data.get("topic_prefix", config.topics.topic_prefix),
                site=topic_data.get("site", config.topics.site),
            )

        return config

    def validate(self) -> None:
        """Validate every section; raises ConfigurationError."""
        self.shift.validate()
        if self.cache.ttl_seconds <= 0:
            raise ConfigurationError("Cache ttl_seconds must be positive")

    def to_yaml(self, path: Path) -> None:
        """Save configuration to YAML file."""
        data = {
            "shift": {
                "date": self.shift.date.isoformat() if self.shift.date else None,
                "start": self.shift.start.strftime("%H:%M"),
                "end": self.shift.end.strftime("%H:%M"),
                "break_start": self.shift.break_start.strftime("%H:%M"),
                "break_end": self.shift.break_end.strftime("%H:%M"),
                "robots": self.shift.robots,
                "pickers": self.shift.pickers,
                "carts": self.shift.carts,
                "orders": self.shift.orders,
                "robot_tick_minutes": self.shift.robot_tick_minutes,
                "picker_tick_minutes": self.shift.picker_tick_minutes,
                "cart_tick_minutes": self.shift.cart_tick_minutes,
                "random_seed": self.shift.random_seed,
            },
            "cache": {
                "ttl_seconds": self.cache.ttl_seconds,
            },
            "mqtt": {
                "broker": self.mqtt.broker,
                "port": self.mqtt.port,
                "username": self.mqtt.username,
                "password": self.mqtt.password,
                "client_id": self.mqtt.client_id,
                "qos": self.mqtt.qos,
            },
            "topics": {
                "topic_prefix": self.topics.topic_prefix,
                "site": self.topics.site,
            },
        }

        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)
