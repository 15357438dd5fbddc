"""Per-entity time-windowed views of a series, shaped for charting."""

from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, TypeVar

from .errors import ConfigurationError
from .models import CartMovementSample, PickerActivitySample, RobotTelemetrySample

T = TypeVar("T")

TIME_RANGES = {
    "1h": timedelta(hours=1),
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
}
DEFAULT_TIME_RANGE = "24h"

_EPOCH = datetime(1970, 1, 1)


def parse_time_range(time_range: Optional[str], strict: bool = False) -> timedelta:
    """Map a named range to a duration; unknown names fall back to 24h."""
    if time_range in TIME_RANGES:
        return TIME_RANGES[time_range]
    if strict:
        raise ConfigurationError(
            f"Unknown time range {time_range!r}, expected one of {sorted(TIME_RANGES)}"
        )
    return TIME_RANGES[DEFAULT_TIME_RANGE]


def cutoff_time(time_range: Optional[str], now: Optional[datetime] = None) -> datetime:
    return (now or datetime.now()) - parse_time_range(time_range)


def window(
    samples: Iterable[T],
    entity_id: str,
    time_range: Optional[str] = DEFAULT_TIME_RANGE,
    now: Optional[datetime] = None,
) -> List[T]:
    """Samples for one entity at or after ``now - range``, oldest first."""
    cutoff = cutoff_time(time_range, now)
    selected = [s for s in samples if s.entity_id == entity_id and s.time >= cutoff]
    return sorted(selected, key=lambda s: s.time)


def robot_performance_over_time(
    robot_telemetry: Iterable[RobotTelemetrySample],
    robot_id: str,
    time_range: Optional[str] = DEFAULT_TIME_RANGE,
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    return [
        {"time": s.time, "battery": s.battery, "tasks": s.tasks_completed}
        for s in window(robot_telemetry, robot_id, time_range, now)
    ]


def picker_efficiency_over_time(
    picker_activity: Iterable[PickerActivitySample],
    picker_id: str,
    time_range: Optional[str] = DEFAULT_TIME_RANGE,
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    return [
        {"time": s.time, "picks_per_hour": s.picks_per_hour, "accuracy": s.accuracy}
        for s in window(picker_activity, picker_id, time_range, now)
    ]


def cart_utilization_over_time(
    cart_movement: Iterable[CartMovementSample],
    cart_id: str,
    time_range: Optional[str] = DEFAULT_TIME_RANGE,
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    return [
        {
            "time": s.time,
            "items_in_cart": s.items_in_cart,
            "capacity_utilization": s.capacity_utilization,
        }
        for s in window(cart_movement, cart_id, time_range, now)
    ]


def downsample(points: List[Dict[str, Any]], every: timedelta) -> List[Dict[str, Any]]:
    """Average projected points within ``every``-wide, epoch-aligned buckets.

    Each bucket is stamped with its end time; empty buckets are skipped.
    Input must be sorted by time (as returned by the views above).
    """
    if every <= timedelta(0):
        raise ConfigurationError(f"Downsample interval must be positive, got {every}")

    buckets: Dict[datetime, List[Dict[str, Any]]] = {}
    for point in points:
        offset = (point["time"] - _EPOCH) // every
        bucket_end = _EPOCH + (offset + 1) * every
        buckets.setdefault(bucket_end, []).append(point)

    result = []
    for bucket_end, members in buckets.items():
        averaged: Dict[str, Any] = {"time": bucket_end}
        for name in members[0]:
            if name == "time":
                continue
            values = [m[name] for m in members if m.get(name) is not None]
            averaged[name] = sum(values) / len(values) if values else None
        result.append(averaged)
    return result


def serialize_points(points: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """ISO-format the ``time`` field for JSON output."""
    return [{**p, "time": p["time"].isoformat()} for p in points]
