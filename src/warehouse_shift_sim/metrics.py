"""Latest-state reduction and KPI aggregation over shift time series."""

from functools import partial
from typing import Callable, Dict, Iterable, List, Sequence, TypeVar

from .models import (
    KPI,
    CartActivity,
    CartMovementSample,
    KPICategory,
    KPITrend,
    OrderEventSample,
    OrderEventType,
    OrderStatus,
    PickerActivitySample,
    PickerStatus,
    RobotStatus,
    RobotTelemetrySample,
)

T = TypeVar("T")


def latest_state(samples: Iterable[T], key: Callable[[T], str]) -> List[T]:
    """Collapse a time series to the most recent sample per entity.

    A single left-to-right pass; on equal timestamps the sample seen last
    wins. Entities appear in order of their first sample.
    """
    latest: Dict[str, T] = {}
    for sample in samples:
        entity_id = key(sample)
        existing = latest.get(entity_id)
        if existing is None or sample.time >= existing.time:
            latest[entity_id] = sample
    return list(latest.values())


latest_robot_telemetry = partial(latest_state, key=lambda s: s.robot_id)
latest_picker_activity = partial(latest_state, key=lambda s: s.picker_id)
latest_order_events = partial(latest_state, key=lambda s: s.order_id)
latest_cart_movement = partial(latest_state, key=lambda s: s.cart_id)


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _percent(part: int, whole: int) -> float:
    return part / whole * 100 if whole else 0.0


# =============================================================================
# Quick stats
# =============================================================================


def count_active_robots(robot_telemetry: Iterable[RobotTelemetrySample]) -> int:
    return sum(1 for s in latest_robot_telemetry(robot_telemetry)
               if s.status == RobotStatus.ACTIVE)


def count_active_pickers(picker_activity: Iterable[PickerActivitySample]) -> int:
    return sum(1 for s in latest_picker_activity(picker_activity)
               if s.status == PickerStatus.ACTIVE)


def count_pickers_on_break(picker_activity: Iterable[PickerActivitySample]) -> int:
    return sum(1 for s in latest_picker_activity(picker_activity)
               if s.status == PickerStatus.BREAK)


def count_carts_in_use(cart_movement: Iterable[CartMovementSample]) -> int:
    return sum(1 for s in latest_cart_movement(cart_movement)
               if s.status == CartActivity.PICKING)


def count_completed_orders(order_events: Iterable[OrderEventSample]) -> int:
    """Distinct orders with a completed event anywhere in the stream."""
    return len({e.order_id for e in order_events
                if e.event_type == OrderEventType.COMPLETED})


def count_pending_orders(order_events: Iterable[OrderEventSample]) -> int:
    return sum(1 for e in latest_order_events(order_events)
               if e.status == OrderStatus.PENDING)


def calculate_realtime_counts(
    robot_telemetry: Sequence[RobotTelemetrySample],
    picker_activity: Sequence[PickerActivitySample],
    order_events: Sequence[OrderEventSample],
    cart_movement: Sequence[CartMovementSample],
) -> Dict[str, int]:
    """Compact live counters for dashboards."""
    return {
        "activeRobots": count_active_robots(robot_telemetry),
        "activePickers": count_active_pickers(picker_activity),
        "cartsInUse": count_carts_in_use(cart_movement),
        "completedOrders": count_completed_orders(order_events),
        "pendingOrders": count_pending_orders(order_events),
        "pickersOnBreak": count_pickers_on_break(picker_activity),
    }


# =============================================================================
# KPIs
# =============================================================================


def order_fulfillment_rate(completed: int, pending: int) -> float:
    """completed / (completed + pending) as a percentage, 1 decimal."""
    return round(_percent(completed, completed + pending), 1)


def calculate_kpis(
    robot_telemetry: Sequence[RobotTelemetrySample],
    picker_activity: Sequence[PickerActivitySample],
    order_events: Sequence[OrderEventSample],
    cart_movement: Sequence[CartMovementSample],
) -> List[KPI]:
    """The fixed list of 10 shift KPIs.

    Inputs may be full series or already reduced to latest state. Empty
    inputs degrade to zero values instead of raising. Trend and category
    are static tags; there is no historical baseline to derive them from.
    """
    latest_robots = latest_robot_telemetry(robot_telemetry)
    latest_pickers = latest_picker_activity(picker_activity)

    active_robots = sum(1 for s in latest_robots if s.status == RobotStatus.ACTIVE)
    active_pickers = sum(1 for s in latest_pickers if s.status == PickerStatus.ACTIVE)
    completed_orders = count_completed_orders(order_events)
    pending_orders = count_pending_orders(order_events)
    carts_in_use = count_carts_in_use(cart_movement)

    total_picks = sum(s.total_picks for s in latest_pickers)
    average_accuracy = _mean([s.accuracy for s in latest_pickers])
    average_picks_per_hour = _mean([s.picks_per_hour for s in latest_pickers])
    robot_utilization = _percent(active_robots, len(latest_robots))
    picker_utilization = _percent(active_pickers, len(latest_pickers))
    average_battery = _mean([s.battery for s in latest_robots])

    return [
        KPI("Orders Completed", completed_orders, "orders",
            KPITrend.UP, KPICategory.PRODUCTIVITY),
        KPI("Total Picks", total_picks, "picks",
            KPITrend.UP, KPICategory.PRODUCTIVITY),
        KPI("Pick Accuracy", round(average_accuracy, 1), "%",
            KPITrend.STABLE, KPICategory.QUALITY),
        KPI("Picks Per Hour", round(average_picks_per_hour), "picks/hr",
            KPITrend.UP, KPICategory.EFFICIENCY),
        KPI("Robot Utilization", round(robot_utilization, 1), "%",
            KPITrend.STABLE, KPICategory.UTILIZATION),
        KPI("Picker Utilization", round(picker_utilization, 1), "%",
            KPITrend.UP, KPICategory.UTILIZATION),
        KPI("Order Fulfillment Rate", order_fulfillment_rate(completed_orders, pending_orders), "%",
            KPITrend.UP, KPICategory.EFFICIENCY),
        KPI("Average Battery Level", round(average_battery), "%",
            KPITrend.STABLE, KPICategory.UTILIZATION),
        KPI("Active Robots", active_robots, "robots",
            KPITrend.STABLE, KPICategory.UTILIZATION),
        KPI("Carts in Use", carts_in_use, "carts",
            KPITrend.UP, KPICategory.UTILIZATION),
    ]
