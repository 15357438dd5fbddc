"""Data generators for the warehouse shift.

This module provides the synthetic data behind a shift:

- **EntityGenerator**: static roster of robots, pickers, carts and orders
- **TimeSeriesGenerator**: per-tick robot telemetry, picker activity and
  cart movement on a fixed time grid
- **OrderEventGenerator**: created/assigned/started/completed lifecycle
  events per order

Numeric fields follow deterministic formulas in the entity index and the
hours elapsed since shift start, so two runs agree on them at the same
instant. Branching (status flips, assignments, locations) draws from an
injected ``random.Random`` so tests can seed or script it.
"""

import dataclasses
import logging
import math
import random
from datetime import datetime, timedelta
from typing import Iterator, List, Optional, Sequence

from faker import Faker

from .errors import ConfigurationError
from .metrics import latest_order_events
from .models import (
    Cart,
    CartActivity,
    CartMovementSample,
    Order,
    OrderEventSample,
    OrderEventType,
    OrderItem,
    OrderPriority,
    OrderStatus,
    Picker,
    PickerActivitySample,
    PickerStatus,
    Robot,
    RobotStatus,
    RobotTelemetrySample,
)

logger = logging.getLogger(__name__)

# Fleet records predate the shift; only their telemetry is shift-bound
FLEET_CREATED_AT = datetime(2024, 1, 1)
FLEET_UPDATED_AT = datetime(2024, 1, 15, 8, 0)

# Warehouse layout
AISLES = 30
RACKS = 4
SIDES = ("A", "B")

# Priority thresholds on a single uniform draw: 20% high, 50% medium, 30% low
PRIORITY_THRESHOLDS = (
    (0.2, OrderPriority.HIGH),
    (0.7, OrderPriority.MEDIUM),
    (1.0, OrderPriority.LOW),
)

LOW_BATTERY_PCT = 20
MAINTENANCE_PROBABILITY = 0.05
CART_IN_USE_PROBABILITY = 0.6


def format_id(prefix: str, number: int, width: int) -> str:
    """Zero-padded identifier, e.g. ``format_id("AMR", 7, 3) == "AMR-007"``."""
    return f"{prefix}-{number:0{width}d}"


def _id_width(default: int, count: int) -> int:
    return max(default, len(str(count)))


def picker_letters(index: int) -> str:
    """0 -> A, 25 -> Z, 26 -> AA, ..."""
    letters = ""
    index += 1
    while index:
        index, rem = divmod(index - 1, 26)
        letters = chr(65 + rem) + letters
    return letters


def random_location(rng: random.Random) -> str:
    """Random storage location ``A<aisle>-R<rack>-<side>``."""
    aisle = rng.randint(1, AISLES)
    rack = rng.randint(1, RACKS)
    side = rng.choice(SIDES)
    return f"A{aisle}-R{rack}-{side}"


def iter_ticks(start: datetime, end: datetime, interval: timedelta) -> Iterator[datetime]:
    """Yield every tick in [start, end], both ends inclusive."""
    if interval <= timedelta(0):
        raise ConfigurationError(f"Tick interval must be positive, got {interval}")
    if end <= start:
        raise ConfigurationError(f"Shift end {end} must be after start {start}")

    current = start
    while current <= end:
        yield current
        current += interval


def _hours_between(start: datetime, now: datetime) -> float:
    return (now - start).total_seconds() / 3600


# =============================================================================
# Per-entity formulas
# =============================================================================


def battery_level(robot_index: int, elapsed_hours: float, charging: bool) -> float:
    """Battery percentage: +15%/h while charging, -8%/h while draining."""
    if charging:
        return min(100.0, 20 + elapsed_hours * 15)
    initial = 85 + robot_index * 2
    return max(0.0, initial - elapsed_hours * 8)


def should_charge(robot_index: int, elapsed_hours: float) -> bool:
    return battery_level(robot_index, elapsed_hours, charging=False) < LOW_BATTERY_PCT


def tasks_completed(robot_index: int, elapsed_hours: float) -> int:
    return math.floor((10 + robot_index * 2) + elapsed_hours * 3)


def total_distance(robot_index: int, elapsed_hours: float) -> int:
    return math.floor((1000 + robot_index * 200) + elapsed_hours * 500)


def picks_per_hour(picker_index: int, elapsed_hours: float, on_break: bool) -> int:
    """Pick rate with 10%/h fatigue decay, floored at 70% of base."""
    if on_break:
        return 0
    fatigue = max(0.7, 1 - elapsed_hours * 0.1)
    return math.floor((100 + picker_index * 5) * fatigue)


def total_picks(picker_index: int, elapsed_hours: float, break_started: bool,
                break_hours: float) -> int:
    """Cumulative picks at 20 per active hour."""
    active_hours = elapsed_hours
    if break_started:
        active_hours = max(0.0, elapsed_hours - break_hours)
    return math.floor((50 + picker_index * 10) + active_hours * 20)


def pick_accuracy(picker_index: int, elapsed_hours: float) -> float:
    fatigue = max(0.95, 1 - elapsed_hours * 0.02)
    return min(100.0, (98 + picker_index * 0.2) * fatigue)


# =============================================================================
# Entity Generator
# =============================================================================


class EntityGenerator:
    """Generates the static roster for a shift."""

    ROBOT_PREFIX, ROBOT_WIDTH = "AMR", 3
    PICKER_PREFIX, PICKER_WIDTH = "PICKER", 2
    CART_PREFIX, CART_WIDTH = "CART", 3
    ORDER_PREFIX, ORDER_WIDTH = "ORD", 4
    ITEM_PREFIX, ITEM_WIDTH = "ITEM", 3

    def __init__(
        self,
        shift_start: datetime,
        shift_end: datetime,
        robots: int = 8,
        pickers: int = 8,
        carts: int = 20,
        orders: int = 200,
        rng: Optional[random.Random] = None,
    ):
        if shift_end <= shift_start:
            raise ConfigurationError(f"Shift end {shift_end} must be after start {shift_start}")
        for name, count in (("robots", robots), ("pickers", pickers),
                            ("carts", carts), ("orders", orders)):
            if count <= 0:
                raise ConfigurationError(f"Entity count '{name}' must be positive, got {count}")

        self.shift_start = shift_start
        self.shift_end = shift_end
        self.num_robots = robots
        self.num_pickers = pickers
        self.num_carts = carts
        self.num_orders = orders
        self._rng = rng or random.Random()

        self._fake = Faker()
        self._fake.seed_instance(self._rng.getrandbits(32))

    def generate_robots(self) -> List[Robot]:
        width = _id_width(self.ROBOT_WIDTH, self.num_robots)
        return [
            Robot(
                id=format_id(self.ROBOT_PREFIX, i + 1, width),
                name=f"Robot {i + 1}",
                created_at=FLEET_CREATED_AT,
                updated_at=FLEET_UPDATED_AT,
            )
            for i in range(self.num_robots)
        ]

    def generate_pickers(self) -> List[Picker]:
        width = _id_width(self.PICKER_WIDTH, self.num_pickers)
        return [
            Picker(
                id=format_id(self.PICKER_PREFIX, i + 1, width),
                name=f"Picker {picker_letters(i)}",
                created_at=FLEET_CREATED_AT,
                updated_at=FLEET_UPDATED_AT,
            )
            for i in range(self.num_pickers)
        ]

    def generate_carts(self) -> List[Cart]:
        width = _id_width(self.CART_WIDTH, self.num_carts)
        return [
            Cart(
                id=format_id(self.CART_PREFIX, i + 1, width),
                created_at=FLEET_CREATED_AT,
                updated_at=FLEET_UPDATED_AT,
            )
            for i in range(self.num_carts)
        ]

    def generate_orders(self) -> List[Order]:
        width = _id_width(self.ORDER_WIDTH, self.num_orders)
        return [self._create_order(format_id(self.ORDER_PREFIX, i + 1, width))
                for i in range(self.num_orders)]

    def _create_order(self, order_id: str) -> Order:
        item_count = self._rng.randint(1, 8)
        items = [
            OrderItem(
                id=format_id(self.ITEM_PREFIX, j + 1, self.ITEM_WIDTH),
                name=self._item_name(),
                quantity=self._rng.randint(1, 3),
                location=random_location(self._rng),
            )
            for j in range(item_count)
        ]
        created_at = self._random_time_in_shift()

        return Order(
            id=order_id,
            priority=self._draw_priority(),
            items=items,
            estimated_time=item_count * 2 + self._rng.randrange(10),
            created_at=created_at,
            updated_at=created_at,
        )

    def _item_name(self) -> str:
        return f"{self._fake.color_name()} {self._fake.word().title()}"

    def _draw_priority(self) -> OrderPriority:
        draw = self._rng.random()
        for threshold, priority in PRIORITY_THRESHOLDS:
            if draw < threshold:
                return priority
        return OrderPriority.LOW

    def _random_time_in_shift(self) -> datetime:
        """Uniform in [shift_start, shift_end), at microsecond resolution."""
        span = (self.shift_end - self.shift_start) // timedelta(microseconds=1)
        return self.shift_start + timedelta(microseconds=self._rng.randrange(span))


# =============================================================================
# Time-Series Generator
# =============================================================================


class TimeSeriesGenerator:
    """Walks the shift tick grid and emits one sample per entity per tick."""

    def __init__(
        self,
        robots: Sequence[Robot],
        pickers: Sequence[Picker],
        carts: Sequence[Cart],
        shift_start: datetime,
        shift_end: datetime,
        break_start: datetime,
        break_end: datetime,
        rng: Optional[random.Random] = None,
        robot_tick: timedelta = timedelta(minutes=5),
        picker_tick: timedelta = timedelta(minutes=5),
        cart_tick: timedelta = timedelta(minutes=10),
    ):
        if shift_end <= shift_start:
            raise ConfigurationError(f"Shift end {shift_end} must be after start {shift_start}")
        for name, tick in (("robot_tick", robot_tick), ("picker_tick", picker_tick),
                           ("cart_tick", cart_tick)):
            if tick <= timedelta(0):
                raise ConfigurationError(f"Tick interval '{name}' must be positive, got {tick}")
        if break_end < break_start:
            raise ConfigurationError("Break end must not precede break start")

        self.robots = list(robots)
        self.pickers = list(pickers)
        self.carts = list(carts)
        self.shift_start = shift_start
        self.shift_end = shift_end
        self.break_start = break_start
        self.break_end = break_end
        self.robot_tick = robot_tick
        self.picker_tick = picker_tick
        self.cart_tick = cart_tick
        self._rng = rng or random.Random()

    @property
    def break_hours(self) -> float:
        return _hours_between(self.break_start, self.break_end)

    def is_on_break(self, now: datetime) -> bool:
        return self.break_start <= now <= self.break_end

    def generate_robot_telemetry(self) -> List[RobotTelemetrySample]:
        telemetry = []
        for now in iter_ticks(self.shift_start, self.shift_end, self.robot_tick):
            for index, robot in enumerate(self.robots):
                telemetry.append(self.robot_sample(robot, index, now))
        return telemetry

    def robot_sample(self, robot: Robot, index: int, now: datetime) -> RobotTelemetrySample:
        elapsed = _hours_between(self.shift_start, now)
        charging = should_charge(index, elapsed)
        battery = battery_level(index, elapsed, charging)

        if charging:
            status = RobotStatus.CHARGING
        elif battery < LOW_BATTERY_PCT:
            status = RobotStatus.IDLE
        elif self._rng.random() < MAINTENANCE_PROBABILITY:
            status = RobotStatus.MAINTENANCE
        else:
            status = RobotStatus.ACTIVE

        location = random_location(self._rng)
        assigned_cart = None
        if status == RobotStatus.ACTIVE and self.carts:
            assigned_cart = self._rng.choice(self.carts).id

        return RobotTelemetrySample(
            time=now,
            robot_id=robot.id,
            status=status,
            location=location,
            battery=battery,
            tasks_completed=tasks_completed(index, elapsed),
            total_distance=total_distance(index, elapsed),
            assigned_cart=assigned_cart,
        )

    def generate_picker_activity(self) -> List[PickerActivitySample]:
        activity = []
        for now in iter_ticks(self.shift_start, self.shift_end, self.picker_tick):
            for index, picker in enumerate(self.pickers):
                activity.append(self.picker_sample(picker, index, now))
        return activity

    def picker_sample(self, picker: Picker, index: int, now: datetime) -> PickerActivitySample:
        elapsed = _hours_between(self.shift_start, now)
        on_break = self.is_on_break(now)

        break_duration = None
        if on_break:
            break_duration = int((now - self.break_start).total_seconds() // 60)

        return PickerActivitySample(
            time=now,
            picker_id=picker.id,
            status=PickerStatus.BREAK if on_break else PickerStatus.ACTIVE,
            location=random_location(self._rng),
            picks_per_hour=picks_per_hour(index, elapsed, on_break),
            total_picks=total_picks(index, elapsed, now >= self.break_start, self.break_hours),
            accuracy=pick_accuracy(index, elapsed),
            assigned_carts=self._assigned_carts(),
            break_duration=break_duration,
        )

    def _assigned_carts(self) -> str:
        if not self.carts:
            return ""
        count = self._rng.randint(1, 2)
        return ",".join(self._rng.choice(self.carts).id for _ in range(count))

    def generate_cart_movement(self) -> List[CartMovementSample]:
        movement = []
        for now in iter_ticks(self.shift_start, self.shift_end, self.cart_tick):
            for cart in self.carts:
                movement.append(self.cart_sample(cart, now))
        return movement

    def cart_sample(self, cart: Cart, now: datetime) -> CartMovementSample:
        if self._rng.random() >= CART_IN_USE_PROBABILITY:
            return CartMovementSample(
                time=now,
                cart_id=cart.id,
                status=CartActivity.IDLE,
                items_in_cart=0,
                capacity_utilization=0,
            )

        return CartMovementSample(
            time=now,
            cart_id=cart.id,
            status=CartActivity.PICKING,
            location=random_location(self._rng),
            assigned_picker=self._rng.choice(self.pickers).id if self.pickers else None,
            assigned_robot=self._rng.choice(self.robots).id if self.robots else None,
            items_in_cart=self._rng.randint(1, 20),
            capacity_utilization=self._rng.randint(20, 99),
        )


# =============================================================================
# Order Event Generator
# =============================================================================


class OrderEventGenerator:
    """Generates causally ordered lifecycle events per order.

    ``created`` is always emitted. With ``assign_probability`` the order is
    assigned to a random picker and started shortly after. Of those, with
    ``completion_probability`` a completion is attempted; it is only emitted
    when it lands at or before shift end, so some started orders stay open.
    """

    def __init__(
        self,
        pickers: Sequence[Picker],
        shift_end: datetime,
        rng: Optional[random.Random] = None,
        assign_probability: float = 0.7,
        completion_probability: float = 0.6,
        max_assign_delay: timedelta = timedelta(hours=2),
        max_start_delay: timedelta = timedelta(minutes=30),
        max_completion_jitter: timedelta = timedelta(minutes=30),
    ):
        self.picker_ids = [p.id for p in pickers]
        self.shift_end = shift_end
        self.assign_probability = assign_probability
        self.completion_probability = completion_probability
        self.max_assign_delay = max_assign_delay
        self.max_start_delay = max_start_delay
        self.max_completion_jitter = max_completion_jitter
        self._rng = rng or random.Random()

    def generate(self, orders: Sequence[Order]) -> List[OrderEventSample]:
        """Events for all orders, globally sorted by time (stable)."""
        events: List[OrderEventSample] = []
        for order in orders:
            events.extend(self.events_for(order))
        logger.debug(f"Generated {len(events)} order events for {len(orders)} orders")
        return sorted(events, key=lambda e: e.time)

    def events_for(self, order: Order) -> List[OrderEventSample]:
        events = [self._event(order, order.created_at, OrderEventType.CREATED)]

        if not self.picker_ids or self._rng.random() >= self.assign_probability:
            return events

        picker_id = self._rng.choice(self.picker_ids)
        assigned_at = order.created_at + self._offset(self.max_assign_delay)
        started_at = assigned_at + self._offset(self.max_start_delay)
        events.append(self._event(order, assigned_at, OrderEventType.ASSIGNED, picker_id))
        events.append(self._event(order, started_at, OrderEventType.STARTED, picker_id))

        if self._rng.random() >= self.completion_probability:
            return events

        completed_at = (
            started_at
            + timedelta(minutes=order.estimated_time)
            + self._offset(self.max_completion_jitter)
        )
        if completed_at <= self.shift_end:
            actual_minutes = int((completed_at - started_at).total_seconds() // 60)
            events.append(
                self._event(order, completed_at, OrderEventType.COMPLETED, picker_id,
                            actual_time=actual_minutes)
            )
        return events

    def _offset(self, upper: timedelta) -> timedelta:
        """Uniform offset in [0, upper], rounded to whole seconds."""
        return timedelta(seconds=round(self._rng.uniform(0, upper.total_seconds())))

    @staticmethod
    def _event(
        order: Order,
        at: datetime,
        event_type: OrderEventType,
        picker_id: Optional[str] = None,
        actual_time: Optional[int] = None,
    ) -> OrderEventSample:
        status = {
            OrderEventType.CREATED: OrderStatus.PENDING,
            OrderEventType.ASSIGNED: OrderStatus.PICKING,
            OrderEventType.STARTED: OrderStatus.PICKING,
            OrderEventType.COMPLETED: OrderStatus.PACKED,
        }[event_type]

        return OrderEventSample(
            time=at,
            order_id=order.id,
            priority=order.priority,
            status=status,
            item_count=order.item_count,
            estimated_time=order.estimated_time,
            event_type=event_type,
            assigned_picker=picker_id,
            actual_time=actual_time,
        )


def apply_order_events(orders: Sequence[Order],
                       events: Sequence[OrderEventSample]) -> List[Order]:
    """Bring each order record up to the state of its latest event.

    Status, assigned picker and ``updated_at`` follow the most recent event;
    orders without events are returned unchanged.
    """
    latest = {e.order_id: e for e in latest_order_events(events)}
    updated = []
    for order in orders:
        event = latest.get(order.id)
        if event is None:
            updated.append(order)
            continue
        updated.append(dataclasses.replace(
            order,
            status=event.status,
            assigned_picker=event.assigned_picker,
            updated_at=event.time,
        ))
    return updated
