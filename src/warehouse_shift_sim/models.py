"""Entities, time-series samples and derived records for a warehouse shift.

Static entities (robots, pickers, carts, orders) are created once per shift.
Time-series samples are append-only rows, one per entity per tick (or per
lifecycle event for orders). Samples refer to other entities by id only;
use :meth:`ShiftData.lookup` to resolve those soft references.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


# =============================================================================
# Status Enums
# =============================================================================


class RobotStatus(Enum):
    """Robot telemetry states."""

    ACTIVE = "active"
    CHARGING = "charging"
    MAINTENANCE = "maintenance"
    IDLE = "idle"


class PickerStatus(Enum):
    """Picker activity states."""

    ACTIVE = "active"
    BREAK = "break"
    IDLE = "idle"


class CartStatus(Enum):
    """Cart record status (fleet bookkeeping, not movement)."""

    ACTIVE = "active"
    MAINTENANCE = "maintenance"
    RETIRED = "retired"


class CartActivity(Enum):
    """Cart movement states."""

    PICKING = "picking"
    IDLE = "idle"
    MAINTENANCE = "maintenance"


class OrderPriority(Enum):
    """Order priority levels."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class OrderStatus(Enum):
    """Order lifecycle states."""

    PENDING = "pending"
    PICKING = "picking"
    PACKED = "packed"


class OrderEventType(Enum):
    """Order lifecycle events, in causal order."""

    CREATED = "created"
    ASSIGNED = "assigned"
    STARTED = "started"
    COMPLETED = "completed"


class KPITrend(Enum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


class KPICategory(Enum):
    PRODUCTIVITY = "productivity"
    EFFICIENCY = "efficiency"
    QUALITY = "quality"
    UTILIZATION = "utilization"


# =============================================================================
# Static Entities
# =============================================================================


@dataclass(frozen=True)
class Robot:
    """Autonomous mobile robot that tows carts."""

    id: str
    name: str
    max_battery: int = 100
    max_capacity: int = 50
    maintenance_schedule: str = "weekly"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "max_battery": self.max_battery,
            "max_capacity": self.max_capacity,
            "maintenance_schedule": self.maintenance_schedule,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


@dataclass(frozen=True)
class Picker:
    """Human picker working the shift."""

    id: str
    name: str
    shift_schedule: str = "morning"
    max_carts: int = 2
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "shift_schedule": self.shift_schedule,
            "max_carts": self.max_carts,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


@dataclass(frozen=True)
class Cart:
    """Picking cart."""

    id: str
    max_capacity: int = 50
    status: CartStatus = CartStatus.ACTIVE
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "max_capacity": self.max_capacity,
            "status": self.status.value,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


@dataclass(frozen=True)
class OrderItem:
    """A single order line."""

    id: str
    name: str
    quantity: int
    location: str  # A<aisle>-R<rack>-<side>, e.g. A12-R3-B

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "quantity": self.quantity,
            "location": self.location,
        }


@dataclass(frozen=True)
class Order:
    """Customer order to be picked during the shift."""

    id: str
    priority: OrderPriority
    items: List[OrderItem]
    estimated_time: int  # minutes
    created_at: datetime
    updated_at: datetime
    status: OrderStatus = OrderStatus.PENDING
    assigned_picker: Optional[str] = None

    @property
    def item_count(self) -> int:
        return len(self.items)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "priority": self.priority.value,
            "status": self.status.value,
            "items": [item.to_dict() for item in self.items],
            "estimated_time": self.estimated_time,
            "assigned_picker": self.assigned_picker,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


# =============================================================================
# Time-Series Samples
# =============================================================================


@dataclass(frozen=True)
class RobotTelemetrySample:
    time: datetime
    robot_id: str
    status: RobotStatus
    location: str
    battery: float
    tasks_completed: int
    total_distance: int
    assigned_cart: Optional[str] = None

    @property
    def entity_id(self) -> str:
        return self.robot_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "time": _iso(self.time),
            "robot_id": self.robot_id,
            "status": self.status.value,
            "location": self.location,
            "battery": self.battery,
            "tasks_completed": self.tasks_completed,
            "total_distance": self.total_distance,
            "assigned_cart": self.assigned_cart,
        }


@dataclass(frozen=True)
class PickerActivitySample:
    time: datetime
    picker_id: str
    status: PickerStatus
    location: str
    picks_per_hour: int
    total_picks: int
    accuracy: float
    assigned_carts: str  # comma-separated cart ids
    break_duration: Optional[int] = None  # minutes, only while on break

    @property
    def entity_id(self) -> str:
        return self.picker_id

    @property
    def assigned_cart_ids(self) -> List[str]:
        return [c for c in self.assigned_carts.split(",") if c]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "time": _iso(self.time),
            "picker_id": self.picker_id,
            "status": self.status.value,
            "location": self.location,
            "picks_per_hour": self.picks_per_hour,
            "total_picks": self.total_picks,
            "accuracy": self.accuracy,
            "assigned_carts": self.assigned_carts,
            "break_duration": self.break_duration,
        }


@dataclass(frozen=True)
class OrderEventSample:
    time: datetime
    order_id: str
    priority: OrderPriority
    status: OrderStatus
    item_count: int
    estimated_time: int
    event_type: OrderEventType
    assigned_picker: Optional[str] = None
    actual_time: Optional[int] = None  # minutes from started to completed

    @property
    def entity_id(self) -> str:
        return self.order_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "time": _iso(self.time),
            "order_id": self.order_id,
            "priority": self.priority.value,
            "status": self.status.value,
            "assigned_picker": self.assigned_picker,
            "item_count": self.item_count,
            "estimated_time": self.estimated_time,
            "actual_time": self.actual_time,
            "event_type": self.event_type.value,
        }


@dataclass(frozen=True)
class CartMovementSample:
    time: datetime
    cart_id: str
    status: CartActivity
    items_in_cart: int
    capacity_utilization: int
    location: Optional[str] = None
    assigned_picker: Optional[str] = None
    assigned_robot: Optional[str] = None

    @property
    def entity_id(self) -> str:
        return self.cart_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "time": _iso(self.time),
            "cart_id": self.cart_id,
            "status": self.status.value,
            "location": self.location,
            "assigned_picker": self.assigned_picker,
            "assigned_robot": self.assigned_robot,
            "items_in_cart": self.items_in_cart,
            "capacity_utilization": self.capacity_utilization,
        }


# =============================================================================
# Derived Records
# =============================================================================


@dataclass(frozen=True)
class KPI:
    """Named, unit-tagged metric with a static trend and category."""

    name: str
    value: float
    unit: str
    trend: KPITrend
    category: KPICategory

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "value": self.value,
            "unit": self.unit,
            "trend": self.trend.value,
            "category": self.category.value,
        }


Entity = Union[Robot, Picker, Cart, Order]


@dataclass
class ShiftData:
    """Everything produced by one generation run."""

    robots: List[Robot]
    pickers: List[Picker]
    carts: List[Cart]
    orders: List[Order]
    robot_telemetry: List[RobotTelemetrySample]
    picker_activity: List[PickerActivitySample]
    order_events: List[OrderEventSample]
    cart_movement: List[CartMovementSample]
    shift_start: datetime
    shift_end: datetime
    generated_at: datetime = field(default_factory=datetime.now)

    def lookup(self, entity_id: Optional[str]) -> Optional[Entity]:
        """Resolve a soft reference (robot, picker, cart or order id)."""
        if not entity_id:
            return None
        for collection in (self.robots, self.pickers, self.carts, self.orders):
            for entity in collection:
                if entity.id == entity_id:
                    return entity
        return None

    def sample_counts(self) -> Dict[str, int]:
        return {
            "robot_telemetry": len(self.robot_telemetry),
            "picker_activity": len(self.picker_activity),
            "order_events": len(self.order_events),
            "cart_movement": len(self.cart_movement),
        }


@dataclass(frozen=True)
class ShiftSnapshot:
    """Entities plus latest state per entity, as served to callers."""

    robots: List[Robot]
    pickers: List[Picker]
    carts: List[Cart]
    orders: List[Order]
    robot_telemetry: List[RobotTelemetrySample]
    picker_activity: List[PickerActivitySample]
    order_events: List[OrderEventSample]
    cart_movement: List[CartMovementSample]
    shift_start: datetime
    shift_end: datetime
    as_of: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "robots": [r.to_dict() for r in self.robots],
            "pickers": [p.to_dict() for p in self.pickers],
            "carts": [c.to_dict() for c in self.carts],
            "orders": [o.to_dict() for o in self.orders],
            "robot_telemetry": [s.to_dict() for s in self.robot_telemetry],
            "picker_activity": [s.to_dict() for s in self.picker_activity],
            "order_events": [s.to_dict() for s in self.order_events],
            "cart_movement": [s.to_dict() for s in self.cart_movement],
            "shift_start": _iso(self.shift_start),
            "shift_end": _iso(self.shift_end),
            "as_of": _iso(self.as_of),
        }
