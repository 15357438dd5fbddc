"""In-process store for generated shift data.

Plays the part of the entity document store and the telemetry time-series
store behind an async interface, so the snapshot service fans out its
fetches exactly as it would against remote stores.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from .errors import UpstreamUnavailable
from .metrics import latest_state
from .models import (
    Cart,
    CartMovementSample,
    Order,
    OrderEventSample,
    OrderStatus,
    Picker,
    PickerActivitySample,
    Robot,
    RobotTelemetrySample,
    ShiftData,
)

logger = logging.getLogger(__name__)

LATEST_LOOKBACK = timedelta(hours=24)


class ShiftStore:
    """Serves entity collections and series queries over one ShiftData."""

    def __init__(self, data: Optional[ShiftData] = None):
        self._data: Optional[ShiftData] = None
        if data is not None:
            self.load(data)

    @property
    def loaded(self) -> bool:
        return self._data is not None

    def load(self, data: ShiftData) -> None:
        """Replace the stored shift."""
        self._data = data
        counts = data.sample_counts()
        logger.info(
            f"Store loaded: {len(data.robots)} robots, {len(data.pickers)} pickers, "
            f"{len(data.carts)} carts, {len(data.orders)} orders, "
            f"{sum(counts.values())} time-series points"
        )

    def clear(self) -> None:
        self._data = None

    def _require(self) -> ShiftData:
        if self._data is None:
            raise UpstreamUnavailable("Shift store has not been populated")
        return self._data

    @property
    def shift_window(self) -> Tuple[datetime, datetime]:
        data = self._require()
        return data.shift_start, data.shift_end

    # ===== Entity collections =====

    async def get_robots(self) -> List[Robot]:
        return sorted(self._require().robots, key=lambda r: r.id)

    async def get_pickers(self) -> List[Picker]:
        return sorted(self._require().pickers, key=lambda p: p.id)

    async def get_carts(self) -> List[Cart]:
        return sorted(self._require().carts, key=lambda c: c.id)

    async def get_orders(self) -> List[Order]:
        """Orders, newest first."""
        return sorted(self._require().orders, key=lambda o: o.created_at, reverse=True)

    async def get_orders_by_status(self, status: OrderStatus) -> List[Order]:
        return [o for o in await self.get_orders() if o.status == status]

    # ===== Latest point per entity =====

    @staticmethod
    def _latest(samples: List[Any], now: datetime) -> List[Any]:
        """Most recent sample per entity in [now - 24h, now]."""
        cutoff = now - LATEST_LOOKBACK
        return latest_state((s for s in samples if cutoff <= s.time <= now),
                            key=lambda s: s.entity_id)

    async def get_latest_robot_telemetry(self, now: datetime) -> List[RobotTelemetrySample]:
        return self._latest(self._require().robot_telemetry, now)

    async def get_latest_picker_activity(self, now: datetime) -> List[PickerActivitySample]:
        return self._latest(self._require().picker_activity, now)

    async def get_latest_order_events(self, now: datetime) -> List[OrderEventSample]:
        return self._latest(self._require().order_events, now)

    async def get_latest_cart_movement(self, now: datetime) -> List[CartMovementSample]:
        return self._latest(self._require().cart_movement, now)

    # ===== All points for one entity =====

    @staticmethod
    def _since(samples: List[Any], entity_id: str, start: datetime,
               until: datetime) -> List[Any]:
        return [s for s in samples
                if s.entity_id == entity_id and start <= s.time <= until]

    async def get_robot_telemetry_since(self, robot_id: str, start: datetime,
                                        until: datetime) -> List[RobotTelemetrySample]:
        return self._since(self._require().robot_telemetry, robot_id, start, until)

    async def get_picker_activity_since(self, picker_id: str, start: datetime,
                                        until: datetime) -> List[PickerActivitySample]:
        return self._since(self._require().picker_activity, picker_id, start, until)

    async def get_cart_movement_since(self, cart_id: str, start: datetime,
                                      until: datetime) -> List[CartMovementSample]:
        return self._since(self._require().cart_movement, cart_id, start, until)

    async def health(self) -> Dict[str, Any]:
        if self._data is None:
            return {"status": "unhealthy", "loaded": False, "data": {}}
        return {
            "status": "healthy",
            "loaded": True,
            "data": {
                "robots": len(self._data.robots),
                "pickers": len(self._data.pickers),
                "carts": len(self._data.carts),
                "orders": len(self._data.orders),
                **self._data.sample_counts(),
            },
        }
