"""Snapshot orchestration: store fetches, caching and derived views."""

import asyncio
import logging
import time
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from .cache import ResultCache
from .metrics import calculate_kpis, calculate_realtime_counts
from .models import KPI, ShiftSnapshot
from .store import ShiftStore
from .windowing import (
    DEFAULT_TIME_RANGE,
    cart_utilization_over_time,
    downsample,
    parse_time_range,
    picker_efficiency_over_time,
    robot_performance_over_time,
)

logger = logging.getLogger(__name__)

SNAPSHOT_CACHE_KEY = "dashboard"


class ShiftDataService:
    """Builds and caches shift snapshots from a :class:`ShiftStore`."""

    def __init__(
        self,
        store: ShiftStore,
        cache: Optional[ResultCache] = None,
        now: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.cache = cache if cache is not None else ResultCache()
        self._now = now

    async def build_snapshot(self) -> ShiftSnapshot:
        """Fetch all eight collections concurrently and join them.

        Store errors (e.g. UpstreamUnavailable) propagate unchanged.
        """
        as_of = self._now()
        started = time.perf_counter()

        (
            robots,
            pickers,
            carts,
            orders,
            robot_telemetry,
            picker_activity,
            order_events,
            cart_movement,
        ) = await asyncio.gather(
            self.store.get_robots(),
            self.store.get_pickers(),
            self.store.get_carts(),
            self.store.get_orders(),
            self.store.get_latest_robot_telemetry(as_of),
            self.store.get_latest_picker_activity(as_of),
            self.store.get_latest_order_events(as_of),
            self.store.get_latest_cart_movement(as_of),
        )
        shift_start, shift_end = self.store.shift_window

        logger.info(
            f"Built snapshot as of {as_of.isoformat()} in "
            f"{(time.perf_counter() - started) * 1000:.1f} ms"
        )
        return ShiftSnapshot(
            robots=robots,
            pickers=pickers,
            carts=carts,
            orders=orders,
            robot_telemetry=robot_telemetry,
            picker_activity=picker_activity,
            order_events=order_events,
            cart_movement=cart_movement,
            shift_start=shift_start,
            shift_end=shift_end,
            as_of=as_of,
        )

    async def get_snapshot(self) -> ShiftSnapshot:
        """Cached snapshot; rebuilt once the cache entry goes stale."""
        return await self.cache.get_or_build(SNAPSHOT_CACHE_KEY, self.build_snapshot)

    async def get_kpis(self) -> List[KPI]:
        snapshot = await self.get_snapshot()
        return calculate_kpis(
            snapshot.robot_telemetry,
            snapshot.picker_activity,
            snapshot.order_events,
            snapshot.cart_movement,
        )

    async def get_realtime_counts(self) -> Dict[str, int]:
        snapshot = await self.get_snapshot()
        return calculate_realtime_counts(
            snapshot.robot_telemetry,
            snapshot.picker_activity,
            snapshot.order_events,
            snapshot.cart_movement,
        )

    # ===== Time-based queries =====

    async def get_robot_series(
        self,
        robot_id: str,
        time_range: Optional[str] = DEFAULT_TIME_RANGE,
        every: Optional[timedelta] = None,
    ) -> List[Dict[str, Any]]:
        now = self._now()
        samples = await self.store.get_robot_telemetry_since(
            robot_id, now - parse_time_range(time_range), now
        )
        points = robot_performance_over_time(samples, robot_id, time_range, now)
        return downsample(points, every) if every else points

    async def get_picker_series(
        self,
        picker_id: str,
        time_range: Optional[str] = DEFAULT_TIME_RANGE,
        every: Optional[timedelta] = None,
    ) -> List[Dict[str, Any]]:
        now = self._now()
        samples = await self.store.get_picker_activity_since(
            picker_id, now - parse_time_range(time_range), now
        )
        points = picker_efficiency_over_time(samples, picker_id, time_range, now)
        return downsample(points, every) if every else points

    async def get_cart_series(
        self,
        cart_id: str,
        time_range: Optional[str] = DEFAULT_TIME_RANGE,
        every: Optional[timedelta] = None,
    ) -> List[Dict[str, Any]]:
        now = self._now()
        samples = await self.store.get_cart_movement_since(
            cart_id, now - parse_time_range(time_range), now
        )
        points = cart_utilization_over_time(samples, cart_id, time_range, now)
        return downsample(points, every) if every else points

    async def health(self) -> Dict[str, Any]:
        return await self.store.health()
