"""Shift simulator orchestrating all generators.

Runs one full warehouse shift:

- Static roster (robots, pickers, carts, orders)
- Robot telemetry and picker activity every 5 minutes
- Cart movement every 10 minutes
- Order lifecycle events (created, assigned, started, completed), with
  each order record carried forward to its latest event

The shift window, break window, entity counts and tick grid come from
:class:`~warehouse_shift_sim.config.ShiftConfig`.
"""

import logging
import random
from datetime import date, datetime
from typing import Optional

from .config import ShiftConfig
from .generators import (
    EntityGenerator,
    OrderEventGenerator,
    TimeSeriesGenerator,
    apply_order_events,
)
from .models import ShiftData

logger = logging.getLogger(__name__)


class ShiftSimulator:
    """Generates a complete :class:`ShiftData` for one shift."""

    def __init__(self, shift: ShiftConfig, rng: Optional[random.Random] = None,
                 today: Optional[date] = None):
        shift.validate()
        self.shift = shift
        self._rng = rng or random.Random(shift.random_seed)
        self.shift_start, self.shift_end = shift.window(today)
        self.break_start, self.break_end = shift.break_window(today)

    def run(self, now: Optional[datetime] = None) -> ShiftData:
        """Generate entities and all four time series."""
        logger.info(
            f"Generating shift data for {self.shift_start:%Y-%m-%d %H:%M} - "
            f"{self.shift_end:%H:%M}"
        )

        entities = EntityGenerator(
            shift_start=self.shift_start,
            shift_end=self.shift_end,
            robots=self.shift.robots,
            pickers=self.shift.pickers,
            carts=self.shift.carts,
            orders=self.shift.orders,
            rng=self._rng,
        )
        robots = entities.generate_robots()
        pickers = entities.generate_pickers()
        carts = entities.generate_carts()
        orders = entities.generate_orders()

        series = TimeSeriesGenerator(
            robots=robots,
            pickers=pickers,
            carts=carts,
            shift_start=self.shift_start,
            shift_end=self.shift_end,
            break_start=self.break_start,
            break_end=self.break_end,
            rng=self._rng,
            robot_tick=self.shift.robot_tick,
            picker_tick=self.shift.picker_tick,
            cart_tick=self.shift.cart_tick,
        )
        robot_telemetry = series.generate_robot_telemetry()
        picker_activity = series.generate_picker_activity()
        cart_movement = series.generate_cart_movement()

        order_events = OrderEventGenerator(
            pickers=pickers,
            shift_end=self.shift_end,
            rng=self._rng,
        ).generate(orders)
        orders = apply_order_events(orders, order_events)

        data = ShiftData(
            robots=robots,
            pickers=pickers,
            carts=carts,
            orders=orders,
            robot_telemetry=robot_telemetry,
            picker_activity=picker_activity,
            order_events=order_events,
            cart_movement=cart_movement,
            shift_start=self.shift_start,
            shift_end=self.shift_end,
            generated_at=now or datetime.now(),
        )

        logger.info(
            f"Generated {len(robots)} robots, {len(pickers)} pickers, "
            f"{len(carts)} carts, {len(orders)} orders"
        )
        counts = data.sample_counts()
        logger.info(
            f"Generated {counts['robot_telemetry']} robot telemetry points, "
            f"{counts['picker_activity']} picker activity points, "
            f"{counts['order_events']} order events, "
            f"{counts['cart_movement']} cart movement points"
        )
        return data
