"""Tests for the ShiftSimulator."""

from datetime import date, datetime

import pytest

from warehouse_shift_sim.config import ShiftConfig
from warehouse_shift_sim.errors import ConfigurationError
from warehouse_shift_sim.models import OrderEventType, PickerStatus
from warehouse_shift_sim.simulator import ShiftSimulator

GENERATED_AT = datetime(2025, 9, 7, 15, 0)


class TestShiftSimulator:
    """Tests for ShiftSimulator."""

    @pytest.fixture
    def shift(self):
        return ShiftConfig(date=date(2025, 9, 7), random_seed=42)

    @pytest.fixture
    def data(self, shift):
        return ShiftSimulator(shift).run(now=GENERATED_AT)

    def test_entity_counts(self, data):
        assert len(data.robots) == 8
        assert len(data.pickers) == 8
        assert len(data.carts) == 20
        assert len(data.orders) == 200

    def test_sample_counts(self, data):
        counts = data.sample_counts()

        assert counts["robot_telemetry"] == 584
        assert counts["picker_activity"] == 584
        assert counts["cart_movement"] == 740
        assert counts["order_events"] >= 200

    def test_window(self, data):
        assert data.shift_start == datetime(2025, 9, 7, 8, 0)
        assert data.shift_end == datetime(2025, 9, 7, 14, 0)
        assert data.generated_at == GENERATED_AT

    def test_every_order_has_created_event(self, data):
        created = {e.order_id for e in data.order_events
                   if e.event_type == OrderEventType.CREATED}

        assert created == {o.id for o in data.orders}

    def test_order_records_follow_latest_event(self, data):
        latest = {}
        for event in data.order_events:
            latest[event.order_id] = event

        for order in data.orders:
            assert order.status == latest[order.id].status
            assert order.assigned_picker == latest[order.id].assigned_picker
            assert order.updated_at == latest[order.id].time

    def test_pickers_on_break_at_noon(self, data):
        noon = datetime(2025, 9, 7, 12, 0)
        statuses = {s.status for s in data.picker_activity if s.time == noon}

        assert statuses == {PickerStatus.BREAK}

    def test_same_seed_same_shift(self, shift, data):
        again = ShiftSimulator(shift).run(now=GENERATED_AT)

        assert [o.to_dict() for o in again.orders] == [o.to_dict() for o in data.orders]
        assert [e.to_dict() for e in again.order_events] == [
            e.to_dict() for e in data.order_events
        ]
        assert [s.to_dict() for s in again.robot_telemetry] == [
            s.to_dict() for s in data.robot_telemetry
        ]

    def test_custom_counts_and_ticks(self):
        shift = ShiftConfig(
            date=date(2025, 9, 7),
            robots=2,
            pickers=3,
            carts=4,
            orders=5,
            robot_tick_minutes=60,
            random_seed=1,
        )

        data = ShiftSimulator(shift).run()

        assert len(data.robot_telemetry) == 2 * 7
        assert len(data.orders) == 5

    def test_defaults_to_today(self):
        sim = ShiftSimulator(ShiftConfig(random_seed=1), today=date(2026, 3, 4))

        assert sim.shift_start == datetime(2026, 3, 4, 8, 0)

    def test_invalid_config_raises_before_generation(self):
        with pytest.raises(ConfigurationError):
            ShiftSimulator(ShiftConfig(robots=0))

    def test_lookup_resolves_soft_references(self, data):
        sample = next(s for s in data.cart_movement if s.assigned_robot)

        robot = data.lookup(sample.assigned_robot)

        assert robot is not None
        assert robot.id == sample.assigned_robot
        assert data.lookup("AMR-999") is None
        assert data.lookup(None) is None
