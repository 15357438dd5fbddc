"""Tests for data generators."""

import random
from datetime import datetime, timedelta

import pytest

from warehouse_shift_sim.errors import ConfigurationError
from warehouse_shift_sim.generators import (
    EntityGenerator,
    OrderEventGenerator,
    TimeSeriesGenerator,
    apply_order_events,
    battery_level,
    format_id,
    iter_ticks,
    pick_accuracy,
    picker_letters,
    picks_per_hour,
    should_charge,
    tasks_completed,
    total_distance,
    total_picks,
)
from warehouse_shift_sim.models import (
    CartActivity,
    Order,
    OrderEventType,
    OrderItem,
    OrderPriority,
    OrderStatus,
    Picker,
    PickerStatus,
    RobotStatus,
)

SHIFT_START = datetime(2025, 9, 7, 8, 0)
SHIFT_END = datetime(2025, 9, 7, 14, 0)
BREAK_START = datetime(2025, 9, 7, 11, 30)
BREAK_END = datetime(2025, 9, 7, 12, 30)


class ScriptedRandom(random.Random):
    """Random whose ``random()`` replays a fixed list of draws."""

    def __init__(self, draws):
        super().__init__(0)
        self._draws = list(draws)

    def random(self):
        if not self._draws:
            raise AssertionError("ScriptedRandom ran out of draws")
        return self._draws.pop(0)


def make_order(order_id="ORD-0001", created_at=SHIFT_START, estimated_time=20):
    return Order(
        id=order_id,
        priority=OrderPriority.MEDIUM,
        items=[OrderItem(id="ITEM-001", name="Blue Widget", quantity=2, location="A1-R1-A")],
        estimated_time=estimated_time,
        created_at=created_at,
        updated_at=created_at,
    )


class TestHelpers:
    """Tests for id, location and tick helpers."""

    def test_format_id_pads(self):
        assert format_id("AMR", 7, 3) == "AMR-007"
        assert format_id("ORD", 12, 4) == "ORD-0012"

    def test_picker_letters(self):
        assert picker_letters(0) == "A"
        assert picker_letters(25) == "Z"
        assert picker_letters(26) == "AA"
        assert picker_letters(52) == "BA"

    def test_iter_ticks_includes_both_ends(self):
        ticks = list(iter_ticks(SHIFT_START, SHIFT_END, timedelta(minutes=5)))

        assert len(ticks) == 73
        assert ticks[0] == SHIFT_START
        assert ticks[-1] == SHIFT_END

    def test_iter_ticks_rejects_zero_interval(self):
        with pytest.raises(ConfigurationError):
            list(iter_ticks(SHIFT_START, SHIFT_END, timedelta(0)))

    def test_iter_ticks_rejects_empty_window(self):
        with pytest.raises(ConfigurationError):
            list(iter_ticks(SHIFT_END, SHIFT_START, timedelta(minutes=5)))


class TestFormulas:
    """Tests for the per-entity numeric formulas."""

    def test_battery_drains_from_initial_level(self):
        assert battery_level(0, 0, charging=False) == 85
        assert battery_level(3, 0, charging=False) == 91
        assert battery_level(0, 2, charging=False) == 69

    def test_battery_bounds(self):
        assert battery_level(0, 20, charging=False) == 0.0
        assert battery_level(0, 10, charging=True) == 100.0
        assert battery_level(0, 2, charging=True) == 50

    def test_should_charge_below_threshold(self):
        assert should_charge(0, 9) is True
        assert should_charge(0, 6) is False

    def test_robot_counters(self):
        assert tasks_completed(0, 1.5) == 14
        assert total_distance(1, 2) == 2200

    def test_picks_per_hour_fatigue_floor(self):
        assert picks_per_hour(0, 0, on_break=False) == 100
        assert picks_per_hour(3, 1, on_break=False) == 103
        assert picks_per_hour(0, 5, on_break=False) == 70
        assert picks_per_hour(0, 1, on_break=True) == 0

    def test_total_picks_excludes_break(self):
        assert total_picks(0, 3, break_started=False, break_hours=1) == 110
        assert total_picks(0, 6, break_started=True, break_hours=1) == 150

    def test_total_picks_active_hours_never_negative(self):
        assert total_picks(0, 0.5, break_started=True, break_hours=1) == 50

    def test_pick_accuracy(self):
        assert pick_accuracy(0, 0) == 98.0
        assert pick_accuracy(10, 0) == 100.0
        assert pick_accuracy(0, 5) == pytest.approx(98 * 0.95)


class TestEntityGenerator:
    """Tests for EntityGenerator."""

    @pytest.fixture
    def generator(self):
        return EntityGenerator(SHIFT_START, SHIFT_END, rng=random.Random(42))

    def test_default_counts(self, generator):
        assert len(generator.generate_robots()) == 8
        assert len(generator.generate_pickers()) == 8
        assert len(generator.generate_carts()) == 20
        assert len(generator.generate_orders()) == 200

    def test_ids_are_padded_and_unique(self, generator):
        robots = generator.generate_robots()
        pickers = generator.generate_pickers()
        carts = generator.generate_carts()
        orders = generator.generate_orders()

        assert robots[0].id == "AMR-001"
        assert pickers[0].id == "PICKER-01"
        assert pickers[0].name == "Picker A"
        assert carts[-1].id == "CART-020"
        assert orders[-1].id == "ORD-0200"

        ids = [e.id for e in robots + pickers + carts + orders]
        assert len(ids) == len(set(ids))

    def test_id_width_grows_with_count(self):
        gen = EntityGenerator(SHIFT_START, SHIFT_END, robots=1000, rng=random.Random(1))

        robots = gen.generate_robots()
        assert robots[0].id == "AMR-0001"
        assert robots[-1].id == "AMR-1000"

    def test_orders_within_shift(self, generator):
        for order in generator.generate_orders():
            assert SHIFT_START <= order.created_at < SHIFT_END
            assert order.updated_at == order.created_at
            assert order.status == OrderStatus.PENDING
            assert 1 <= order.item_count <= 8
            assert 2 * order.item_count <= order.estimated_time <= 2 * order.item_count + 9
            assert [i.id for i in order.items][0] == "ITEM-001"
            for item in order.items:
                assert 1 <= item.quantity <= 3
                assert item.location.startswith("A")

    def test_created_at_excludes_shift_end(self):
        class HighestDraw(random.Random):
            def randrange(self, start, stop=None, step=1):
                return (start if stop is None else stop) - 1

        gen = EntityGenerator(SHIFT_START, SHIFT_END, rng=HighestDraw(0))

        assert gen._random_time_in_shift() == SHIFT_END - timedelta(microseconds=1)

    def test_all_priorities_drawn(self, generator):
        priorities = {o.priority for o in generator.generate_orders()}

        assert priorities == set(OrderPriority)

    def test_seeded_runs_are_identical(self):
        a = EntityGenerator(SHIFT_START, SHIFT_END, rng=random.Random(7)).generate_orders()
        b = EntityGenerator(SHIFT_START, SHIFT_END, rng=random.Random(7)).generate_orders()

        assert [o.to_dict() for o in a] == [o.to_dict() for o in b]

    def test_rejects_empty_window(self):
        with pytest.raises(ConfigurationError):
            EntityGenerator(SHIFT_END, SHIFT_START)

    def test_rejects_non_positive_count(self):
        with pytest.raises(ConfigurationError):
            EntityGenerator(SHIFT_START, SHIFT_END, carts=0)


class TestTimeSeriesGenerator:
    """Tests for TimeSeriesGenerator."""

    @pytest.fixture
    def entities(self):
        gen = EntityGenerator(SHIFT_START, SHIFT_END, rng=random.Random(3))
        return gen.generate_robots(), gen.generate_pickers(), gen.generate_carts()

    @pytest.fixture
    def generator(self, entities):
        robots, pickers, carts = entities
        return TimeSeriesGenerator(
            robots, pickers, carts,
            shift_start=SHIFT_START,
            shift_end=SHIFT_END,
            break_start=BREAK_START,
            break_end=BREAK_END,
            rng=random.Random(3),
        )

    def test_robot_sample_count(self, generator):
        # 8 robots x 73 ticks (08:00 to 14:00 inclusive, every 5 minutes)
        assert len(generator.generate_robot_telemetry()) == 584

    def test_picker_and_cart_sample_counts(self, generator):
        assert len(generator.generate_picker_activity()) == 584
        assert len(generator.generate_cart_movement()) == 20 * 37

    def test_one_sample_per_entity_per_tick(self, generator):
        telemetry = generator.generate_robot_telemetry()

        keys = {(s.robot_id, s.time) for s in telemetry}
        assert len(keys) == len(telemetry)

    def test_battery_never_increases_without_charging(self, generator):
        telemetry = generator.generate_robot_telemetry()

        by_robot = {}
        for sample in telemetry:
            by_robot.setdefault(sample.robot_id, []).append(sample)

        for samples in by_robot.values():
            for prev, cur in zip(samples, samples[1:]):
                if cur.status != RobotStatus.CHARGING:
                    assert cur.battery <= prev.battery
            for sample in samples:
                assert 0 <= sample.battery <= 100

    def test_assigned_cart_only_when_active(self, generator):
        for sample in generator.generate_robot_telemetry():
            if sample.status != RobotStatus.ACTIVE:
                assert sample.assigned_cart is None
            else:
                assert sample.assigned_cart.startswith("CART-")

    def test_pickers_on_break_inside_break_window(self, generator):
        for sample in generator.generate_picker_activity():
            if BREAK_START <= sample.time <= BREAK_END:
                assert sample.status == PickerStatus.BREAK
                assert sample.picks_per_hour == 0
                assert sample.break_duration == (sample.time - BREAK_START).seconds // 60
            else:
                assert sample.status == PickerStatus.ACTIVE
                assert sample.break_duration is None
                assert sample.picks_per_hour > 0

    def test_picker_assigned_carts(self, generator):
        for sample in generator.generate_picker_activity():
            assert 1 <= len(sample.assigned_cart_ids) <= 2

    def test_cart_movement_fields(self, generator):
        for sample in generator.generate_cart_movement():
            if sample.status == CartActivity.IDLE:
                assert sample.items_in_cart == 0
                assert sample.capacity_utilization == 0
                assert sample.location is None
            else:
                assert 1 <= sample.items_in_cart <= 20
                assert 20 <= sample.capacity_utilization <= 99
                assert sample.assigned_robot.startswith("AMR-")

    def test_break_hours(self, generator):
        assert generator.break_hours == 1.0
        assert generator.is_on_break(BREAK_END) is True
        assert generator.is_on_break(BREAK_END + timedelta(minutes=5)) is False

    def test_rejects_zero_tick(self, entities):
        robots, pickers, carts = entities
        with pytest.raises(ConfigurationError):
            TimeSeriesGenerator(
                robots, pickers, carts,
                SHIFT_START, SHIFT_END, BREAK_START, BREAK_END,
                robot_tick=timedelta(0),
            )


class TestOrderEventGenerator:
    """Tests for OrderEventGenerator."""

    @pytest.fixture
    def pickers(self):
        return [Picker(id="PICKER-01", name="Picker A"), Picker(id="PICKER-02", name="Picker B")]

    def test_scripted_order_completes_on_estimate(self, pickers):
        # assign, choose picker 0, assign now, start at +10min, complete, no jitter
        rng = ScriptedRandom([0.0, 0.0, 0.0, 1 / 3, 0.0, 0.0])
        gen = OrderEventGenerator(pickers, SHIFT_END, rng=rng)

        events = gen.events_for(make_order())

        assert [e.event_type for e in events] == [
            OrderEventType.CREATED,
            OrderEventType.ASSIGNED,
            OrderEventType.STARTED,
            OrderEventType.COMPLETED,
        ]
        assert events[1].time == SHIFT_START
        assert events[2].time == SHIFT_START + timedelta(minutes=10)
        assert events[3].time == SHIFT_START + timedelta(minutes=30)
        assert events[3].actual_time == 20
        assert events[3].status == OrderStatus.PACKED
        assert events[3].assigned_picker == "PICKER-01"

    def test_unassigned_order_only_created(self, pickers):
        gen = OrderEventGenerator(pickers, SHIFT_END, rng=ScriptedRandom([0.9]))

        events = gen.events_for(make_order())

        assert len(events) == 1
        assert events[0].event_type == OrderEventType.CREATED
        assert events[0].status == OrderStatus.PENDING
        assert events[0].assigned_picker is None

    def test_completion_after_shift_end_is_dropped(self, pickers):
        rng = ScriptedRandom([0.0, 0.0, 0.0, 0.0, 0.0, 0.0])
        gen = OrderEventGenerator(pickers, SHIFT_END, rng=rng)

        events = gen.events_for(make_order(created_at=SHIFT_END - timedelta(minutes=10)))

        assert events[-1].event_type == OrderEventType.STARTED

    def test_no_pickers_means_no_assignment(self):
        gen = OrderEventGenerator([], SHIFT_END, rng=random.Random(1))

        events = gen.events_for(make_order())

        assert [e.event_type for e in events] == [OrderEventType.CREATED]

    def test_apply_order_events(self, pickers):
        rng = ScriptedRandom([0.0, 0.0, 0.0, 1 / 3, 0.9])
        order = make_order()
        untouched = make_order("ORD-0002")
        events = OrderEventGenerator(pickers, SHIFT_END, rng=rng).events_for(order)

        updated, same = apply_order_events([order, untouched], events)

        assert updated.status == OrderStatus.PICKING
        assert updated.assigned_picker == "PICKER-01"
        assert updated.updated_at == SHIFT_START + timedelta(minutes=10)
        assert updated.created_at == order.created_at
        assert same is untouched

    def test_events_sorted_and_causal(self, pickers):
        orders = EntityGenerator(SHIFT_START, SHIFT_END, rng=random.Random(9)).generate_orders()
        events = OrderEventGenerator(pickers, SHIFT_END, rng=random.Random(9)).generate(orders)

        times = [e.time for e in events]
        assert times == sorted(times)

        rank = {t: i for i, t in enumerate(OrderEventType)}
        by_order = {}
        for event in events:
            by_order.setdefault(event.order_id, []).append(event)

        assert len(by_order) == len(orders)
        for order_events in by_order.values():
            assert order_events[0].event_type == OrderEventType.CREATED
            ranks = [rank[e.event_type] for e in order_events]
            assert ranks == sorted(ranks)
            for event in order_events:
                if event.event_type == OrderEventType.COMPLETED:
                    assert event.time <= SHIFT_END
                    assert event.actual_time >= event.estimated_time
