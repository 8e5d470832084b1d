import pytest

from conftest import DROP_LOCATION, RESTAURANT_LOCATION, RIDER_LOCATION
from orders.models import EtaEventType, EtaReason, EtaWindow, OrderStatus, Restaurant
from routing.travel_time import TrafficLevel, TravelTime


def test_initial_estimate_for_unassigned_order(engine):
    """
    "25-30 mins" prep, empty kitchen, no rider, 1 km at 30 km/h (2 min):
    25 + 0 + 4 + ceil(2 * 0.3) + 2 + 4 = 36 -> 33-39.
    """
    estimate = engine.estimator.initial_estimate("r1", RESTAURANT_LOCATION, DROP_LOCATION)

    assert estimate.window == EtaWindow(min=33, max=39)
    b = estimate.breakdown
    assert b.restaurant_prep_time == 25
    assert b.restaurant_load_delay == 0
    assert b.rider_assignment_time == 4
    assert b.travel_time_rider_to_restaurant == 1
    assert b.travel_time_restaurant_to_user == 2
    assert b.traffic_multiplier == 1.0
    assert b.buffer_time == 4
    assert b.total_eta == 36
    assert b.error is None


def test_initial_estimate_accepts_location_mappings(engine):
    estimate = engine.estimator.initial_estimate(
        "r1",
        {"latitude": RESTAURANT_LOCATION[0], "longitude": RESTAURANT_LOCATION[1]},
        {"latitude": DROP_LOCATION[0], "longitude": DROP_LOCATION[1]},
    )
    assert estimate.breakdown.total_eta == 36


def test_initial_estimate_with_assigned_rider(engine, travel_times):
    """
    A known rider replaces the assignment wait with the real rider -> restaurant
    leg, and the worse traffic of the two legs sets the multiplier.
    """
    travel_times.set_leg(RIDER_LOCATION, RESTAURANT_LOCATION,
                         TravelTime(distance_km=2.0, duration_minutes=6, traffic_level=TrafficLevel.MEDIUM))

    estimate = engine.estimator.initial_estimate("r1", RESTAURANT_LOCATION, DROP_LOCATION,
                                                 rider_location=RIDER_LOCATION)

    b = estimate.breakdown
    assert b.rider_assignment_time == 0
    assert b.travel_time_rider_to_restaurant == 6
    assert b.traffic_level == "medium"
    assert b.total_distance == 3.0
    # ceil((6 + 2) * 1.2) = 10
    assert b.total_eta == 25 + 0 + 0 + 10 + 4
    assert estimate.window == EtaWindow(min=36, max=42)


def test_higher_traffic_never_lowers_the_estimate(engine, travel_times):
    totals = []
    for level in (TrafficLevel.LOW, TrafficLevel.MEDIUM, TrafficLevel.HIGH):
        travel_times.default = TravelTime(distance_km=3.0, duration_minutes=10, traffic_level=level)
        estimate = engine.estimator.initial_estimate("r1", RESTAURANT_LOCATION, DROP_LOCATION)
        totals.append(estimate.breakdown.total_eta)

    assert totals == sorted(totals)
    assert totals[0] < totals[-1]


@pytest.mark.parametrize("distance_km, buffer", [
    (4.99, 4),
    (5.0, 7),
    (12.0, 7),
])
def test_buffer_switches_at_five_km(engine, travel_times, distance_km, buffer):
    assert engine.estimator.buffer_time(distance_km) == buffer

    travel_times.default = TravelTime(distance_km=distance_km, duration_minutes=10)
    estimate = engine.estimator.initial_estimate("r1", RESTAURANT_LOCATION, DROP_LOCATION)
    assert estimate.breakdown.buffer_time == buffer


@pytest.mark.parametrize("pending, delay", [
    (0, 0),
    (1, 15),
    (2, 15),
    (3, 30),
    (5, 30),
    (40, 30),
])
def test_restaurant_load_delay_counts_whole_batches(engine, pending, delay):
    assert engine.estimator.restaurant_load_delay(pending) == delay


def test_kitchen_load_counts_confirmed_and_preparing_orders(engine):
    engine.place_order("busy-1", status=OrderStatus.CONFIRMED)
    engine.place_order("busy-2", status=OrderStatus.PREPARING)
    engine.place_order("done", status=OrderStatus.DELIVERED)
    engine.place_order("waiting", status=OrderStatus.PENDING)

    estimate = engine.estimator.initial_estimate("r1", RESTAURANT_LOCATION, DROP_LOCATION)

    assert estimate.breakdown.restaurant_load_delay == 15
    assert estimate.breakdown.total_eta == 36 + 15


@pytest.mark.parametrize("text, minutes", [
    ("25-30 mins", 25),
    ("40 min", 40),
    ("about half an hour", 25),
    ("", 25),
    (None, 25),
])
def test_prep_time_from_restaurant_text(engine, text, minutes):
    restaurant = Restaurant(id="r2", estimated_delivery_time=text)
    assert engine.estimator.restaurant_prep_time(restaurant) == minutes


def test_prep_time_without_restaurant(engine):
    assert engine.estimator.restaurant_prep_time(None) == 15


def test_initial_estimate_for_unknown_restaurant_uses_default_window(engine):
    estimate = engine.estimator.initial_estimate("missing", RESTAURANT_LOCATION, DROP_LOCATION)

    assert estimate.window == EtaWindow(min=25, max=30)
    assert "missing" in estimate.breakdown.error


def test_window_floor_for_tiny_totals(engine):
    assert engine.estimator.window_around(2) == EtaWindow(min=1, max=5)


# --- Recalculation strategies ---

def test_late_acceptance_shifts_current_window(engine):
    order = engine.place_order(eta=EtaWindow(min=20, max=26))

    result = engine.estimator.recalculate(order, EtaEventType.RESTAURANT_ACCEPTED_LATE, {"delay_minutes": 5})

    assert result.previous_eta == EtaWindow(min=20, max=26)
    assert result.new_eta == EtaWindow(min=25, max=31)
    assert result.reason == EtaReason.RESTAURANT_DELAYED
    assert result.breakdown.delay_minutes == 5


def test_food_not_ready_adds_waiting_time(engine):
    order = engine.place_order(eta=EtaWindow(min=10, max=16))

    result = engine.estimator.recalculate(order, EtaEventType.FOOD_NOT_READY, {"waiting_time": 7})

    assert result.new_eta == EtaWindow(min=17, max=23)
    assert result.reason == EtaReason.FOOD_NOT_READY


def test_previous_window_falls_back_to_estimated_delivery_time(engine):
    order = engine.place_order(estimated_delivery_time=30)
    result = engine.estimator.recalculate(order, EtaEventType.RIDER_ASSIGNED_LATE, {"delay_minutes": 2})

    assert result.previous_eta == EtaWindow(min=27, max=33)
    assert result.new_eta == EtaWindow(min=29, max=35)


def test_previous_window_defaults_when_order_has_no_eta(engine):
    order = engine.place_order()
    result = engine.estimator.recalculate(order, EtaEventType.MANUAL_RECALCULATION)

    assert result.previous_eta == EtaWindow(min=25, max=30)
    assert result.reason == EtaReason.MANUAL_UPDATE
    assert result.new_eta == EtaWindow(min=33, max=39)


def test_after_pickup_only_counts_the_customer_leg(engine):
    order = engine.place_order(eta=EtaWindow(min=30, max=36))

    result = engine.estimator.recalculate(order, EtaEventType.RIDER_STARTED_DELIVERY)

    b = result.breakdown
    assert result.reason == EtaReason.RIDER_STARTED_DELIVERY
    assert (b.restaurant_prep_time, b.restaurant_load_delay, b.rider_assignment_time) == (0, 0, 0)
    assert b.total_eta == 2 + 4
    assert result.new_eta == EtaWindow(min=3, max=9)


def test_reached_restaurant_uses_the_same_strategy(engine):
    order = engine.place_order(eta=EtaWindow(min=30, max=36))
    result = engine.estimator.recalculate(order, EtaEventType.RIDER_REACHED_RESTAURANT)

    assert result.reason == EtaReason.RIDER_REACHED_RESTAURANT
    assert result.new_eta == EtaWindow(min=3, max=9)


def test_traffic_update_applies_reported_level(engine):
    order = engine.place_order(eta=EtaWindow(min=30, max=36))

    result = engine.estimator.recalculate(order, EtaEventType.TRAFFIC_DETECTED, {"traffic_level": "high"})

    # ceil(2 * 1.4) + 4
    assert result.breakdown.total_eta == 7
    assert result.breakdown.traffic_level == "high"
    assert result.reason == EtaReason.TRAFFIC_UPDATE


def test_traffic_update_defaults_to_medium(engine):
    order = engine.place_order()
    result = engine.estimator.recalculate(order, EtaEventType.TRAFFIC_DETECTED, {})
    assert result.breakdown.traffic_multiplier == 1.2


@pytest.mark.parametrize("distance, window", [
    (0.3, EtaWindow(min=1, max=3)),
    (0.5, EtaWindow(min=1, max=3)),
    (0.0, EtaWindow(min=1, max=2)),
])
def test_nearing_drop_window(engine, distance, window):
    estimate = engine.estimator.nearing_drop(distance)

    assert estimate.window == window
    assert estimate.window.min < estimate.window.max
    assert estimate.breakdown.distance_to_drop == distance


def test_post_pickup_without_restaurant_location_raises(engine):
    from eta.errors import RestaurantNotFoundError

    order = engine.place_order(restaurant_id="ghost")
    with pytest.raises(RestaurantNotFoundError):
        engine.estimator.recalculate(order, EtaEventType.RIDER_STARTED_DELIVERY)
