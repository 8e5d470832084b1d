from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

import pytest

from eta.estimator import EtaEstimator
from eta.policy import default_eta_policy
from eta.processor import EtaEventProcessor
from notifications.publisher import LiveUpdatePublisher
from orders.models import DeliveryPartner, Order, OrderStatus, Restaurant
from orders.store import (
    InMemoryDeliveryPartnerDirectory,
    InMemoryEtaLogStore,
    InMemoryOrderEventLog,
    InMemoryOrderStore,
    InMemoryRestaurantDirectory,
)
from routing.travel_time import TrafficLevel, TravelTime

T0 = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)

RESTAURANT_LOCATION = (-17.8250, 31.0500)
DROP_LOCATION = (-17.8340, 31.0500)  # ~1 km south
RIDER_LOCATION = (-17.8200, 31.0500)


class MockTravelTimes:
    """
    Stand-in for TravelTimeProvider. Every leg answers `default` unless a
    specific (origin, destination) pair was given its own TravelTime.
    """
    def __init__(self, default: Optional[TravelTime] = None):
        self.default = default or TravelTime(distance_km=1.0, duration_minutes=2)
        self.legs: Dict[Tuple, TravelTime] = {}
        self.calls: List[Tuple] = []

    def set_leg(self, origin, destination, travel_time: TravelTime):
        self.legs[(tuple(origin), tuple(destination))] = travel_time

    def get_travel_time(self, origin, destination, mode="driving", traffic_model="best_guess"):
        key = (tuple(origin), tuple(destination))
        self.calls.append(key)
        return self.legs.get(key, self.default)


class RecordingTransport:
    def __init__(self, failing_rooms=()):
        self.failing_rooms = set(failing_rooms)
        self.messages: List[Tuple[str, str, dict]] = []

    def emit(self, room, event, payload):
        if room in self.failing_rooms:
            raise ConnectionError(f"socket for {room} is gone")
        self.messages.append((room, event, payload))

    def events_for(self, room):
        return [event for r, event, _ in self.messages if r == room]


class FakeClock:
    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class Engine:
    """
    Everything an EtaEventProcessor needs, wired with in-memory stores.
    """
    def __init__(self, travel_times=None, transport=None, clock=None):
        self.policy = default_eta_policy()
        self.clock = clock or FakeClock()
        self.travel_times = travel_times or MockTravelTimes()
        self.transport = transport or RecordingTransport()

        self.orders = InMemoryOrderStore()
        self.restaurants = InMemoryRestaurantDirectory.of(self.orders, [
            Restaurant(id="r1", name="Chicken Inn", location=RESTAURANT_LOCATION,
                       estimated_delivery_time="25-30 mins"),
        ])
        self.riders = InMemoryDeliveryPartnerDirectory.of([
            DeliveryPartner(id="rider-1", name="Tendai", location=RIDER_LOCATION),
        ])
        self.events = InMemoryOrderEventLog()
        self.eta_logs = InMemoryEtaLogStore()

        self.estimator = EtaEstimator(self.travel_times, self.restaurants, self.policy)
        self.publisher = LiveUpdatePublisher(self.transport, orders=self.orders,
                                             policy=self.policy, clock=self.clock)
        self.processor = EtaEventProcessor(
            orders=self.orders,
            riders=self.riders,
            events=self.events,
            eta_logs=self.eta_logs,
            estimator=self.estimator,
            publisher=self.publisher,
            clock=self.clock,
        )

    def place_order(self, order_id="o1", status=OrderStatus.PENDING, **kwargs) -> Order:
        order = Order(
            id=order_id,
            customer_id=kwargs.pop("customer_id", "c1"),
            restaurant_id=kwargs.pop("restaurant_id", "r1"),
            drop_location=kwargs.pop("drop_location", DROP_LOCATION),
            status=status,
            created_at=kwargs.pop("created_at", self.clock()),
            **kwargs,
        )
        return self.orders.add(order)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def travel_times():
    return MockTravelTimes()


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def engine(travel_times, transport, clock):
    return Engine(travel_times=travel_times, transport=transport, clock=clock)
