import threading

import pytest

from conftest import DROP_LOCATION, RecordingTransport
from notifications.publisher import LiveUpdatePublisher
from notifications.refresh import RefreshScheduler
from orders.models import EtaWindow, Order, OrderStatus
from orders.store import InMemoryOrderStore


@pytest.fixture
def scheduler():
    scheduler = RefreshScheduler(interval_seconds=0.01)
    yield scheduler
    scheduler.shutdown(timeout=1)


def test_interval_must_be_positive():
    with pytest.raises(ValueError):
        RefreshScheduler(interval_seconds=0)


def test_one_task_per_order(scheduler):
    ticked = threading.Event()

    def tick():
        ticked.set()
        return True

    assert scheduler.start("o1", tick) is True
    assert scheduler.start("o1", tick) is False
    assert scheduler.active_order_ids() == ["o1"]
    assert ticked.wait(1)


def test_cancel_stops_the_task(scheduler):
    assert scheduler.start("o1", lambda: True)

    assert scheduler.cancel("o1") is True
    assert scheduler.is_active("o1") is False
    assert scheduler.cancel("o1") is False


def test_task_ends_when_tick_says_so(scheduler):
    done = threading.Event()
    calls = []

    def tick():
        calls.append(1)
        if len(calls) == 3:
            done.set()
            return False
        return True

    scheduler.start("o1", tick)
    assert done.wait(1)

    task_gone = threading.Event()
    for _ in range(100):
        if not scheduler.is_active("o1"):
            task_gone.set()
            break
        task_gone.wait(0.01)
    assert task_gone.is_set()
    assert len(calls) == 3


def test_failing_tick_keeps_refreshing(scheduler):
    calls = []
    recovered = threading.Event()

    def tick():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("push gateway down")
        recovered.set()
        return False

    scheduler.start("o1", tick)
    assert recovered.wait(1)


def test_publisher_refresh_stops_on_delivery(scheduler):
    orders = InMemoryOrderStore()
    orders.add(Order(id="o1", customer_id="c1", restaurant_id="r1", drop_location=DROP_LOCATION,
                     status=OrderStatus.OUT_FOR_DELIVERY, eta=EtaWindow(min=5, max=9)))
    transport = RecordingTransport()
    publisher = LiveUpdatePublisher(transport, orders=orders, scheduler=scheduler)

    assert publisher.start_periodic_refresh("o1") is True

    pushed = threading.Event()
    for _ in range(100):
        if transport.messages:
            pushed.set()
            break
        pushed.wait(0.01)
    assert pushed.is_set()

    order = orders.get("o1")
    order.status = OrderStatus.DELIVERED
    orders.save(order)

    stopped = threading.Event()
    for _ in range(100):
        if not scheduler.is_active("o1"):
            stopped.set()
            break
        stopped.wait(0.01)
    assert stopped.is_set()
