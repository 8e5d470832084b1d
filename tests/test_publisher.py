import pytest

from conftest import DROP_LOCATION, RecordingTransport, T0
from notifications.publisher import LiveUpdatePublisher, PublishEvent, rooms_for
from notifications.transport import LoggingTransport, WebhookTransport, build_transport
from orders.models import EtaWindow, Order, OrderStatus
from orders.store import InMemoryOrderStore


def make_order(**kwargs):
    return Order(id="o1", customer_id="c1", restaurant_id="r1", drop_location=DROP_LOCATION,
                 created_at=T0, **kwargs)


def test_rooms_without_rider():
    assert rooms_for(make_order()) == ["order:o1", "user:c1", "restaurant:r1"]


def test_rooms_with_rider():
    assert rooms_for(make_order(rider_id="rider-1"))[-1] == "delivery:rider-1"


def test_publish_reaches_every_room():
    transport = RecordingTransport()
    publisher = LiveUpdatePublisher(transport)

    delivered = publisher.publish(make_order(rider_id="rider-1"), {"min_eta": 10}, PublishEvent.NEARBY)

    assert delivered == 4
    assert {room for room, _, _ in transport.messages} == {
        "order:o1", "user:c1", "restaurant:r1", "delivery:rider-1",
    }
    assert all(event == "nearby" for _, event, _ in transport.messages)


def test_one_failing_room_does_not_stop_the_rest(caplog):
    transport = RecordingTransport(failing_rooms={"order:o1"})
    publisher = LiveUpdatePublisher(transport)

    delivered = publisher.publish(make_order(), {"min_eta": 10})

    assert delivered == 2
    assert [room for room, _, _ in transport.messages] == ["user:c1", "restaurant:r1"]
    assert "order:o1" in caplog.text


def test_refresh_once_publishes_decayed_eta(clock):
    orders = InMemoryOrderStore()
    orders.add(make_order(status=OrderStatus.PREPARING, eta=EtaWindow(min=30, max=36)))
    transport = RecordingTransport()
    publisher = LiveUpdatePublisher(transport, orders=orders, clock=clock)
    clock.advance(minutes=5)

    assert publisher.refresh_once("o1") is True

    room, event, payload = transport.messages[0]
    assert event == "eta_updated"
    assert payload["order_id"] == "o1"
    assert (payload["min_eta"], payload["max_eta"]) == (25, 31)


@pytest.mark.parametrize("status", [OrderStatus.DELIVERED, OrderStatus.CANCELLED])
def test_refresh_stops_for_finished_orders(status):
    orders = InMemoryOrderStore()
    orders.add(make_order(status=status))
    transport = RecordingTransport()
    publisher = LiveUpdatePublisher(transport, orders=orders)

    assert publisher.refresh_once("o1") is False
    assert publisher.refresh_once("missing") is False
    assert transport.messages == []


def test_periodic_refresh_needs_a_scheduler():
    publisher = LiveUpdatePublisher(RecordingTransport(), orders=InMemoryOrderStore())
    assert publisher.start_periodic_refresh("o1") is False
    assert publisher.stop_periodic_refresh("o1") is False


def test_build_transport(monkeypatch):
    monkeypatch.setattr("notifications.transport.ETA_PUSH_WEBHOOK_URL", None)
    assert isinstance(build_transport(), LoggingTransport)
    assert isinstance(build_transport("https://push.example.com/emit"), WebhookTransport)


def test_webhook_transport_posts_message(monkeypatch):
    sent = {}

    class FakeResponse:
        def raise_for_status(self):
            pass

    def fake_post(url, json=None, timeout=None):
        sent.update(url=url, json=json, timeout=timeout)
        return FakeResponse()

    monkeypatch.setattr("notifications.transport.requests.post", fake_post)

    WebhookTransport("https://push.example.com/emit", timeout=2).emit("order:o1", "eta_updated", {"min_eta": 5})

    assert sent == {
        "url": "https://push.example.com/emit",
        "json": {"room": "order:o1", "event": "eta_updated", "payload": {"min_eta": 5}},
        "timeout": 2,
    }


def test_webhook_transport_requires_url(monkeypatch):
    monkeypatch.setattr("notifications.transport.ETA_PUSH_WEBHOOK_URL", None)
    with pytest.raises(ValueError):
        WebhookTransport()
