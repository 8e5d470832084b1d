"""
Purpose: Event processor / orchestrator (the "glue").
What it does:

One handler per lifecycle event. Each handler:
  1. validates the payload (before touching anything)
  2. loads the order (OrderNotFoundError if absent, OrderClosedError if finished)
  3. refines the event with the timing decision tables (late / early)
  4. asks the estimator for the new window
  5. records the OrderEvent fact and the EtaLogEntry transition
  6. saves the order's live eta / estimated_delivery_time
     (5 and 6 run inside the injected `atomic` unit of work: all three writes or none)
  7. publishes the update (failures are logged by the publisher, never raised)
  8. returns the new ETA and the event record

Steps 2-6 run under a per-order lock so two events on the same order cannot
interleave their read-compute-write. Publishing happens after the lock is released.
"""

from __future__ import annotations

import logging
import math
import threading
from contextlib import contextmanager, nullcontext
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, ContextManager, Dict, Iterator, List, Optional, Tuple

from orders.models import (
    EtaEventType,
    EtaLogEntry,
    EtaWindow,
    LatLon,
    Order,
    OrderEvent,
    utcnow,
)
from orders.store import DeliveryPartnerDirectory, EtaLogStore, OrderEventLog, OrderStore
from notifications.publisher import LiveUpdatePublisher, PublishEvent
from routing.travel_time import TrafficLevel

from .classification import classify_acceptance, classify_assignment
from .errors import EtaValidationError, OrderClosedError, OrderNotFoundError, RiderNotFoundError
from .estimator import EtaEstimate, EtaEstimator, EtaRecalculation
from .live import LiveEta, compute_live_eta

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 50
EVENTS_LIMIT = 100

# lifecycle events that get their own named push besides eta_updated
_NAMED_PUSHES = {
    EtaEventType.RIDER_ASSIGNED: PublishEvent.RIDER_ASSIGNED,
    EtaEventType.RIDER_ASSIGNED_EARLY: PublishEvent.RIDER_ASSIGNED,
    EtaEventType.RIDER_ASSIGNED_LATE: PublishEvent.RIDER_ASSIGNED,
    EtaEventType.RIDER_STARTED_DELIVERY: PublishEvent.PICKED_UP,
    EtaEventType.RIDER_NEARING_DROP: PublishEvent.NEARBY,
}


@dataclass(frozen=True)
class EtaUpdate:
    """
    Result of one handled event.
    """
    order_id: str
    eta: EtaWindow
    estimated_delivery_time: int
    event: OrderEvent
    log_entry: EtaLogEntry

    @property
    def breakdown(self) -> Dict[str, Any]:
        return self.log_entry.breakdown


class OrderLocks:
    """
    One lock per order id currently being processed. Entries are reference
    counted and dropped as soon as nobody holds or waits for them.
    """
    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, Tuple[threading.Lock, int]] = {}

    @contextmanager
    def hold(self, order_id: str) -> Iterator[None]:
        with self._guard:
            lock, users = self._locks.get(order_id, (None, 0))
            if lock is None:
                lock = threading.Lock()
            self._locks[order_id] = (lock, users + 1)

        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                lock, users = self._locks[order_id]
                if users <= 1:
                    del self._locks[order_id]
                else:
                    self._locks[order_id] = (lock, users - 1)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


class EtaEventProcessor:
    def __init__(self, *, orders: OrderStore, riders: DeliveryPartnerDirectory,
                 events: OrderEventLog, eta_logs: EtaLogStore,
                 estimator: EtaEstimator, publisher: LiveUpdatePublisher,
                 clock: Callable[[], datetime] = utcnow,
                 locks: Optional[OrderLocks] = None,
                 atomic: Callable[[], ContextManager] = nullcontext):
        self.orders = orders
        self.riders = riders
        self.events = events
        self.eta_logs = eta_logs
        self.estimator = estimator
        self.publisher = publisher
        self.clock = clock
        self.locks = locks or OrderLocks()
        self.atomic = atomic

    @property
    def policy(self):
        return self.estimator.policy

    # ----------------
    # Event handlers
    # ----------------

    def handle_order_created(self, order_id: str) -> EtaUpdate:
        """
        First estimate for a newly placed order; also starts its periodic refresh.
        """
        update = self._process(order_id, lambda order, now: (EtaEventType.ORDER_CREATED, {}))
        self.publisher.start_periodic_refresh(order_id)
        return update

    def handle_restaurant_accepted(self, order_id: str, accepted_at: Optional[datetime] = None) -> EtaUpdate:
        def classify(order: Order, now: datetime):
            at = accepted_at or now
            result = classify_acceptance(order.created_at, at, self.policy)
            order.accepted_at = at
            data = {"accepted_at": at.isoformat(), "elapsed_minutes": round(result.elapsed_minutes, 2)}
            if result.event_type == EtaEventType.RESTAURANT_ACCEPTED_LATE:
                data["delay_minutes"] = result.delay_minutes
            return result.event_type, data

        return self._process(order_id, classify)

    def handle_rider_assigned(self, order_id: str, rider_id: str,
                              assigned_at: Optional[datetime] = None) -> EtaUpdate:
        if not rider_id:
            raise EtaValidationError("rider_id is required")

        def classify(order: Order, now: datetime):
            rider = self.riders.get(rider_id)
            if rider is None:
                raise RiderNotFoundError(f"Delivery partner {rider_id} not found")

            at = assigned_at or now
            result = classify_assignment(order.accepted_at or order.created_at, at, self.policy)
            order.rider_id = rider.id
            data: Dict[str, Any] = {
                "rider_id": rider.id,
                "assigned_at": at.isoformat(),
                "elapsed_minutes": round(result.elapsed_minutes, 2),
            }
            if rider.location:
                data["rider_location"] = {"latitude": rider.location[0], "longitude": rider.location[1]}
            if result.event_type == EtaEventType.RIDER_ASSIGNED_LATE:
                data["delay_minutes"] = result.delay_minutes
            return result.event_type, data

        return self._process(order_id, classify)

    def handle_rider_reached_restaurant(self, order_id: str) -> EtaUpdate:
        return self._process(order_id, self._fixed(EtaEventType.RIDER_REACHED_RESTAURANT))

    def handle_food_not_ready(self, order_id: str, waiting_time: Any) -> EtaUpdate:
        minutes = _non_negative_int(waiting_time, "waiting_time")
        return self._process(order_id, self._fixed(EtaEventType.FOOD_NOT_READY, {"waiting_time": minutes}))

    def handle_rider_started_delivery(self, order_id: str) -> EtaUpdate:
        return self._process(order_id, self._fixed(EtaEventType.RIDER_STARTED_DELIVERY))

    def handle_traffic_detected(self, order_id: str, traffic_level: Any) -> EtaUpdate:
        try:
            level = TrafficLevel(traffic_level)
        except ValueError:
            raise EtaValidationError(
                f"traffic_level must be one of {[t.value for t in TrafficLevel]}, got {traffic_level!r}"
            ) from None
        return self._process(order_id, self._fixed(EtaEventType.TRAFFIC_DETECTED, {"traffic_level": level.value}))

    def handle_rider_nearing_drop(self, order_id: str, distance_to_drop: Any) -> Optional[EtaUpdate]:
        """
        Only acts within the nearing threshold (0.5 km). Further out this is a
        no-op: no event, no log entry, no push, and None is returned.
        """
        distance = _non_negative_float(distance_to_drop, "distance_to_drop")
        if distance > self.policy.nearing_drop_threshold_km:
            self._load(order_id)
            logger.debug("Order %s rider still %.2f km out; not nearing yet", order_id, distance)
            return None
        return self._process(order_id, self._fixed(EtaEventType.RIDER_NEARING_DROP, {"distance_to_drop": distance}))

    def recalculate(self, order_id: str, reason: Optional[str] = None) -> EtaUpdate:
        """
        Manual trigger: full recomputation, logged as MANUAL_UPDATE.
        """
        data = {"reason": reason} if reason else {}
        return self._process(order_id, self._fixed(EtaEventType.MANUAL_RECALCULATION, data))

    # ----------------
    # Read paths
    # ----------------

    def calculate_eta(self, restaurant_id: str, restaurant_location: Optional[LatLon],
                      drop_location: LatLon, rider_location: Optional[LatLon] = None) -> EtaEstimate:
        return self.estimator.initial_estimate(restaurant_id, restaurant_location, drop_location, rider_location)

    def live_eta(self, order_id: str) -> LiveEta:
        return compute_live_eta(self._load(order_id), now=self.clock(), policy=self.policy)

    def eta_history(self, order_id: str, limit: int = HISTORY_LIMIT) -> List[EtaLogEntry]:
        self._load(order_id)
        return self.eta_logs.recent(order_id, limit)

    def order_events(self, order_id: str, limit: int = EVENTS_LIMIT) -> List[OrderEvent]:
        self._load(order_id)
        return self.events.recent(order_id, limit)

    # ----------------
    # Internals
    # ----------------

    @staticmethod
    def _fixed(event_type: EtaEventType, data: Optional[Dict[str, Any]] = None):
        return lambda order, now: (event_type, dict(data or {}))

    def _load(self, order_id: str) -> Order:
        order = self.orders.get(order_id)
        if order is None:
            raise OrderNotFoundError(f"Order {order_id} not found")
        return order

    def _rider_location(self, order: Order) -> Optional[LatLon]:
        if not order.rider_id:
            return None
        rider = self.riders.get(order.rider_id)
        return rider.location if rider else None

    def _process(self, order_id: str, classify) -> EtaUpdate:
        with self.locks.hold(order_id):
            order = self._load(order_id)
            if order.is_terminal:
                raise OrderClosedError(f"Order {order_id} is {order.status.value}; its ETA is final")

            now = self.clock()
            event_type, data = classify(order, now)

            recalculation: EtaRecalculation = self.estimator.recalculate(
                order, event_type, data, rider_location=self._rider_location(order)
            )

            with self.atomic():
                event = self.events.append(OrderEvent(
                    order_id=order.id,
                    event_type=event_type,
                    data=data,
                    timestamp=now,
                ))
                log_entry = self.eta_logs.append(EtaLogEntry(
                    order_id=order.id,
                    previous_eta=recalculation.previous_eta,
                    new_eta=recalculation.new_eta,
                    reason=recalculation.reason,
                    breakdown=recalculation.breakdown.as_dict(),
                    event_type=event_type,
                    triggered_by=event.id,
                    calculated_at=now,
                ))

                order.apply_eta(recalculation.new_eta, now)
                self.orders.save(order)

        logger.info("Order %s ETA %s-%s -> %s-%s (%s)", order.id,
                    recalculation.previous_eta.min, recalculation.previous_eta.max,
                    recalculation.new_eta.min, recalculation.new_eta.max, recalculation.reason.value)

        payload = {
            "order_id": order.id,
            "min_eta": order.eta.min,
            "max_eta": order.eta.max,
            "estimated_delivery_time": order.estimated_delivery_time,
            "reason": recalculation.reason.value,
            "event_type": event_type.value,
            "updated_at": now.isoformat(),
        }
        self.publisher.publish(order, payload, PublishEvent.ETA_UPDATED)
        if event_type in _NAMED_PUSHES:
            self.publisher.publish(order, payload, _NAMED_PUSHES[event_type])

        return EtaUpdate(
            order_id=order.id,
            eta=order.eta,
            estimated_delivery_time=order.estimated_delivery_time,
            event=event,
            log_entry=log_entry,
        )


def _non_negative_int(value: Any, name: str) -> int:
    """
    Minutes as a whole number; fractions are rounded up.
    """
    return math.ceil(_non_negative_float(value, name))


def _non_negative_float(value: Any, name: str) -> float:
    if value is None or isinstance(value, bool):
        raise EtaValidationError(f"{name} is required")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise EtaValidationError(f"{name} must be a number") from None
    if not math.isfinite(number):
        raise EtaValidationError(f"{name} must be a finite number")
    if number < 0:
        raise EtaValidationError(f"{name} must be >= 0")
    return number
