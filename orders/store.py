"""
Purpose: Contracts for the collaborators the ETA engine consumes, plus
in-memory implementations.
What it does:

Declares what the engine needs from the outside world:
   - OrderStore: get(order_id) / save(order)
   - RestaurantDirectory: get(restaurant_id) / pending_order_count(restaurant_id)
   - DeliveryPartnerDirectory: get(rider_id)
   - OrderEventLog: append(event) / recent(order_id, limit)
   - EtaLogStore: append(entry) / recent(order_id, limit)

The in-memory versions back tests, scripts and local runs. The Django app in
backend/tracking provides ORM-backed versions with the same methods.

Rule: stores own persistence only; no ETA rules here.
"""

from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional, Protocol

from .models import (
    DeliveryPartner,
    EtaLogEntry,
    KITCHEN_LOAD_STATUSES,
    Order,
    OrderEvent,
    Restaurant,
)


class OrderStore(Protocol):
    def get(self, order_id: str) -> Optional[Order]: ...

    def save(self, order: Order) -> None: ...


class RestaurantDirectory(Protocol):
    def get(self, restaurant_id: str) -> Optional[Restaurant]: ...

    def pending_order_count(self, restaurant_id: str) -> int: ...


class DeliveryPartnerDirectory(Protocol):
    def get(self, rider_id: str) -> Optional[DeliveryPartner]: ...


class OrderEventLog(Protocol):
    def append(self, event: OrderEvent) -> OrderEvent: ...

    def recent(self, order_id: str, limit: int = 100) -> List[OrderEvent]: ...


class EtaLogStore(Protocol):
    def append(self, entry: EtaLogEntry) -> EtaLogEntry: ...

    def recent(self, order_id: str, limit: int = 50) -> List[EtaLogEntry]: ...


# --- In-memory implementations ---

@dataclass
class InMemoryOrderStore:
    """
    Dict-backed order store. Hands out copies so callers mutate their own
    snapshot until they save(), the way a database round-trip behaves.
    """
    _orders: Dict[str, Order] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def add(self, order: Order) -> Order:
        self.save(order)
        return order

    def get(self, order_id: str) -> Optional[Order]:
        with self._lock:
            order = self._orders.get(order_id)
            return replace(order) if order else None

    def save(self, order: Order) -> None:
        with self._lock:
            self._orders[order.id] = replace(order)

    def all(self) -> List[Order]:
        with self._lock:
            return [replace(order) for order in self._orders.values()]


@dataclass
class InMemoryRestaurantDirectory:
    """
    Restaurants by id. Kitchen load is counted from the order store.
    """
    orders: InMemoryOrderStore
    _restaurants: Dict[str, Restaurant] = field(default_factory=dict)

    @classmethod
    def of(cls, orders: InMemoryOrderStore, restaurants: Iterable[Restaurant]) -> InMemoryRestaurantDirectory:
        return cls(orders=orders, _restaurants={r.id: r for r in restaurants})

    def add(self, restaurant: Restaurant) -> None:
        self._restaurants[restaurant.id] = restaurant

    def get(self, restaurant_id: str) -> Optional[Restaurant]:
        return self._restaurants.get(restaurant_id)

    def pending_order_count(self, restaurant_id: str) -> int:
        return sum(
            1 for order in self.orders.all()
            if order.restaurant_id == restaurant_id and order.status in KITCHEN_LOAD_STATUSES
        )


@dataclass
class InMemoryDeliveryPartnerDirectory:
    _riders: Dict[str, DeliveryPartner] = field(default_factory=dict)

    @classmethod
    def of(cls, riders: Iterable[DeliveryPartner]) -> InMemoryDeliveryPartnerDirectory:
        return cls(_riders={r.id: r for r in riders})

    def add(self, rider: DeliveryPartner) -> None:
        self._riders[rider.id] = rider

    def get(self, rider_id: str) -> Optional[DeliveryPartner]:
        return self._riders.get(rider_id)


@dataclass
class InMemoryOrderEventLog:
    """
    Append-only list of events; recent() is newest first.
    """
    _events: List[OrderEvent] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def append(self, event: OrderEvent) -> OrderEvent:
        stored = replace(event, id=event.id or str(uuid.uuid4()))
        with self._lock:
            self._events.append(stored)
        return stored

    def recent(self, order_id: str, limit: int = 100) -> List[OrderEvent]:
        with self._lock:
            matching = [e for e in reversed(self._events) if e.order_id == order_id]
        # stable sort over the reversed list keeps the latest append first on ties
        matching.sort(key=lambda e: e.timestamp, reverse=True)
        return matching[:limit]


@dataclass
class InMemoryEtaLogStore:
    """
    Append-only list of ETA transitions; recent() is newest first.
    """
    _entries: List[EtaLogEntry] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def append(self, entry: EtaLogEntry) -> EtaLogEntry:
        stored = replace(entry, id=entry.id or str(uuid.uuid4()))
        with self._lock:
            self._entries.append(stored)
        return stored

    def recent(self, order_id: str, limit: int = 50) -> List[EtaLogEntry]:
        with self._lock:
            matching = [e for e in reversed(self._entries) if e.order_id == order_id]
        matching.sort(key=lambda e: e.calculated_at, reverse=True)
        return matching[:limit]
