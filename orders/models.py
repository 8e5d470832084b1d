"""
Purpose: Domain models for the order-tracking / ETA capability.
What it does:
- Defines core data structures:
- Order (id, customer, restaurant, drop-off coords, status, rider, live ETA window)
- EtaWindow (min/max minutes) and EtaBreakdown (every component behind an estimate)
- OrderEvent (append-only real-world fact) and EtaLogEntry (append-only ETA transition)
- Restaurant / DeliveryPartner (read-only views of the directories we consume)

Defines enums/constants:
- OrderStatus = pending | confirmed | preparing | ready | out_for_delivery | delivered | cancelled
- EtaEventType (closed set of lifecycle events)
- EtaReason (closed set of recalculation causes)

Rule: No HTTP calls, no ETA math. Models only.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple, TYPE_CHECKING

if TYPE_CHECKING:
    from eta.policy import EtaPolicy

LatLon = Tuple[float, float]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


# Orders a restaurant is still working on (feeds the kitchen load delay)
KITCHEN_LOAD_STATUSES = (OrderStatus.CONFIRMED, OrderStatus.PREPARING)

# Once an order reaches one of these, its ETA is frozen for good
TERMINAL_STATUSES = (OrderStatus.DELIVERED, OrderStatus.CANCELLED)


class EtaEventType(str, Enum):
    ORDER_CREATED = "ORDER_CREATED"
    RESTAURANT_ACCEPTED = "RESTAURANT_ACCEPTED"
    RESTAURANT_ACCEPTED_LATE = "RESTAURANT_ACCEPTED_LATE"
    RIDER_ASSIGNED = "RIDER_ASSIGNED"
    RIDER_ASSIGNED_EARLY = "RIDER_ASSIGNED_EARLY"
    RIDER_ASSIGNED_LATE = "RIDER_ASSIGNED_LATE"
    RIDER_REACHED_RESTAURANT = "RIDER_REACHED_RESTAURANT"
    FOOD_NOT_READY = "FOOD_NOT_READY"
    RIDER_STARTED_DELIVERY = "RIDER_STARTED_DELIVERY"
    TRAFFIC_DETECTED = "TRAFFIC_DETECTED"
    RIDER_NEARING_DROP = "RIDER_NEARING_DROP"
    MANUAL_RECALCULATION = "MANUAL_RECALCULATION"


class EtaReason(str, Enum):
    ORDER_CREATED = "ORDER_CREATED"
    RESTAURANT_ACCEPTED = "RESTAURANT_ACCEPTED"
    RESTAURANT_DELAYED = "RESTAURANT_DELAYED"
    RIDER_ASSIGNED = "RIDER_ASSIGNED"
    RIDER_ASSIGNMENT_DELAYED = "RIDER_ASSIGNMENT_DELAYED"
    RIDER_REACHED_RESTAURANT = "RIDER_REACHED_RESTAURANT"
    FOOD_NOT_READY = "FOOD_NOT_READY"
    RIDER_STARTED_DELIVERY = "RIDER_STARTED_DELIVERY"
    TRAFFIC_UPDATE = "TRAFFIC_UPDATE"
    RIDER_NEARING_DROP = "RIDER_NEARING_DROP"
    MANUAL_UPDATE = "MANUAL_UPDATE"


@dataclass(frozen=True)
class EtaWindow:
    """
    A published delivery window in whole minutes.
    """
    min: int
    max: int

    @property
    def midpoint(self) -> int:
        return math.ceil((self.min + self.max) / 2)

    def shifted(self, minutes: int) -> EtaWindow:
        """Same plan, pushed back (or forward) by `minutes` on both bounds."""
        return EtaWindow(min=self.min + minutes, max=self.max + minutes)

    def as_dict(self) -> Dict[str, int]:
        return {"min": self.min, "max": self.max}


@dataclass
class EtaBreakdown:
    """
    Snapshot of every component that fed one ETA computation.
    Components a strategy did not use stay None and are left out of as_dict().
    """
    restaurant_prep_time: Optional[int] = None
    restaurant_load_delay: Optional[int] = None
    rider_assignment_time: Optional[int] = None
    travel_time_rider_to_restaurant: Optional[int] = None
    travel_time_restaurant_to_user: Optional[int] = None
    traffic_multiplier: Optional[float] = None
    traffic_level: Optional[str] = None
    buffer_time: Optional[int] = None
    total_eta: Optional[int] = None
    total_distance: Optional[float] = None  # km
    distance_to_drop: Optional[float] = None  # km
    remaining_time: Optional[int] = None
    delay_minutes: Optional[int] = None
    error: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not None}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> EtaBreakdown:
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in (data or {}).items() if key in known})


@dataclass(frozen=True)
class Restaurant:
    id: str
    name: str = ""
    location: Optional[LatLon] = None
    # Free text as the restaurant typed it, e.g. "25-30 mins"
    estimated_delivery_time: Optional[str] = None


@dataclass(frozen=True)
class DeliveryPartner:
    id: str
    name: str = ""
    location: Optional[LatLon] = None  # last reported position
    is_online: bool = True


@dataclass
class Order:
    """
    The slice of an order the ETA engine reads and writes.
    """
    id: str
    customer_id: str
    restaurant_id: str
    drop_location: LatLon

    status: OrderStatus = OrderStatus.PENDING
    created_at: datetime = field(default_factory=utcnow)
    accepted_at: Optional[datetime] = None
    rider_id: Optional[str] = None

    # Live estimate; only the event processor writes these
    eta: Optional[EtaWindow] = None
    eta_last_updated: Optional[datetime] = None
    estimated_delivery_time: Optional[int] = None  # minutes, midpoint of eta

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def current_window(self, policy: EtaPolicy) -> EtaWindow:
        """
        The window the order is showing right now: the live eta, else
        estimated_delivery_time +/- the range, else the policy default.
        """
        if self.eta is not None:
            return self.eta
        if self.estimated_delivery_time is not None:
            return EtaWindow(
                min=max(policy.min_eta_floor, self.estimated_delivery_time - policy.eta_range),
                max=self.estimated_delivery_time + policy.eta_range,
            )
        return policy.default_window

    def apply_eta(self, window: EtaWindow, now: Optional[datetime] = None) -> None:
        self.eta = window
        self.eta_last_updated = now or utcnow()
        self.estimated_delivery_time = window.midpoint


@dataclass(frozen=True)
class OrderEvent:
    """
    Something that happened to an order in the real world. Never updated.
    """
    order_id: str
    event_type: EtaEventType
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utcnow)
    id: Optional[str] = None  # assigned by the event log on append


@dataclass(frozen=True)
class EtaLogEntry:
    """
    One recalculation: both sides of the transition plus the why.
    """
    order_id: str
    previous_eta: EtaWindow
    new_eta: EtaWindow
    reason: EtaReason
    breakdown: Dict[str, Any] = field(default_factory=dict)
    event_type: Optional[EtaEventType] = None
    triggered_by: Optional[str] = None  # id of the OrderEvent that caused it
    calculated_at: datetime = field(default_factory=utcnow)
    id: Optional[str] = None
