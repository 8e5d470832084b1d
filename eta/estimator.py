"""
Purpose: The ETA estimator (pure computation, the algorithmic core).
What it does:

Turns what we know about an order into a delivery window:

  total = prep + kitchen load delay + rider assignment + traffic-adjusted travel + buffer
  window = [total - 3 (never below 1), total + 3]

and re-derives that window when lifecycle events arrive, with one of two strategies:

- additive: the same plan pushed back (late acceptance, late assignment, food not ready)
- re-derivation: recompute whatever is still ahead of the rider (assignment,
  pickup, traffic, nearing the drop) and drop components already in the past

Every result carries an EtaBreakdown so a window can be explained after the fact.

Rule: reads collaborators (restaurants, travel times) but never writes anything.
Persisting and publishing belong to eta.processor.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from orders.models import (
    EtaBreakdown,
    EtaEventType,
    EtaReason,
    EtaWindow,
    LatLon,
    Order,
    Restaurant,
)
from orders.store import RestaurantDirectory
from routing.travel_time import TrafficLevel, TravelTimeProvider
from routing.geo import minutes_at_speed

from .errors import RestaurantNotFoundError
from .policy import EtaPolicy, default_eta_policy

logger = logging.getLogger(__name__)

_PREP_TIME_PATTERN = re.compile(r"(\d+)")

_TRAFFIC_RANK = {TrafficLevel.LOW: 0, TrafficLevel.MEDIUM: 1, TrafficLevel.HIGH: 2}

# event type -> (reason, payload key carrying the minutes to add)
_ADDITIVE_EVENTS = {
    EtaEventType.RESTAURANT_ACCEPTED_LATE: (EtaReason.RESTAURANT_DELAYED, "delay_minutes"),
    EtaEventType.RIDER_ASSIGNED_LATE: (EtaReason.RIDER_ASSIGNMENT_DELAYED, "delay_minutes"),
    EtaEventType.FOOD_NOT_READY: (EtaReason.FOOD_NOT_READY, "waiting_time"),
}

# events answered with a full initial-style recomputation
_FULL_RECOMPUTE_REASONS = {
    EtaEventType.ORDER_CREATED: EtaReason.ORDER_CREATED,
    EtaEventType.RESTAURANT_ACCEPTED: EtaReason.RESTAURANT_ACCEPTED,
}


@dataclass(frozen=True)
class EtaEstimate:
    window: EtaWindow
    breakdown: EtaBreakdown = field(default_factory=EtaBreakdown)


@dataclass(frozen=True)
class EtaRecalculation:
    """
    What a recalculation decided; everything an ETA log entry needs.
    """
    previous_eta: EtaWindow
    new_eta: EtaWindow
    reason: EtaReason
    breakdown: EtaBreakdown = field(default_factory=EtaBreakdown)


def _ceil_minutes(value: float) -> int:
    # round first so 5 * 1.4 stays 7 instead of creeping to 8
    return math.ceil(round(value, 6))


def as_latlon(value: Any) -> Optional[LatLon]:
    """
    Accept (lat, lon) pairs or {"latitude": .., "longitude": ..} mappings.
    """
    if value is None:
        return None
    if isinstance(value, Mapping):
        return float(value["latitude"]), float(value["longitude"])
    lat, lon = value
    return float(lat), float(lon)


class EtaEstimator:
    """
    Computes initial estimates and event-driven recalculations.
    """
    def __init__(self, travel_times: TravelTimeProvider, restaurants: RestaurantDirectory,
                 policy: Optional[EtaPolicy] = None):
        self.travel_times = travel_times
        self.restaurants = restaurants
        self.policy = policy or default_eta_policy()

    # ----------------
    # Component helpers
    # ----------------

    def restaurant_prep_time(self, restaurant: Optional[Restaurant]) -> int:
        """
        First number in the restaurant's free-text estimate ("25-30 mins" -> 25).
        """
        if restaurant is None:
            return self.policy.missing_restaurant_prep_minutes

        match = _PREP_TIME_PATTERN.search(restaurant.estimated_delivery_time or "")
        return int(match.group(1)) if match else self.policy.default_prep_minutes

    def restaurant_load_delay(self, pending_orders: int) -> int:
        """
        Extra wait caused by orders already in the kitchen:
        ceil(pending / parallel_capacity) * avg_prep_per_order, capped.
        """
        if pending_orders <= 0:
            return 0
        delay = math.ceil(pending_orders / self.policy.parallel_capacity) * self.policy.avg_prep_per_order_minutes
        return min(delay, self.policy.max_load_delay_minutes)

    def rider_assignment_time(self) -> int:
        p = self.policy
        return math.ceil((p.rider_assignment_min_minutes + p.rider_assignment_max_minutes) / 2)

    def buffer_time(self, distance_km: float) -> int:
        if distance_km >= self.policy.long_distance_km:
            return self.policy.long_buffer_minutes
        return self.policy.short_buffer_minutes

    def traffic_multiplier(self, level: Any) -> float:
        key = level.value if isinstance(level, TrafficLevel) else str(level)
        return self.policy.traffic_multipliers.get(key, 1.0)

    def window_around(self, total_minutes: int) -> EtaWindow:
        return EtaWindow(
            min=max(self.policy.min_eta_floor, total_minutes - self.policy.eta_range),
            max=total_minutes + self.policy.eta_range,
        )

    # ----------------
    # Initial estimate
    # ----------------

    def initial_estimate(self, restaurant_id: str, restaurant_location: Optional[LatLon],
                         drop_location: LatLon, rider_location: Optional[LatLon] = None) -> EtaEstimate:
        """
        Estimate for a freshly placed order (or a full recomputation).

        Never raises: order placement must not fail because of an estimate, so
        any error yields the conservative default window with breakdown.error set.
        """
        try:
            return self._estimate(restaurant_id, as_latlon(restaurant_location),
                                  as_latlon(drop_location), as_latlon(rider_location))
        except Exception as exc:
            logger.error("Initial ETA failed for restaurant %s, using default window: %s", restaurant_id, exc)
            return EtaEstimate(window=self.policy.default_window, breakdown=EtaBreakdown(error=str(exc)))

    def _estimate(self, restaurant_id: str, restaurant_location: Optional[LatLon],
                  drop_location: LatLon, rider_location: Optional[LatLon]) -> EtaEstimate:
        restaurant = self.restaurants.get(restaurant_id)
        if restaurant is None:
            raise RestaurantNotFoundError(f"Restaurant {restaurant_id} not found")

        restaurant_location = restaurant_location or restaurant.location
        if restaurant_location is None:
            raise RestaurantNotFoundError(f"Restaurant {restaurant_id} has no location")

        prep_time = self.restaurant_prep_time(restaurant)
        load_delay = self.restaurant_load_delay(self.restaurants.pending_order_count(restaurant_id))
        assignment_time = 0 if rider_location else self.rider_assignment_time()

        to_customer = self.travel_times.get_travel_time(restaurant_location, drop_location)
        if rider_location:
            to_restaurant = self.travel_times.get_travel_time(rider_location, restaurant_location)
            rider_leg = to_restaurant.duration_minutes
            total_distance = to_restaurant.distance_km + to_customer.distance_km
            # the worse of the two legs decides the multiplier
            traffic_level = max(to_restaurant.traffic_level, to_customer.traffic_level,
                                key=lambda level: _TRAFFIC_RANK[level])
        else:
            # assume a nearby available rider
            rider_leg = math.ceil(to_customer.duration_minutes * self.policy.unassigned_rider_leg_ratio)
            total_distance = to_customer.distance_km
            traffic_level = to_customer.traffic_level

        multiplier = self.traffic_multiplier(traffic_level)
        adjusted_travel = _ceil_minutes((rider_leg + to_customer.duration_minutes) * multiplier)
        buffer = self.buffer_time(total_distance)

        total = prep_time + load_delay + assignment_time + adjusted_travel + buffer
        breakdown = EtaBreakdown(
            restaurant_prep_time=prep_time,
            restaurant_load_delay=load_delay,
            rider_assignment_time=assignment_time,
            travel_time_rider_to_restaurant=rider_leg,
            travel_time_restaurant_to_user=to_customer.duration_minutes,
            traffic_multiplier=multiplier,
            traffic_level=traffic_level.value,
            buffer_time=buffer,
            total_eta=total,
            total_distance=round(total_distance, 2),
        )
        return EtaEstimate(window=self.window_around(total), breakdown=breakdown)

    # ----------------
    # Recalculation
    # ----------------

    def recalculate(self, order: Order, event_type: EtaEventType,
                    data: Optional[Dict[str, Any]] = None,
                    rider_location: Optional[LatLon] = None) -> EtaRecalculation:
        """
        New window for `order` after `event_type`. `rider_location` is the
        assigned rider's last known position, if any.

        May raise RestaurantNotFoundError for the post-pickup and traffic paths,
        which cannot run without the restaurant's location.
        """
        data = data or {}
        previous = order.current_window(self.policy)

        if event_type in _ADDITIVE_EVENTS:
            reason, key = _ADDITIVE_EVENTS[event_type]
            minutes = int(data.get(key) or 0)
            return EtaRecalculation(previous, previous.shifted(minutes), reason,
                                    EtaBreakdown(delay_minutes=minutes))

        if event_type in (EtaEventType.RIDER_ASSIGNED, EtaEventType.RIDER_ASSIGNED_EARLY):
            location = as_latlon(data.get("rider_location")) or rider_location
            estimate = self._full_estimate(order, location)
            return EtaRecalculation(previous, estimate.window, EtaReason.RIDER_ASSIGNED, estimate.breakdown)

        if event_type == EtaEventType.RIDER_REACHED_RESTAURANT:
            estimate = self.after_pickup(order)
            return EtaRecalculation(previous, estimate.window, EtaReason.RIDER_REACHED_RESTAURANT,
                                    estimate.breakdown)

        if event_type == EtaEventType.RIDER_STARTED_DELIVERY:
            estimate = self.after_pickup(order)
            return EtaRecalculation(previous, estimate.window, EtaReason.RIDER_STARTED_DELIVERY,
                                    estimate.breakdown)

        if event_type == EtaEventType.TRAFFIC_DETECTED:
            estimate = self.with_traffic(order, data.get("traffic_level") or TrafficLevel.MEDIUM.value)
            return EtaRecalculation(previous, estimate.window, EtaReason.TRAFFIC_UPDATE, estimate.breakdown)

        if event_type == EtaEventType.RIDER_NEARING_DROP:
            distance = data.get("distance_to_drop")
            estimate = self.nearing_drop(self.policy.nearing_drop_threshold_km if distance is None else distance)
            return EtaRecalculation(previous, estimate.window, EtaReason.RIDER_NEARING_DROP, estimate.breakdown)

        reason = _FULL_RECOMPUTE_REASONS.get(event_type, EtaReason.MANUAL_UPDATE)
        estimate = self._full_estimate(order, rider_location)
        return EtaRecalculation(previous, estimate.window, reason, estimate.breakdown)

    def _full_estimate(self, order: Order, rider_location: Optional[LatLon]) -> EtaEstimate:
        return self.initial_estimate(
            restaurant_id=order.restaurant_id,
            restaurant_location=None,  # resolved from the directory
            drop_location=order.drop_location,
            rider_location=rider_location,
        )

    def _restaurant_location(self, restaurant_id: str) -> LatLon:
        restaurant = self.restaurants.get(restaurant_id)
        if restaurant is None or restaurant.location is None:
            raise RestaurantNotFoundError(f"Restaurant location not found for {restaurant_id}")
        return restaurant.location

    def after_pickup(self, order: Order) -> EtaEstimate:
        """
        Food is with the rider (or about to be): only restaurant -> customer
        and its buffer are left. Prep and assignment are in the past.
        """
        leg = self.travel_times.get_travel_time(self._restaurant_location(order.restaurant_id),
                                                order.drop_location)
        multiplier = self.traffic_multiplier(leg.traffic_level)
        adjusted_travel = _ceil_minutes(leg.duration_minutes * multiplier)
        buffer = self.buffer_time(leg.distance_km)
        total = adjusted_travel + buffer

        breakdown = EtaBreakdown(
            restaurant_prep_time=0,
            restaurant_load_delay=0,
            rider_assignment_time=0,
            travel_time_rider_to_restaurant=0,
            travel_time_restaurant_to_user=adjusted_travel,
            traffic_multiplier=multiplier,
            traffic_level=leg.traffic_level.value,
            buffer_time=buffer,
            total_eta=total,
            total_distance=leg.distance_km,
        )
        return EtaEstimate(window=self.window_around(total), breakdown=breakdown)

    def with_traffic(self, order: Order, traffic_level: Any) -> EtaEstimate:
        """
        Current conditions only: a fresh restaurant -> customer leg under the
        reported traffic level. Stale components are dropped.
        """
        level = TrafficLevel(traffic_level.value if isinstance(traffic_level, TrafficLevel) else traffic_level)
        multiplier = self.traffic_multiplier(level)

        leg = self.travel_times.get_travel_time(self._restaurant_location(order.restaurant_id),
                                                order.drop_location)
        adjusted_travel = _ceil_minutes(leg.duration_minutes * multiplier)
        buffer = self.buffer_time(leg.distance_km)
        total = adjusted_travel + buffer

        breakdown = EtaBreakdown(
            travel_time_restaurant_to_user=adjusted_travel,
            traffic_multiplier=multiplier,
            traffic_level=level.value,
            buffer_time=buffer,
            total_eta=total,
            total_distance=leg.distance_km,
        )
        return EtaEstimate(window=self.window_around(total), breakdown=breakdown)

    def nearing_drop(self, distance_to_drop_km: float) -> EtaEstimate:
        """
        Last stretch: straight-line distance at the urban speed and a tight
        window of [remaining - 1 (never below 1), remaining + 2].
        """
        remaining = minutes_at_speed(float(distance_to_drop_km), self.policy.urban_speed_kmh)
        window = EtaWindow(
            min=max(self.policy.min_eta_floor, remaining - self.policy.nearing_drop_min_offset),
            max=remaining + self.policy.nearing_drop_max_offset,
        )
        breakdown = EtaBreakdown(
            distance_to_drop=float(distance_to_drop_km),
            remaining_time=remaining,
            total_eta=remaining,
        )
        return EtaEstimate(window=window, breakdown=breakdown)
