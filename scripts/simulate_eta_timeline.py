"""
Drives orders through their whole lifecycle against the in-memory stores and
writes every ETA transition to a CSV, so the estimator's behaviour over an
order's life can be eyeballed (or plotted) without the Django backend.

Usage (from the repo root):
    python scripts/simulate_eta_timeline.py --orders 20 --output eta_timeline.csv
"""
import argparse
import logging
import os
import sys
from datetime import timedelta

import numpy as np
import pandas as pd

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from eta.estimator import EtaEstimator
from eta.policy import default_eta_policy
from eta.processor import EtaEventProcessor
from notifications.publisher import LiveUpdatePublisher
from notifications.transport import LoggingTransport
from orders.models import DeliveryPartner, Order, OrderStatus, Restaurant, utcnow
from orders.store import (
    InMemoryDeliveryPartnerDirectory,
    InMemoryEtaLogStore,
    InMemoryOrderEventLog,
    InMemoryOrderStore,
    InMemoryRestaurantDirectory,
)
from routing.travel_time import TravelTimeProvider

CENTER_LAT = -17.824858
CENTER_LON = 31.053028


class SimulatedClock:
    def __init__(self):
        self.now = utcnow()

    def __call__(self):
        return self.now

    def advance(self, minutes):
        self.now = self.now + timedelta(minutes=float(minutes))


def scatter(spread):
    return (round(CENTER_LAT + np.random.uniform(-spread, spread), 6),
            round(CENTER_LON + np.random.uniform(-spread, spread), 6))


def build_engine(clock, num_restaurants=5, num_riders=10):
    orders = InMemoryOrderStore()
    restaurants = InMemoryRestaurantDirectory.of(orders, [
        Restaurant(id=f"r{i}", name=f"Restaurant {i}", location=scatter(0.05),
                   estimated_delivery_time=np.random.choice(["20-25 mins", "25-30 mins", "30-40 mins"]))
        for i in range(num_restaurants)
    ])
    riders = InMemoryDeliveryPartnerDirectory.of([
        DeliveryPartner(id=f"d{i}", name=f"Rider {i}", location=scatter(0.06)) for i in range(num_riders)
    ])
    policy = default_eta_policy()
    # no routing client: haversine at 30 km/h keeps the simulation offline
    estimator = EtaEstimator(TravelTimeProvider(None), restaurants, policy)
    processor = EtaEventProcessor(
        orders=orders,
        riders=riders,
        events=InMemoryOrderEventLog(),
        eta_logs=InMemoryEtaLogStore(),
        estimator=estimator,
        publisher=LiveUpdatePublisher(LoggingTransport(), orders=orders, policy=policy, clock=clock),
        clock=clock,
    )
    return processor, num_restaurants, num_riders


def simulate_order(processor, clock, order_id, restaurant_id, rider_id):
    order = Order(id=order_id, customer_id=f"c_{order_id}", restaurant_id=restaurant_id,
                  drop_location=scatter(0.08), status=OrderStatus.CONFIRMED, created_at=clock())
    processor.orders.save(order)

    processor.handle_order_created(order_id)
    clock.advance(np.random.exponential(1.5))
    processor.handle_restaurant_accepted(order_id)
    clock.advance(np.random.gamma(3.0, 1.3))
    processor.handle_rider_assigned(order_id, rider_id)
    clock.advance(np.random.uniform(5, 12))
    processor.handle_rider_reached_restaurant(order_id)
    if np.random.random() < 0.3:
        processor.handle_food_not_ready(order_id, int(np.random.randint(2, 8)))
        clock.advance(np.random.uniform(2, 6))
    clock.advance(np.random.uniform(1, 3))
    processor.handle_rider_started_delivery(order_id)
    if np.random.random() < 0.25:
        clock.advance(np.random.uniform(1, 4))
        processor.handle_traffic_detected(order_id, np.random.choice(["medium", "high"]))
    clock.advance(np.random.uniform(5, 15))
    processor.handle_rider_nearing_drop(order_id, round(float(np.random.uniform(0.1, 0.5)), 2))
    clock.advance(np.random.uniform(1, 3))

    delivered = processor.orders.get(order_id)
    delivered.status = OrderStatus.DELIVERED
    processor.orders.save(delivered)


def run(num_orders=20, output="eta_timeline.csv"):
    clock = SimulatedClock()
    processor, num_restaurants, num_riders = build_engine(clock)

    for i in range(num_orders):
        simulate_order(processor, clock, f"o{i:04d}",
                       f"r{np.random.randint(num_restaurants)}", f"d{np.random.randint(num_riders)}")
        clock.advance(np.random.uniform(0, 3))

    rows = []
    for order in processor.orders.all():
        for entry in reversed(processor.eta_history(order.id)):
            rows.append({
                "order_id": entry.order_id,
                "calculated_at": entry.calculated_at.isoformat(),
                "event_type": entry.event_type.value if entry.event_type else None,
                "reason": entry.reason.value,
                "previous_min": entry.previous_eta.min,
                "previous_max": entry.previous_eta.max,
                "new_min": entry.new_eta.min,
                "new_max": entry.new_eta.max,
                "total_eta": entry.breakdown.get("total_eta"),
            })

    df = pd.DataFrame(rows)
    df.to_csv(output, index=False)
    print(f"Wrote {len(df)} ETA transitions for {num_orders} orders to '{output}'")
    print("\nMean new ETA midpoint by reason:")
    df["midpoint"] = (df["new_min"] + df["new_max"]) / 2
    print(df.groupby("reason")["midpoint"].mean().round(1).to_string())
    return df


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Simulate ETA timelines for a batch of orders.")
    parser.add_argument("--orders", type=int, default=20)
    parser.add_argument("--output", default="eta_timeline.csv")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING)
    run(num_orders=args.orders, output=args.output)
