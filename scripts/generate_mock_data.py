import pandas as pd
import numpy as np
from datetime import datetime, timezone, timedelta

# Center around Harare, Zimbabwe
CENTER_LAT = -17.824858
CENTER_LON = 31.053028

PREP_TIME_TEXTS = ["15-20 mins", "20-25 mins", "25-30 mins", "30-40 mins", "45 min", ""]
STATUSES = ["pending", "confirmed", "preparing", "ready", "out_for_delivery", "delivered"]


def generate_restaurants(num_restaurants=30):
    """
    Restaurants within ~5km of the centre, each advertising a free-text
    delivery estimate the ETA engine reads its prep time from.
    """
    return pd.DataFrame({
        "restaurant_id": [f"r_{i + 1:04d}" for i in range(num_restaurants)],
        "name": [f"Restaurant {i + 1}" for i in range(num_restaurants)],
        "lat": np.round(CENTER_LAT + np.random.uniform(-0.05, 0.05, num_restaurants), 6),
        "lon": np.round(CENTER_LON + np.random.uniform(-0.05, 0.05, num_restaurants), 6),
        "estimated_delivery_time": np.random.choice(PREP_TIME_TEXTS, num_restaurants),
    })


def generate_riders(num_riders=50):
    return pd.DataFrame({
        "rider_id": [f"d_{i + 1:04d}" for i in range(num_riders)],
        "name": [f"Rider {i + 1}" for i in range(num_riders)],
        "lat": np.round(CENTER_LAT + np.random.uniform(-0.06, 0.06, num_riders), 6),
        "lon": np.round(CENTER_LON + np.random.uniform(-0.06, 0.06, num_riders), 6),
        "is_online": np.random.choice([True, False], num_riders, p=[0.85, 0.15]),
    })


def generate_orders(restaurants, riders, num_orders=1000):
    """
    Orders spread over the last hour. Restaurant acceptance lag and rider
    assignment lag are drawn so every timing band (early / on time / late)
    shows up in the data.
    """
    now = datetime.now(timezone.utc)
    rows = []

    for order_index in range(num_orders):
        restaurant = restaurants.iloc[np.random.randint(len(restaurants))]
        created_at = now - timedelta(minutes=int(np.random.randint(0, 60)))

        # Most restaurants accept inside 2 minutes, some run late
        accept_lag = float(np.random.exponential(1.5))
        # Assignment measured from acceptance; 2-5 minutes is on time
        assign_lag = float(np.random.gamma(3.0, 1.3))
        status = np.random.choice(STATUSES, p=[0.1, 0.15, 0.2, 0.1, 0.25, 0.2])
        rider_id = None
        if status in ("ready", "out_for_delivery", "delivered"):
            rider_id = riders.iloc[np.random.randint(len(riders))]["rider_id"]

        rows.append({
            "order_id": f"o_{str(order_index + 1).zfill(6)}",
            "customer_id": f"c_{np.random.randint(1000, 9999)}",
            "restaurant_id": restaurant["restaurant_id"],
            "created_at": created_at.isoformat(),
            "accepted_at": (created_at + timedelta(minutes=accept_lag)).isoformat(),
            "rider_assigned_at": (created_at + timedelta(minutes=accept_lag + assign_lag)).isoformat(),
            "rider_id": rider_id,
            # Drop-off ~1-8km from the restaurant
            "dropoff_lat": np.round(restaurant["lat"] + np.random.uniform(-0.07, 0.07), 6),
            "dropoff_lon": np.round(restaurant["lon"] + np.random.uniform(-0.07, 0.07), 6),
            "status": status,
        })

    return pd.DataFrame(rows)


def generate_mock_data(num_restaurants=30, num_riders=50, num_orders=1000, prefix="eta_mock"):
    restaurants = generate_restaurants(num_restaurants)
    riders = generate_riders(num_riders)
    orders = generate_orders(restaurants, riders, num_orders)

    restaurants.to_csv(f"{prefix}_restaurants.csv", index=False)
    riders.to_csv(f"{prefix}_riders.csv", index=False)
    orders.to_csv(f"{prefix}_orders.csv", index=False)
    print(f"Generated {num_restaurants} restaurants, {num_riders} riders and {num_orders} orders ({prefix}_*.csv)")

    # Quick look at how the timing bands are populated
    accept = (pd.to_datetime(orders["accepted_at"]) - pd.to_datetime(orders["created_at"])).dt.total_seconds() / 60
    print(f"\nLate acceptances (> 2 min): {(accept > 2).mean():.0%}")
    print("\nOrders per status:")
    for status, count in orders["status"].value_counts().items():
        print(f"  {status}: {count}")


if __name__ == "__main__":
    generate_mock_data()
