#Purpose: Straight-line geometry used when no routing engine is reachable.
#Great-circle (haversine) distance between two (lat, lon) points and the
#flat-speed duration estimate built on top of it.
#No HTTP here, no ETA policy.

import math
from typing import Tuple

# Internal coordinate type: (lat, lon)
LatLon = Tuple[float, float]

EARTH_RADIUS_KM = 6371.0

# Assumed average speed for a rider moving through city traffic
URBAN_SPEED_KMH = 30.0


def haversine_km(origin: LatLon, destination: LatLon) -> float:
    """
    Great-circle distance in kilometres between two (lat, lon) points.

    Accounts for Earth's curvature, which is accurate enough for last-mile
    distances (a few hundred metres up to tens of kilometres).
    """
    lat1, lon1 = origin
    lat2, lon2 = destination

    lat1, lon1, lat2, lon2 = map(math.radians, [lat1, lon1, lat2, lon2])
    dlat = lat2 - lat1
    dlon = lon2 - lon1

    a = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    c = 2 * math.asin(math.sqrt(a))
    return EARTH_RADIUS_KM * c


def minutes_at_speed(distance_km: float, speed_kmh: float = URBAN_SPEED_KMH) -> int:
    """
    Whole minutes needed to cover `distance_km` at a flat `speed_kmh`,
    rounded up (0.3 km at 30 km/h -> 1 minute).
    """
    if speed_kmh <= 0:
        raise ValueError("speed_kmh must be > 0")
    # round first so float noise never adds a minute
    return math.ceil(round(distance_km / speed_kmh * 60, 6))
