#Marks routing as a package.
#Re-exports the travel-time API (TravelTimeProvider, TravelTime, TrafficLevel)
#so the ETA engine imports from routing without knowing internal file names.
#No business logic.

from .geo import LatLon, haversine_km, minutes_at_speed
from .maps_client import DistanceMatrixClient, MapsClientError
from .osrm_client import OSRMClient, OSRMError
from .travel_time import (
    TrafficLevel,
    TravelTime,
    TravelTimeProvider,
    build_travel_time_provider,
    classify_traffic,
)

__all__ = [
    "LatLon",
    "haversine_km",
    "minutes_at_speed",
    "DistanceMatrixClient",
    "MapsClientError",
    "OSRMClient",
    "OSRMError",
    "TrafficLevel",
    "TravelTime",
    "TravelTimeProvider",
    "build_travel_time_provider",
    "classify_traffic",
]
