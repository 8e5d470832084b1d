"""
Purpose: Travel-time policy on top of the routing clients.
What it does:

Answers "how far and how long from A to B, and how bad is traffic?" for the ETA
estimator, in whole minutes and kilometres.

- Asks the configured routing client (Google Distance Matrix or OSRM) once.
- Derives a traffic level from traffic-adjusted vs baseline duration.
- Falls back to haversine distance at a flat urban speed whenever the client
  is missing or fails, so callers always get an answer.

Rule: no retries here and no ETA rules (multipliers, buffers) either.
"""

from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

import requests
from dotenv import load_dotenv

from .geo import LatLon, URBAN_SPEED_KMH, haversine_km, minutes_at_speed
from .maps_client import DistanceMatrixClient, MapsClientError
from .osrm_client import OSRMClient, OSRMError

load_dotenv()
ETA_TRAVEL_PROVIDER = os.getenv("ETA_TRAVEL_PROVIDER", "google")

logger = logging.getLogger(__name__)

# traffic-adjusted duration / baseline duration thresholds
HIGH_TRAFFIC_RATIO = 1.4
MEDIUM_TRAFFIC_RATIO = 1.2


class TrafficLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class TravelTime:
    """
    Normalized answer for one origin -> destination leg.
    """
    distance_km: float
    duration_minutes: int
    traffic_level: TrafficLevel = TrafficLevel.LOW
    source: str = "haversine"  # which backend produced the numbers


def classify_traffic(duration_in_traffic_s: Optional[float], duration_s: float) -> TrafficLevel:
    """
    ratio >= 1.4 -> high, >= 1.2 -> medium, anything else (or no traffic data) -> low.
    """
    if not duration_in_traffic_s or duration_s <= 0:
        return TrafficLevel.LOW

    ratio = duration_in_traffic_s / duration_s
    if ratio >= HIGH_TRAFFIC_RATIO:
        return TrafficLevel.HIGH
    if ratio >= MEDIUM_TRAFFIC_RATIO:
        return TrafficLevel.MEDIUM
    return TrafficLevel.LOW


class TravelTimeProvider:
    """
    Wraps a routing client (anything with `fetch_route_metrics`) and never raises
    for provider trouble: every failure degrades to the haversine estimate.
    """
    def __init__(self, client: Optional[Any] = None, fallback_speed_kmh: float = URBAN_SPEED_KMH):
        self.client = client
        self.fallback_speed_kmh = fallback_speed_kmh

    def get_travel_time(self, origin: LatLon, destination: LatLon,
                        mode: str = "driving",
                        traffic_model: str = "best_guess") -> TravelTime:
        if self.client is None:
            return self.fallback(origin, destination)

        try:
            metrics = self.client.fetch_route_metrics(origin, destination, mode=mode,
                                                      traffic_model=traffic_model)
            duration_s = metrics["duration_s"]
            in_traffic_s = metrics.get("duration_in_traffic_s")
            distance_km = round(metrics["distance_m"] / 1000, 2)
        except (MapsClientError, OSRMError, requests.RequestException) as exc:
            logger.warning("Travel-time provider failed, using haversine fallback: %s", exc)
            return self.fallback(origin, destination)
        except (KeyError, ValueError, TypeError, AttributeError) as exc:
            logger.warning("Travel-time provider returned an unusable payload: %s", exc)
            return self.fallback(origin, destination)

        effective_s = in_traffic_s if in_traffic_s else duration_s

        return TravelTime(
            distance_km=distance_km,
            duration_minutes=math.ceil(effective_s / 60),
            traffic_level=classify_traffic(in_traffic_s, duration_s),
            source=type(self.client).__name__,
        )

    def fallback(self, origin: LatLon, destination: LatLon) -> TravelTime:
        """
        Straight-line estimate: haversine distance at a flat urban speed.
        Traffic cannot be observed here, so it is reported as low.
        """
        distance_km = round(haversine_km(origin, destination), 2)
        return TravelTime(
            distance_km=distance_km,
            duration_minutes=minutes_at_speed(distance_km, self.fallback_speed_kmh),
            traffic_level=TrafficLevel.LOW,
            source="haversine",
        )


def build_travel_time_provider(provider: Optional[str] = None) -> TravelTimeProvider:
    """
    Build the provider named by ETA_TRAVEL_PROVIDER ("google" or "osrm").
    A client that cannot be configured (missing key / URL) leaves the provider
    on its haversine fallback.
    """
    provider = (provider or ETA_TRAVEL_PROVIDER).lower()
    try:
        if provider == "osrm":
            client = OSRMClient()
        else:
            client = DistanceMatrixClient()
    except ValueError as exc:
        logger.warning("No %s routing client configured (%s); travel times use haversine", provider, exc)
        client = None
    return TravelTimeProvider(client)
