#Purpose: The Google Distance Matrix "adapter/client".
#Sole responsibility: talk to the Distance Matrix API via HTTP and return normalized outputs.
#Encapsulates provider-specific details:
#coordinate formatting ("lat,lng")
#query parameters (mode, departure_time, traffic_model)
#response status checks
#parsing response JSON into our internal shape (metres / seconds)
#It should not contain ETA rules or fallbacks; routing.travel_time owns those.


from dotenv import load_dotenv
import os
from typing import Dict, Optional, Tuple
import requests

# Read the API settings from the environment
# Example in .env:
# GOOGLE_MAPS_API_KEY=AIza...
load_dotenv()
GOOGLE_MAPS_API_KEY = os.getenv("GOOGLE_MAPS_API_KEY")
GOOGLE_MAPS_BASE_URL = os.getenv("GOOGLE_MAPS_BASE_URL", "https://maps.googleapis.com/maps/api")

# Internal coordinate type: (lat, lon)
LatLon = Tuple[float, float]


class MapsClientError(Exception):
    """Raised when the Distance Matrix API answers with a non-OK status or an unusable payload."""
    pass


class DistanceMatrixClient:
    """
    Google Distance Matrix Adapter / Client

    Sole responsibility:
    - Talk to the Distance Matrix API via HTTP
    - Convert internal (lat, lon) -> "lat,lng" query strings
    - Return normalized outputs:
        {
            "distance_m": float,
            "duration_s": float,
            "duration_in_traffic_s": float | None,
        }
    """
    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None,
                 timeout: Optional[float] = None):
        self.api_key = api_key or GOOGLE_MAPS_API_KEY
        self.base_url = (base_url or GOOGLE_MAPS_BASE_URL).rstrip("/")
        # None means "whatever requests does by default" (no client-side timeout)
        self.timeout = timeout

        if not self.api_key:
            raise ValueError("Google Maps API key not set. Please set GOOGLE_MAPS_API_KEY in the .env file.")

    @staticmethod
    def format_coordinate(point: LatLon) -> str:
        lat, lon = point
        return f"{lat},{lon}"

    def fetch_route_metrics(self, origin: LatLon, destination: LatLon,
                            mode: str = "driving",
                            traffic_model: str = "best_guess") -> Dict[str, Optional[float]]:
        """
        Calls /distancematrix/json for a single origin/destination pair.

        `duration_in_traffic_s` is only present when Google returns live traffic
        data (driving mode with a departure time).
        """
        params = {
            "origins": self.format_coordinate(origin),
            "destinations": self.format_coordinate(destination),
            "mode": mode,
            "key": self.api_key,
        }
        if mode == "driving":
            params["departure_time"] = "now"
            params["traffic_model"] = traffic_model

        response = requests.get(
            f"{self.base_url}/distancematrix/json",
            params=params,
            timeout=self.timeout,
        )
        data = response.json()

        if data.get("status") != "OK":
            raise MapsClientError(
                f"Distance Matrix error: {data.get('status')} {data.get('error_message', '')}".strip()
            )

        try:
            element = data["rows"][0]["elements"][0]
        except (KeyError, IndexError) as exc:
            raise MapsClientError("Distance Matrix returned no elements") from exc

        if element.get("status") != "OK":
            raise MapsClientError(f"Distance Matrix element error: {element.get('status')}")

        in_traffic = element.get("duration_in_traffic")
        return {
            "distance_m": float(element["distance"]["value"]),
            "duration_s": float(element["duration"]["value"]),
            "duration_in_traffic_s": float(in_traffic["value"]) if in_traffic else None,
        }
