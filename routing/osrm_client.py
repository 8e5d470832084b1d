#Purpose: The OSRM "adapter/client" for self-hosted routing.
#Sole responsibility: talk to OSRM via HTTP and return normalized outputs.
#Encapsulates OSRM-specific details:
#coordinate formatting (lon,lat)
#URL construction (/route)
#parsing response JSON into the same shape DistanceMatrixClient returns
#OSRM has no live traffic, so duration_in_traffic_s is always None.


from dotenv import load_dotenv
import os
from typing import Dict, List, Optional, Tuple
import requests

# Read OSRM base URL from environment
# Example in .env:
# OSRM_BASE_URL=http://router.project-osrm.org
load_dotenv()
OSRM_BASE_URL = os.getenv("OSRM_BASE_URL")

# Internal coordinate type: (lat, lon)
LatLon = Tuple[float, float]


class OSRMError(Exception):
    """Custom exception for OSRM client errors."""
    pass


class OSRMClient:
    """
    OSRM Adapter / Client

    Sole responsibility:
    - Talk to OSRM via HTTP
    - Convert internal (lat, lon) -> OSRM (lon,lat)
    - Return normalized outputs
    """
    def __init__(self, base_url: Optional[str] = None, profile: str = "driving",
                 timeout: Optional[float] = None):
        self.base_url = (base_url or OSRM_BASE_URL or "").rstrip("/")
        self.timeout = timeout
        self.profile = profile  # the mode of transportation (driving, walking, cycling)

        if not self.base_url:
            raise ValueError("OSRM base URL not set. Please set OSRM_BASE_URL in the .env file.")

    def format_coordinates(self, coords: List[LatLon]) -> str:
        """Convert list of (lat, lon) to OSRM format 'lon,lat;lon,lat;...'"""
        return ";".join(f"{lon},{lat}" for lat, lon in coords)

    def fetch_route_metrics(self, origin: LatLon, destination: LatLon,
                            mode: str = "driving",
                            traffic_model: str = "best_guess") -> Dict[str, Optional[float]]:
        """
        Calls the OSRM /route endpoint for origin -> destination.

        `mode` overrides the client profile for this call; `traffic_model` is
        accepted for interface parity and ignored.
        """
        coordinates = self.format_coordinates([origin, destination])
        url = f"{self.base_url}/route/v1/{mode or self.profile}/{coordinates}"

        response = requests.get(
            url,
            params={"overview": "false"},  # we don't need the geometry of the route
            timeout=self.timeout,
        )
        data = response.json()

        if data.get("code") != "Ok" or not data.get("routes"):
            raise OSRMError(f"OSRM error: {data.get('message', data.get('code', 'Unknown error'))}")

        route = data["routes"][0]  # OSRM may return alternatives, the first is the best
        return {
            "distance_m": float(route["distance"]),
            "duration_s": float(route["duration"]),
            "duration_in_traffic_s": None,
        }
