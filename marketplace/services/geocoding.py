"""
Geocoding and road distance through the Mapbox HTTP API.

The provider never raises to its callers: without an API key, or when Mapbox
fails, ``geocode`` returns None and ``distance`` falls back to the great-circle
distance driven at a constant 80 km/h.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

import requests
from django.conf import settings

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371
FALLBACK_SPEED_KMH = 80
# EU countries the marketplace serves
GEOCODING_COUNTRIES = (
    "PT,ES,FR,DE,IT,NL,BE,AT,PL,CZ,HU,RO,BG,GR,HR,SI,SK,LT,LV,EE,IE,DK,SE,FI,LU,MT,CY"
)


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lng: float


@dataclass(frozen=True)
class RouteEstimate:
    distance_km: int
    duration_minutes: int
    source: str  # "mapbox" or "haversine"


def haversine_km(origin: Coordinates, destination: Coordinates) -> int:
    d_lat = math.radians(destination.lat - origin.lat)
    d_lng = math.radians(destination.lng - origin.lng)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(origin.lat))
        * math.cos(math.radians(destination.lat))
        * math.sin(d_lng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return round(EARTH_RADIUS_KM * c)


def straight_line_estimate(origin: Coordinates, destination: Coordinates) -> RouteEstimate:
    distance = haversine_km(origin, destination)
    return RouteEstimate(
        distance_km=distance,
        duration_minutes=round(distance / FALLBACK_SPEED_KMH * 60),
        source="haversine",
    )


class MapboxGeocoder:
    def __init__(self, api_key=None, base_url=None, timeout=None, session=None):
        self.api_key = settings.MAPBOX_API_KEY if api_key is None else api_key
        self.base_url = (base_url or settings.MAPBOX_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.MARKETPLACE_HTTP_TIMEOUT
        self.session = session or requests.Session()

    def _get(self, path, params):
        response = self.session.get(
            f"{self.base_url}{path}",
            params={"access_token": self.api_key, **params},
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json()

    def geocode(self, address: str) -> Optional[Coordinates]:
        if not self.api_key or not address:
            return None
        try:
            data = self._get(
                f"/geocoding/v5/mapbox.places/{quote(address)}.json",
                {"limit": 1, "types": "address,place,postcode", "country": GEOCODING_COUNTRIES},
            )
            features = data.get("features") or []
            if not features:
                logger.info("geocode: no match for %r", address)
                return None
            lng, lat = features[0]["center"]
            return Coordinates(lat=float(lat), lng=float(lng))
        except (requests.RequestException, ValueError, KeyError, TypeError) as exc:
            logger.warning("geocode: mapbox failed for %r: %r", address, exc)
            return None

    def distance(self, origin: Coordinates, destination: Coordinates) -> RouteEstimate:
        if not self.api_key:
            return straight_line_estimate(origin, destination)
        try:
            data = self._get(
                "/directions/v5/mapbox/driving/"
                f"{origin.lng},{origin.lat};{destination.lng},{destination.lat}",
                {"overview": "false"},
            )
            routes = data.get("routes") or []
            if not routes:
                raise ValueError("no route found")
            route = routes[0]
            return RouteEstimate(
                distance_km=round(route["distance"] / 1000),
                duration_minutes=round(route["duration"] / 60),
                source="mapbox",
            )
        except (requests.RequestException, ValueError, KeyError, TypeError) as exc:
            logger.warning(
                "distance: mapbox failed (%r), using straight-line estimate", exc
            )
            return straight_line_estimate(origin, destination)
