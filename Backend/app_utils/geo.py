import math
import logging

import requests

from config import (
    GEOCODING_ENABLED,
    GEOCODING_URL,
    GEOCODING_USER_AGENT,
    GEOCODING_TIMEOUT_SECONDS,
)

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0


def calculate_distance_km(lat1, lon1, lat2, lon2):
    """
    Calculate the great circle distance between two points
    on the earth (specified in decimal degrees)
    Returns distance in kilometers.
    """
    if lat1 is None or lon1 is None or lat2 is None or lon2 is None:
        return float('inf')

    # Convert decimal degrees to radians
    lat1, lon1, lat2, lon2 = map(math.radians, [lat1, lon1, lat2, lon2])

    # Haversine formula
    dlon = lon2 - lon1
    dlat = lat2 - lat1
    a = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def is_within_distance(lat1, lon1, lat2, lon2, max_km):
    return calculate_distance_km(lat1, lon1, lat2, lon2) <= max_km


def within_bounding_box(lat, lng, min_lat=None, max_lat=None, min_lng=None, max_lng=None):
    """Inclusive box check; a bound left as None does not constrain."""
    if min_lat is not None and lat < min_lat:
        return False
    if max_lat is not None and lat > max_lat:
        return False
    if min_lng is not None and lng < min_lng:
        return False
    if max_lng is not None and lng > max_lng:
        return False
    return True


def reverse_geocode(lat, lng):
    """
    Get a human readable address from coordinates using Nominatim reverse geocoding.
    Returns None when disabled or on any failure.
    """
    if not GEOCODING_ENABLED or lat is None or lng is None:
        return None

    try:
        params = {"format": "json", "lat": lat, "lon": lng, "zoom": 18, "addressdetails": 1}
        headers = {'User-Agent': GEOCODING_USER_AGENT}
        response = requests.get(GEOCODING_URL, params=params, headers=headers, timeout=GEOCODING_TIMEOUT_SECONDS)
        if response.status_code == 200:
            return response.json().get('display_name') or None
        logger.warning(f"Geocoding returned HTTP {response.status_code} for ({lat}, {lng})")
    except (requests.RequestException, ValueError) as e:
        logger.warning(f"Geocoding error for ({lat}, {lng}): {e}")

    return None
