# services/geo.py
import json
import math
from typing import Any, Optional, Tuple

Coords = Tuple[float, float]

EARTH_RADIUS_KM = 6371.0
KM_TO_MILES = 0.621

# Contiguous-US box used to tell (lat, lng) from (lng, lat) in stored data.
# Clinics outside it can never normalize.
LAT_MIN, LAT_MAX = 24.0, 50.0
LNG_MIN, LNG_MAX = -125.0, -66.0

_LAT_KEYS = ("lat", "latitude", "0", 0)
_LNG_KEYS = ("lng", "lon", "longitude", "1", 1)


def _within_lat(n: float) -> bool:
    return LAT_MIN < n < LAT_MAX


def _within_lng(n: float) -> bool:
    return LNG_MIN < n < LNG_MAX


def to_float(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _first_key(obj: dict, keys) -> Any:
    for key in keys:
        if key in obj and obj[key] is not None:
            return obj[key]
    return None


def _split_pair(value: Any) -> Optional[Tuple[Any, Any]]:
    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            return None
        try:
            parsed = json.loads(raw)
        except ValueError:
            parts = raw.strip("()[]").split(",")
            return (parts[0], parts[1]) if len(parts) == 2 else None
        return _split_pair(parsed) if not isinstance(parsed, str) else None

    if isinstance(value, (list, tuple)):
        return (value[0], value[1]) if len(value) >= 2 else None

    if isinstance(value, dict):
        return _first_key(value, _LAT_KEYS), _first_key(value, _LNG_KEYS)

    # Firestore GeoPoint and friends
    if hasattr(value, "latitude") and hasattr(value, "longitude"):
        return value.latitude, value.longitude

    return None


def normalize_coords(value: Any) -> Optional[Coords]:
    """Turn a stored coordinate value into a validated ``(lat, lng)`` pair.

    Historical records hold pairs in either axis order, so both orderings are
    tested against the bounding box and the one that fits wins. Returns None
    when the value can't be parsed or neither ordering fits.
    """
    pair = _split_pair(value)
    if pair is None:
        return None

    lat, lng = to_float(pair[0]), to_float(pair[1])
    if lat is None or lng is None:
        return None

    if _within_lat(lat) and _within_lng(lng):
        return lat, lng
    if _within_lat(lng) and _within_lng(lat):
        return lng, lat
    return None


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)

    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def km_to_miles(km: float) -> float:
    return km * KM_TO_MILES


def distance_km(reference: Optional[Coords], coords: Coords) -> float:
    if reference is None:
        return math.inf
    return haversine_km(reference[0], reference[1], coords[0], coords[1])


def distance_miles(reference: Optional[Coords], coords: Coords) -> float:
    km = distance_km(reference, coords)
    return km_to_miles(km) if math.isfinite(km) else math.inf
