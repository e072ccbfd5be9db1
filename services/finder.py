# services/finder.py
import math
from typing import Iterable, List, Optional

from services.clinic import Clinic
from services.geo import Coords, distance_miles, to_float

DEFAULT_RADIUS_MILES = 50.0


def parse_reference(lat, lng) -> Optional[Coords]:
    """Request params to a reference point; anything unusable means no reference."""
    lat, lng = to_float(lat), to_float(lng)
    if lat is None or lng is None:
        return None
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        return None
    return lat, lng


def matches_service(clinic: Clinic, service_text: str) -> bool:
    needle = service_text.strip().lower()
    return any(needle in tag.lower() for tag in clinic.services)


def find_clinics(clinics: Iterable[Clinic], service_text: str = "", verified_only: bool = False,
                 reference: Optional[Coords] = None,
                 radius_miles: float = DEFAULT_RADIUS_MILES) -> List[Clinic]:
    rows = list(clinics)

    if service_text and service_text.strip():
        rows = [c for c in rows if matches_service(c, service_text)]

    if verified_only:
        rows = [c for c in rows if c.verified]

    rows = [c.with_miles(distance_miles(reference, c.coords)) for c in rows]

    if reference is not None:
        rows = [c for c in rows if c.miles <= radius_miles]

    rows.sort(key=lambda c: c.miles)
    return rows


def format_miles(miles: float) -> Optional[str]:
    if miles is None or not math.isfinite(miles):
        return None
    return f"{miles:.1f}" if miles < 10 else f"{miles:.0f}"
