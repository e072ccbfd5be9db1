# services/map_view.py
import math
from typing import Iterable, List, Optional
from urllib.parse import quote

from markupsafe import escape

from components.i18n import t
from services.clinic import Clinic, is_web_url
from services.finder import format_miles
from services.geo import Coords

TILE_URL = "https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png"
TILE_ATTRIBUTION = "&copy; OpenStreetMap"
DEFAULT_CENTER = (42.3, -83.04)
DEFAULT_ZOOM = 10
FIT_PADDING = 0.2
FLY_DURATION = 0.5
METERS_PER_MILE = 1609.34

BUCKETS = (
    ("dental", ("dental",)),
    ("mental", ("mental", "behavioral")),
    ("pediatrics", ("pediatric", "child")),
    ("pharmacy", ("pharmacy",)),
    ("vision", ("vision", "eye", "optom")),
)
BUCKET_COLORS = {
    "dental": "#f59e0b",
    "mental": "#14b8a6",
    "pediatrics": "#22c55e",
    "pharmacy": "#8b5cf6",
    "vision": "#ef4444",
    "medical": "#0ea5e9",
}


def service_bucket(services: Iterable[str], name: str = None) -> str:
    bag = f"{name or ''} {' '.join(services or [])}".lower()
    for bucket, needles in BUCKETS:
        if any(needle in bag for needle in needles):
            return bucket
    return "medical"


def dot_icon(color: str, size: int = 18, ring: bool = True) -> dict:
    border = "border:2px solid #fff;" if ring else ""
    return {
        "html": (f'<div style="width:{size}px;height:{size}px;border-radius:50%;background:{color};'
                 f'{border}box-shadow:0 0 0 2px rgba(0,0,0,.15);"></div>'),
        "className": "clinic-dot",
        "iconSize": [size, size],
        "iconAnchor": [size / 2, size],
        "popupAnchor": [0, -max(16, size - 2)],
    }


def house_icon() -> dict:
    return {
        "html": ('<div style="font-size:28px;line-height:28px;transform:translateY(-4px);'
                 'filter:drop-shadow(0 1px 2px rgba(0,0,0,.35));">&#127968;</div>'),
        "className": "user-house",
        "iconSize": [28, 28],
        "iconAnchor": [14, 26],
        "popupAnchor": [0, -24],
    }


def padded_bounds(points: List[Coords], pad: float = FIT_PADDING) -> Optional[list]:
    """Bounds of ``points`` grown by ``pad`` of their height/width on every side."""
    if not points:
        return None
    lats = [p[0] for p in points]
    lngs = [p[1] for p in points]
    south, north = min(lats), max(lats)
    west, east = min(lngs), max(lngs)
    dlat = (north - south) * pad
    dlng = (east - west) * pad
    return [[south - dlat, west - dlng], [north + dlat, east + dlng]]


def directions_url(clinic: Clinic) -> str:
    destination = clinic.address or f"{clinic.coords[0]},{clinic.coords[1]}"
    return f"https://www.google.com/maps/dir/?api=1&destination={quote(destination, safe='')}"


def popup_html(clinic: Clinic, lang: str = "en") -> str:
    badge = f' <span title="{escape(t(lang, "verified"))}">&#9989;</span>' if clinic.verified else ""
    parts = ['<div style="max-width:240px">',
             f'<div style="font-weight:600">{escape(clinic.name)}{badge}</div>']
    miles = format_miles(clinic.miles)
    if miles is not None:
        parts.append(f'<div style="font-size:12px;opacity:.8">{escape(t(lang, "miles_away", miles=miles))}</div>')
    parts.append(f'<div style="font-size:12px;margin-top:6px">{escape(clinic.address)}</div>')

    details = f"/finder/{quote(clinic.slug or clinic.id, safe='')}"
    links = [f'<a class="underline" href="{escape(details)}">{escape(t(lang, "view_details"))}</a>']
    if is_web_url(clinic.url):
        links.append(f'<a class="underline" target="_blank" rel="noreferrer" href="{escape(clinic.url)}">'
                     f'{escape(t(lang, "website"))}</a>')
    links.append(f'<a class="underline" target="_blank" rel="noreferrer" href="{escape(directions_url(clinic))}">'
                 f'{escape(t(lang, "directions"))}</a>')
    parts.append(f'<div style="display:flex;gap:8px;margin-top:8px">{"".join(links)}</div>')
    parts.append("</div>")
    return "".join(parts)


class MapView:
    """Builds Leaflet marker payloads for the finder map.

    The first fit snaps to the bounds, later fits fly there so the viewport
    moves smoothly as filters change.
    """

    def __init__(self, fitted: bool = False):
        self._fitted = fitted
        self._icons = {}

    def icon_for(self, clinic: Clinic, big: bool = False) -> dict:
        bucket = service_bucket(clinic.services, clinic.name)
        key = (bucket, big)
        if key not in self._icons:
            self._icons[key] = dot_icon(BUCKET_COLORS[bucket], 24 if big else 18, not big)
        return self._icons[key]

    def render(self, clinics: Iterable[Clinic], reference: Optional[Coords] = None,
               radius_miles: float = None, selected_id: str = None, lang: str = "en") -> dict:
        markers = []
        points = []
        for clinic in clinics:
            if clinic.coords is None:
                continue
            selected = selected_id is not None and clinic.id == selected_id
            markers.append({
                "key": clinic.id,
                "position": [clinic.coords[0], clinic.coords[1]],
                "bucket": service_bucket(clinic.services, clinic.name),
                "icon": self.icon_for(clinic, big=selected),
                "selected": selected,
                "popup": popup_html(clinic, lang),
            })
            points.append(clinic.coords)

        reference_marker = None
        circle = None
        if reference is not None:
            reference_marker = {
                "key": "reference",
                "position": [reference[0], reference[1]],
                "icon": house_icon(),
                "popup": str(escape(t(lang, "your_location"))),
            }
            points.append(reference)
            if radius_miles and math.isfinite(radius_miles):
                circle = {
                    "center": [reference[0], reference[1]],
                    "radius": radius_miles * METERS_PER_MILE,
                    "pathOptions": {"color": "#0ea5e9", "fillColor": "#0ea5e9", "fillOpacity": 0.08, "weight": 1},
                }

        bounds = padded_bounds(points)
        fit = None
        if bounds is not None:
            fit = {"bounds": bounds, "animate": self._fitted}
            if self._fitted:
                fit["duration"] = FLY_DURATION
            self._fitted = True

        return {
            "tiles": {"url": TILE_URL, "attribution": TILE_ATTRIBUTION},
            "center": list(DEFAULT_CENTER),
            "zoom": DEFAULT_ZOOM,
            "markers": markers,
            "reference": reference_marker,
            "circle": circle,
            "fit": fit,
        }
