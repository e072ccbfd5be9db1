# services/geocode.py
import logging
import threading
from typing import Callable, List, Optional

import requests

from services.geo import Coords, to_float

NOMINATIM_SEARCH_URL = "https://nominatim.openstreetmap.org/search"
DEFAULT_USER_AGENT = "ClinicFinder/1.0 (admin@yourdomain.example)"
MIN_QUERY_LENGTH = 3
DEFAULT_LIMIT = 8
DEBOUNCE_SECONDS = 0.3


class Suggestion:
    def __init__(self, label: str, lat: float, lon: float):
        self.label = label
        self.lat = lat
        self.lon = lon

    def to_dict(self):
        return {"label": self.label, "lat": self.lat, "lon": self.lon}

    def __eq__(self, other):
        return isinstance(other, Suggestion) and self.to_dict() == other.to_dict()

    def __repr__(self):
        return f"Suggestion(label={self.label}, lat={self.lat}, lon={self.lon})"


class GeocodeService:
    """Forward geocoding through Nominatim. Never raises: failures mean no suggestions."""

    def __init__(self, user_agent: str = DEFAULT_USER_AGENT, timeout: int = 10, session=None,
                 url: str = NOMINATIM_SEARCH_URL):
        self.user_agent = user_agent or DEFAULT_USER_AGENT
        self.timeout = timeout
        self.url = url
        self.session = session or requests.Session()

    def search(self, query: str, limit: int = DEFAULT_LIMIT) -> List[Suggestion]:
        q = (query or "").strip()
        if len(q) < MIN_QUERY_LENGTH:
            return []

        params = {"q": q, "format": "jsonv2", "addressdetails": 1, "limit": limit}
        try:
            resp = self.session.get(self.url, params=params, headers={"User-Agent": self.user_agent},
                                    timeout=self.timeout)
        except requests.RequestException as e:
            logging.warning("Geocoding request failed for %r: %s", q, str(e))
            return []

        if resp.status_code != 200:
            logging.warning("Geocoder answered HTTP %s for %r", resp.status_code, q)
            return []
        try:
            rows = resp.json()
        except ValueError:
            logging.warning("Non-JSON geocoder response for %r", q)
            return []
        if not isinstance(rows, list):
            return []

        suggestions = []
        for row in rows:
            if not isinstance(row, dict):
                continue
            lat, lon = to_float(row.get("lat")), to_float(row.get("lon"))
            if lat is None or lon is None:
                continue
            suggestions.append(Suggestion(str(row.get("display_name") or ""), lat, lon))
        return suggestions

    def geocode(self, address: str) -> Optional[Coords]:
        suggestions = self.search(address, limit=1)
        if not suggestions:
            return None
        return suggestions[0].lat, suggestions[0].lon


class AddressSuggester:
    """Debounced typeahead over a geocoder.

    Each keystroke restarts the timer, so a burst of input yields one lookup.
    Lookups are numbered; a result whose number is no longer the latest is
    dropped even if it arrives after a newer one.
    """

    def __init__(self, geocoder: GeocodeService, on_results: Callable[[str, List[Suggestion]], None],
                 delay: float = DEBOUNCE_SECONDS, timer_factory=threading.Timer):
        self.geocoder = geocoder
        self.on_results = on_results
        self.delay = delay
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._timer = None
        self._generation = 0

    def submit(self, text: str):
        query = (text or "").strip()
        with self._lock:
            self._generation += 1
            generation = self._generation
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            timer = None
            if len(query) >= MIN_QUERY_LENGTH:
                timer = self._timer_factory(self.delay, self._lookup, args=(generation, query))
                timer.daemon = True
                self._timer = timer
        if timer is None:
            self.on_results(query, [])
            return
        timer.start()

    def close(self):
        with self._lock:
            self._generation += 1
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _is_current(self, generation: int) -> bool:
        with self._lock:
            return generation == self._generation

    def _lookup(self, generation: int, query: str):
        if not self._is_current(generation):
            return
        try:
            suggestions = self.geocoder.search(query)
        except Exception as e:
            logging.warning("Address lookup for %r failed: %s", query, str(e))
            suggestions = []
        if not self._is_current(generation):
            logging.debug("Discarding stale suggestions for %r", query)
            return
        self.on_results(query, suggestions)
