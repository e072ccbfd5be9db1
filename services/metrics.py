# services/metrics.py
from typing import Iterable

# South-East Michigan city -> county. Cities missing here are not counted.
CITY_COUNTY = {
    # Wayne
    "detroit": "Wayne", "dearborn": "Wayne", "dearborn heights": "Wayne",
    "livonia": "Wayne", "westland": "Wayne", "inkster": "Wayne",
    "hamtramck": "Wayne", "highland park": "Wayne", "romulus": "Wayne",
    "taylor": "Wayne", "allen park": "Wayne", "wayne": "Wayne",
    "garden city": "Wayne", "lincoln park": "Wayne", "southgate": "Wayne",
    "wyandotte": "Wayne", "river rouge": "Wayne", "ecorse": "Wayne",
    "melvindale": "Wayne", "canton": "Wayne", "plymouth": "Wayne",
    "redford": "Wayne", "woodhaven": "Wayne", "brownstown": "Wayne",
    "flat rock": "Wayne", "belleville": "Wayne", "trenton": "Wayne",
    "riverview": "Wayne", "grosse pointe": "Wayne",
    # Oakland
    "pontiac": "Oakland", "troy": "Oakland", "southfield": "Oakland",
    "farmington hills": "Oakland", "farmington": "Oakland",
    "royal oak": "Oakland", "oak park": "Oakland", "ferndale": "Oakland",
    "berkley": "Oakland", "birmingham": "Oakland", "bloomfield hills": "Oakland",
    "west bloomfield": "Oakland", "novi": "Oakland",
    "rochester hills": "Oakland", "rochester": "Oakland",
    "clawson": "Oakland", "madison heights": "Oakland", "hazel park": "Oakland",
    # Macomb
    "warren": "Macomb", "sterling heights": "Macomb",
    "clinton township": "Macomb", "roseville": "Macomb",
    "eastpointe": "Macomb", "st. clair shores": "Macomb",
    "mount clemens": "Macomb", "mt. clemens": "Macomb",
    # Washtenaw
    "ann arbor": "Washtenaw", "ypsilanti": "Washtenaw",
    # Monroe
    "monroe": "Monroe",
    # Livingston
    "brighton": "Livingston", "howell": "Livingston",
}


def extract_city(address: str) -> str:
    # "123 Main St, Detroit, MI 48201" -> "detroit"
    parts = [p.strip() for p in (address or "").split(",")]
    if len(parts) >= 3:
        return parts[-2].lower()
    if len(parts) == 2:
        return parts[0].lower()
    return ""


def count_counties(addresses: Iterable[str]) -> int:
    counties = set()
    for address in addresses:
        county = CITY_COUNTY.get(extract_city(address))
        if county:
            counties.add(county)
    return len(counties)


def live_metrics(clinics) -> dict:
    clinics = list(clinics)
    return {
        "clinics": len(clinics),
        "counties": count_counties(c.address for c in clinics),
    }
