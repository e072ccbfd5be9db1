import re

LANGUAGES = ("en", "es")
DEFAULT_LANG = "en"
COOKIE_NAME = "zbi-lang"
COOKIE_MAX_AGE = 60 * 60 * 24 * 365

TRANSLATIONS = {
    "en": {
        "your_location": "Your location",
        "miles_away": "{miles} mi away",
        "view_details": "View details →",
        "website": "Website",
        "directions": "Directions",
        "verified": "Verified",
        "showing": "Showing {count} clinics within {radius} miles.",
        "none_within": "No clinics within {radius} miles yet, try widening the radius.",
    },
    "es": {
        "your_location": "Tu ubicación",
        "miles_away": "a {miles} mi",
        "view_details": "Ver detalles →",
        "website": "Sitio web",
        "directions": "Cómo llegar",
        "verified": "Verificada",
        "showing": "Mostrando {count} clínicas a menos de {radius} millas.",
        "none_within": "Aún no hay clínicas a menos de {radius} millas, prueba con un radio mayor.",
    },
}

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


def normalize_lang(value) -> str:
    lang = str(value or "").strip().lower()[:2]
    return lang if lang in LANGUAGES else DEFAULT_LANG


def resolve_lang(request) -> str:
    """Query param wins over the stored cookie."""
    if request.args.get("lang"):
        return normalize_lang(request.args.get("lang"))
    return normalize_lang(request.cookies.get(COOKIE_NAME))


def tpl(template: str, **values) -> str:
    return _PLACEHOLDER.sub(lambda m: str(values[m.group(1)]) if m.group(1) in values else m.group(0), template)


def t(lang: str, key: str, **values) -> str:
    text = TRANSLATIONS[normalize_lang(lang)].get(key) or TRANSLATIONS[DEFAULT_LANG][key]
    return tpl(text, **values)
