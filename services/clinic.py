# services/clinic.py
import copy
import json
import logging
import os
from typing import List, Optional
from urllib.parse import urlsplit

from services.geo import normalize_coords

DAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
DAY_KEYS = {
    "monday": "Mon", "mon": "Mon",
    "tuesday": "Tue", "tue": "Tue", "tues": "Tue",
    "wednesday": "Wed", "wed": "Wed",
    "thursday": "Thu", "thu": "Thu", "thurs": "Thu",
    "friday": "Fri", "fri": "Fri",
    "saturday": "Sat", "sat": "Sat",
    "sunday": "Sun", "sun": "Sun",
}


class ClinicNotFoundError(Exception):
    pass


def normalize_tags(value) -> List[str]:
    """Services, languages and eligibility come back as a list, a comma string or a JSON string."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value if v is not None and str(v).strip()]
    if not isinstance(value, str):
        return []

    raw = value.strip()
    if not raw:
        return []
    try:
        parsed = json.loads(raw)
    except ValueError:
        parsed = None
    if isinstance(parsed, list):
        return normalize_tags(parsed)

    if raw.startswith("["):
        raw = raw[1:]
    if raw.endswith("]"):
        raw = raw[:-1]
    tags = [part.strip().strip('"').strip() for part in raw.split(",")]
    return [t for t in tags if t]


def normalize_hours(value) -> Optional[dict]:
    if isinstance(value, str):
        try:
            value = json.loads(value) if value.strip() else None
        except ValueError:
            logging.debug("Ignoring unparseable hours value: %s", value)
            return None
    if not isinstance(value, dict):
        return None

    hours = {}
    for key, text in value.items():
        day = DAY_KEYS.get(str(key).strip().lower())
        if day is None:
            continue
        hours[day] = str(text or "").strip()
    return {day: hours[day] for day in DAYS if day in hours} or None


def is_web_url(value) -> bool:
    if not isinstance(value, str):
        return False
    parts = urlsplit(value.strip())
    return parts.scheme.lower() in ("http", "https") and bool(parts.netloc)


def _optional_str(value) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


class Clinic:
    def __init__(self, id: str, name: str, address: str, coords=None, slug: str = None,
                 services: list = None, languages: list = None, eligibility: list = None,
                 hours: dict = None, verified: bool = False, summary: str = None, summary_es: str = None,
                 url: str = None, phone: str = None, photo_url: str = None, miles: float = None):
        self.id = id
        self.name = name
        self.address = address
        self.coords = coords
        self.slug = slug
        self.services = services if services else []
        self.languages = languages if languages else []
        self.eligibility = eligibility if eligibility else []
        self.hours = hours
        self.verified = verified
        self.summary = summary
        self.summary_es = summary_es
        self.url = url
        self.phone = phone
        self.photo_url = photo_url
        self.miles = miles

    @classmethod
    def from_document(cls, doc_id: str, data: dict) -> "Clinic":
        data = data or {}
        return cls(
            id=doc_id,
            name=str(data.get("name") or "").strip(),
            address=str(data.get("address") or "").strip(),
            coords=normalize_coords(data.get("coords")),
            slug=_optional_str(data.get("slug")),
            services=normalize_tags(data.get("services")),
            languages=normalize_tags(data.get("languages")),
            eligibility=normalize_tags(data.get("eligibility")),
            hours=normalize_hours(data.get("hours")),
            verified=data.get("verified") is True,
            summary=_optional_str(data.get("summary")),
            summary_es=_optional_str(data.get("summary_es")),
            url=_optional_str(data.get("url") or data.get("website")),
            phone=_optional_str(data.get("phone")),
            photo_url=_optional_str(data.get("photoUrl")),
        )

    def with_miles(self, miles: float) -> "Clinic":
        annotated = copy.copy(self)
        annotated.miles = miles
        return annotated

    def summary_for(self, lang: str) -> Optional[str]:
        if lang == "es" and self.summary_es:
            return self.summary_es
        return self.summary

    def to_dict(self):
        data = {
            "id": self.id,
            "slug": self.slug,
            "name": self.name,
            "address": self.address,
            "coords": list(self.coords) if self.coords else None,
            "services": list(self.services),
            "languages": list(self.languages),
            "eligibility": list(self.eligibility),
            "hours": dict(self.hours) if self.hours else None,
            "verified": self.verified,
            "summary": self.summary,
            "summary_es": self.summary_es,
            "url": self.url,
            "phone": self.phone,
            "photoUrl": self.photo_url,
        }
        if self.miles is not None:
            data["miles"] = self.miles if self.miles != float("inf") else None
        return data

    def __repr__(self):
        return (f"Clinic(id={self.id}, name={self.name}, coords={self.coords}, "
                f"services={self.services}, verified={self.verified}, miles={self.miles})")


class ClinicService:
    def __init__(self, db, collection: str = "clinics"):
        self._firestore = db
        self._collection = collection

    def _ref(self):
        return self._firestore.collection(self._collection)

    def get(self, id_or_slug: str) -> Clinic:
        """Look a clinic up by document id, then slug, then the legacy ``id`` field."""
        key = str(id_or_slug)
        doc = self._ref().document(key).get()
        if doc.exists:
            return Clinic.from_document(doc.id, doc.to_dict())

        for field in ("slug", "id"):
            docs = list(self._ref().where(field, "==", key).limit(1).stream())
            if docs:
                logging.info("Clinic %s resolved through '%s' field to %s", key, field, docs[0].id)
                return Clinic.from_document(docs[0].id, docs[0].to_dict())

        raise ClinicNotFoundError(f"Clinic {key} not found")

    def list_clinics(self) -> List[Clinic]:
        clinics = []
        for doc in self._ref().stream():
            clinic = Clinic.from_document(doc.id, doc.to_dict())
            if clinic.coords is None:
                logging.debug("Skipping clinic %s without usable coords", doc.id)
                continue
            clinics.append(clinic)
        return clinics

    def list_documents(self) -> List[dict]:
        return [{**(doc.to_dict() or {}), "docId": doc.id} for doc in self._ref().stream()]

    def upsert(self, data: dict) -> str:
        clinic_id = data["id"]
        document = dict(data)
        document["slug"] = document.get("slug") or clinic_id
        document["nameLower"] = document["name"].lower()
        self._ref().document(clinic_id).set(document, merge=True)
        logging.info("Upserted clinic %s", clinic_id)
        return clinic_id

    def delete(self, clinic_id: str):
        self._ref().document(clinic_id).delete()
        logging.info("Deleted clinic %s", clinic_id)

    @staticmethod
    def load_local_file(path: str) -> List[Clinic]:
        if not path or not os.path.exists(path):
            return []
        try:
            with open(path, "r", encoding="utf-8") as f:
                rows = json.load(f)
        except (OSError, ValueError) as e:
            logging.error("Could not read local clinics file %s: %s", path, str(e))
            return []
        if not isinstance(rows, list):
            return []

        clinics = []
        for i, row in enumerate(rows):
            if not isinstance(row, dict):
                continue
            coords = row.get("coords")
            if coords is None and "lat" in row:
                coords = [row.get("lat"), row.get("lng")]
            clinic_id = str(row.get("id") or row.get("slug") or i)
            clinic = Clinic.from_document(clinic_id, {**row, "coords": coords})
            if clinic.coords is not None:
                clinics.append(clinic)
        return clinics
