# services/schemas.py
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, field_validator

from services.clinic import is_web_url, normalize_hours
from services.geo import normalize_coords


class ClinicInput(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    id: str = Field(min_length=1)
    name: str = Field(min_length=2)
    address: str = Field(min_length=5)
    coords: Tuple[StrictFloat, StrictFloat]
    url: str = ""
    slug: Optional[str] = None
    services: List[str] = []
    languages: List[str] = []
    eligibility: List[str] = []
    hours: Optional[Dict[str, str]] = None
    phone: Optional[str] = None
    summary: Optional[str] = None
    summary_es: Optional[str] = None
    photoUrl: Optional[str] = None
    verified: bool = False

    @field_validator("coords")
    @classmethod
    def coords_in_service_region(cls, value):
        coords = normalize_coords(value)
        if coords is None:
            raise ValueError("coords must be a (lat, lng) pair inside the service region")
        return coords

    @field_validator("url")
    @classmethod
    def http_url_or_blank(cls, value):
        if value and not is_web_url(value):
            raise ValueError("url must be an http(s) URL")
        return value

    @field_validator("services", "languages", "eligibility")
    @classmethod
    def drop_blank_tags(cls, value):
        return [tag.strip() for tag in value if tag and tag.strip()]

    @field_validator("hours")
    @classmethod
    def short_day_keys(cls, value):
        return normalize_hours(value)

    def to_document(self) -> dict:
        document = self.model_dump()
        document["coords"] = list(self.coords)
        return document
