"""
Data models for property requirements, listings and match results.
"""

import re
from enum import Enum
from typing import Any, Optional, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

BUY_MARKERS = ("شراء", "بيع", "buy", "purchase", "sale")
RENT_MARKERS = ("إيجار", "ايجار", "أجار", "اجار", "rent", "lease")


class Purpose(str, Enum):
    BUY = "بيع"
    RENT = "إيجار"


class QualityLabel(str, Enum):
    EXCELLENT = "ممتاز"
    VERY_GOOD = "جيد جداً"
    GOOD = "جيد"
    ACCEPTABLE = "مقبول"
    WEAK = "ضعيف"


def detect_purpose(text: Optional[str]) -> Optional[Purpose]:
    """Buy wins over rent; None when neither marker is present."""
    if not text:
        return None
    lowered = text.lower()
    if any(marker in lowered for marker in BUY_MARKERS):
        return Purpose.BUY
    if any(marker in lowered for marker in RENT_MARKERS):
        return Purpose.RENT
    return None


def canonical_purpose(text: str) -> Purpose:
    """Collapse any purpose wording to BUY or RENT; anything not a sale is a rental."""
    if isinstance(text, Purpose):
        return text
    return Purpose.BUY if detect_purpose(text) == Purpose.BUY else Purpose.RENT


def coerce_number(value: Any) -> Optional[float]:
    """Read numbers such as 900000, "900,000" or "900000 ريال"; None if unreadable."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    match = re.search(r"\d+(?:\.\d+)?", str(value).replace(",", "").replace("٬", ""))
    return float(match.group(0)) if match else None


def flatten_record(data: Any) -> Any:
    # Catalog exports keep the listing fields under "meta"
    if isinstance(data, dict) and isinstance(data.get("meta"), dict):
        merged = dict(data["meta"])
        merged.update({k: v for k, v in data.items() if k != "meta"})
        return merged
    return data


class Requirement(BaseModel):
    """Structured search criteria extracted from one request message."""

    model_config = ConfigDict(frozen=True)

    property_type: Optional[str] = None
    purpose: Optional[Purpose] = None
    price_min: Optional[float] = None
    price_max: Optional[float] = None
    area_min: Optional[float] = None
    area_max: Optional[float] = None
    neighborhoods: Tuple[str, ...] = ()
    contact_number: Optional[str] = None
    sub_category: Optional[str] = None
    client_name: Optional[str] = None
    raw_text: str = ""

    @field_validator("purpose", mode="before")
    @classmethod
    def normalize_purpose(cls, v):
        if v is None or isinstance(v, Purpose):
            return v
        if not str(v).strip():
            return None
        return canonical_purpose(str(v))

    @field_validator("neighborhoods", mode="before")
    @classmethod
    def dedupe_neighborhoods(cls, v):
        if v is None:
            return ()
        return tuple(dict.fromkeys(n for n in v if n))

    @model_validator(mode="after")
    def check_ranges(self):
        for low, high, name in (
            (self.price_min, self.price_max, "price"),
            (self.area_min, self.area_max, "area"),
        ):
            if low is not None and high is not None and low > high:
                raise ValueError(f"{name} range is inverted: {low} > {high}")
        return self

    @property
    def has_price_preference(self) -> bool:
        return self.price_min is not None or self.price_max is not None

    @property
    def has_area_preference(self) -> bool:
        return self.area_min is not None or self.area_max is not None

    @property
    def has_location_preference(self) -> bool:
        return bool(self.neighborhoods)


class Listing(BaseModel):
    """A catalog offer. Unknown fields are ignored."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    property_type: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("property_type", "type", "category", "arc_category", "parent_catt"),
    )
    purpose: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("purpose", "offer_type", "order_type")
    )
    price: Optional[float] = Field(default=None, validation_alias=AliasChoices("price", "price_amount"))
    area: Optional[float] = Field(default=None, validation_alias=AliasChoices("area", "arc_space"))
    neighborhood: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("neighborhood", "location", "district")
    )
    city: Optional[str] = Field(default=None, validation_alias=AliasChoices("city", "City"))
    sub_category: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("sub_category", "sub_catt", "arc_subcategory")
    )

    @model_validator(mode="before")
    @classmethod
    def flatten_meta(cls, data):
        return flatten_record(data)

    @field_validator("price", "area", mode="before")
    @classmethod
    def coerce_numeric(cls, v):
        return coerce_number(v)

    @field_validator("property_type", "purpose", "neighborhood", "city", "sub_category", mode="before")
    @classmethod
    def coerce_text(cls, v):
        if v is None:
            return None
        text = str(v).strip()
        return text or None

    @classmethod
    def from_record(cls, record: Any) -> "Listing":
        if isinstance(record, Listing):
            return record
        return cls.model_validate(record)


class Breakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: int = 0
    purpose: int = 0
    price: int = 0
    area: int = 0
    location: int = 0


class ScoreResult(BaseModel):
    """Explainable outcome of scoring one listing against one requirement."""

    model_config = ConfigDict(frozen=True)

    score: int
    matched: bool
    breakdown: Breakdown
    quality_label: QualityLabel
    reason: Optional[str] = None


class GazetteerEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    canonical: str
    variants: Tuple[str, ...] = ()
    city: Optional[str] = None
