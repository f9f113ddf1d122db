"""Pydantic models for catalog offers (vehicles and properties).

The catalog is ingested from the upstream marketplace API whose payloads use
French field names (``CategorieFr``, ``prix``, ``localisationFr``, ...). The
models keep those names as aliases so upstream records validate as-is, while
the code works with English attribute names.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class OfferType(str, Enum):
    VEHICLE = "vehicle"
    PROPERTY = "property"


class BaseOffer(BaseModel):
    """Fields shared by every catalog offer. Read-only to the dialogue engine."""

    model_config = ConfigDict(
        populate_by_name=True, frozen=True, extra="ignore", protected_namespaces=()
    )

    id: int
    category_fr: str = Field(default="", alias="CategorieFr")
    category_en: str = Field(default="", alias="CategorieEn")
    name: str = Field(default="", alias="nom")
    price: Optional[float] = Field(default=None, alias="prix")
    description: str = ""
    image1: Optional[str] = None
    image2: Optional[str] = None
    image3: Optional[str] = None
    image4: Optional[str] = None
    image5: Optional[str] = None
    fetched_at: Optional[datetime] = Field(default=None, alias="fetchedAt")

    @property
    def images(self) -> list[str]:
        """Non-empty media references, in upload order."""
        refs = [self.image1, self.image2, self.image3, self.image4, self.image5]
        return [r for r in refs if r]

    @property
    def primary_image(self) -> str | None:
        images = self.images
        return images[0] if images else None

    def category(self, language: str = "fr") -> str:
        if language == "en":
            return self.category_en or self.category_fr
        return self.category_fr or self.category_en

    # Overridden per variant
    def town(self, language: str = "fr") -> str:
        return ""

    def display_name(self, language: str = "fr") -> str:
        return self.name or self.category(language)


class PropertyOffer(BaseOffer):
    """Real estate offer: house, apartment, studio, land..."""

    kind: Literal["property"] = "property"
    location_fr: str = Field(default="", alias="localisationFr")
    location_en: str = Field(default="", alias="localisationEn")
    area: Optional[float] = Field(default=None, alias="superficie")
    seats: Optional[int] = Field(default=0, alias="placeassise")
    bedrooms: Optional[int] = Field(default=None, alias="chambre")
    bathrooms: Optional[int] = Field(default=0, alias="douche")

    def town(self, language: str = "fr") -> str:
        if language == "en":
            return self.location_en or self.location_fr
        return self.location_fr or self.location_en


class VehicleOffer(BaseOffer):
    """Vehicle offer: sale or rental."""

    kind: Literal["vehicle"] = "vehicle"
    model_fr: str = Field(default="", alias="modeleFr")
    model_en: str = Field(default="", alias="modeleEn")
    brand_fr: str = Field(default="", alias="marqueFr")
    brand_en: str = Field(default="", alias="marqueEn")
    city_fr: str = Field(default="", alias="villeFr")
    city_en: str = Field(default="", alias="villeEn")
    year: Optional[int] = Field(default=None, alias="annee")
    mileage: Optional[int] = Field(default=None, alias="kilometrage")

    def town(self, language: str = "fr") -> str:
        if language == "en":
            return self.city_en or self.city_fr
        return self.city_fr or self.city_en

    def brand(self, language: str = "fr") -> str:
        if language == "en":
            return self.brand_en or self.brand_fr
        return self.brand_fr or self.brand_en

    def model(self, language: str = "fr") -> str:
        if language == "en":
            return self.model_en or self.model_fr
        return self.model_fr or self.model_en

    def display_name(self, language: str = "fr") -> str:
        return self.name or self.model(language) or self.category(language)


Offer = Union[VehicleOffer, PropertyOffer]

OFFER_MODELS: dict[OfferType, type[BaseOffer]] = {
    OfferType.VEHICLE: VehicleOffer,
    OfferType.PROPERTY: PropertyOffer,
}

CATALOG_FILES: dict[OfferType, str] = {
    OfferType.VEHICLE: "vehicles.json",
    OfferType.PROPERTY: "properties.json",
}


def parse_offer(offer_type: OfferType, data: dict) -> Offer:
    """Validate one catalog record into the model for its offer type."""
    return OFFER_MODELS[offer_type].model_validate(data)  # type: ignore[return-value]
