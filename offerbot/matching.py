"""Matching Engine: tolerance-based offer search over the catalog.

Four-stage funnel, each stage filtering the previous stage's output:

  1. load the full catalog for the offer type
  2. town filter     (partial names match in either direction)
  3. service filter  (skipped when it would leave nothing)
  4. budget filter   (price within ±25% of the stated budget)

Results keep catalog order; there is no relevance ranking beyond the
filters. When nothing survives stage 4, the first town matches are offered
as suggestions instead.
"""

from __future__ import annotations

import logging
import unicodedata
from dataclasses import dataclass, field
from typing import Collection, Optional, Sequence

from listings.schema import Offer, OfferType, PropertyOffer, VehicleOffer
from offerbot.stores.base import InventoryStore

log = logging.getLogger("offerbot.matching")

BUDGET_TOLERANCE = 0.25
MAX_MATCHES = 5
MAX_SUGGESTIONS = 3

FURNISHED_KEYWORDS = ("meublé", "meuble", "furnished")
FURNISHED_CATEGORIES = ("appartements meublés", "studio meublés", "maison meublés")


def normalize(text: Optional[str]) -> str:
    """Lowercase, strip accents and collapse whitespace."""
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    return " ".join(stripped.lower().split())


def budget_window(budget: float) -> tuple[float, float]:
    """Inclusive price window around a budget."""
    return budget * (1 - BUDGET_TOLERANCE), budget * (1 + BUDGET_TOLERANCE)


def within_budget(offer: Offer, budget: Optional[float]) -> bool:
    if not budget or budget <= 0:
        return True
    low, high = budget_window(budget)
    price = offer.price or 0
    return low <= price <= high


def town_matches(offer: Offer, town: str) -> bool:
    """Offer town contained in the user's town, or the reverse.

    Both the French and English location fields are tried; an offer with
    no location never matches.
    """
    wanted = normalize(town)
    if not wanted:
        return False
    for candidate in {normalize(offer.town("fr")), normalize(offer.town("en"))}:
        if candidate and (candidate in wanted or wanted in candidate):
            return True
    return False


def _searchable_fields(offer: Offer) -> list[str]:
    fields = [offer.description, offer.category_fr, offer.category_en]
    if isinstance(offer, VehicleOffer):
        fields += [offer.brand_fr, offer.brand_en, offer.model_fr, offer.model_en, offer.name]
    return [normalize(f) for f in fields if f]


def service_matches(offer: Offer, service: str) -> bool:
    """Service term found in the offer's descriptive fields.

    Property searches for furnished housing also match the furnished
    categories, whatever their description says.
    """
    term = normalize(service)
    if not term:
        return True
    if isinstance(offer, PropertyOffer) and any(normalize(k) in term for k in FURNISHED_KEYWORDS):
        category = normalize(offer.category_fr)
        if any(normalize(c) in category for c in FURNISHED_CATEGORIES):
            return True
    return any(term in text for text in _searchable_fields(offer))


@dataclass
class MatchResult:
    matches: list[Offer] = field(default_factory=list)
    suggestions: list[Offer] = field(default_factory=list)

    # Funnel sizes, for logging and the match API
    catalog_count: int = 0
    town_count: int = 0
    service_count: int = 0
    service_filter_skipped: bool = False

    @property
    def empty(self) -> bool:
        return not self.matches and not self.suggestions


def filter_offers(
    offers: Sequence[Offer],
    town: str,
    service: str,
    budget: Optional[float],
    exclude_ids: Collection[int] = (),
) -> MatchResult:
    """Run stages 2-4 of the funnel over an already-loaded catalog.

    ``exclude_ids`` are dropped from both matches and suggestions; the
    caller passes the last proposal batch only when the user refused it.
    """
    result = MatchResult(catalog_count=len(offers))
    excluded = set(exclude_ids)

    town_set = [o for o in offers if town_matches(o, town)]
    result.town_count = len(town_set)

    service_set = town_set
    if service:
        service_set = [o for o in town_set if service_matches(o, service)]
        if not service_set:
            service_set = town_set
            result.service_filter_skipped = True
    result.service_count = len(service_set)

    budget_set = [o for o in service_set if within_budget(o, budget)]
    matches = [o for o in budget_set if o.id not in excluded]
    result.matches = matches[:MAX_MATCHES]

    if not result.matches:
        result.suggestions = [o for o in town_set if o.id not in excluded][:MAX_SUGGESTIONS]

    return result


class MatchingEngine:
    """Loads the catalog for each search and runs the filter funnel."""

    def __init__(self, inventory: InventoryStore) -> None:
        self._inventory = inventory

    async def match(
        self,
        offer_type: OfferType,
        town: str,
        service: str,
        budget: Optional[float],
        exclude_ids: Collection[int] = (),
    ) -> MatchResult:
        """Search the catalog.

        Raises:
            InventoryUnavailableError: the catalog could not be read.
        """
        offers = await self._inventory.list_offers(offer_type)
        result = filter_offers(offers, town, service, budget, exclude_ids)

        window = budget_window(budget) if budget else None
        log.info(
            "Match %s town=%r service=%r window=%s: catalog=%d town=%d service=%d%s "
            "matches=%d suggestions=%d",
            offer_type.value, town, service, window,
            result.catalog_count, result.town_count, result.service_count,
            " (service filter skipped)" if result.service_filter_skipped else "",
            len(result.matches), len(result.suggestions),
        )
        return result
