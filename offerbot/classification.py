"""Two-tier classification of user replies to a proposal batch.

Tier one is a deterministic keyword heuristic expressed as rule tables; tier
two is the NLU. The heuristic decides whether an NLU selection call is worth
making at all and short-circuits the single-offer case.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

from offerbot.models.session import RequestKind
from offerbot.nlu.service import SELECTION_FAILED, NLUService

log = logging.getLogger("offerbot.classification")


@dataclass(frozen=True)
class KeywordRule:
    """One named phrase pattern, matched case-insensitively on word boundaries."""

    label: str
    pattern: str

    def matches(self, text: str) -> bool:
        return re.search(rf"(?<!\w)(?:{self.pattern})(?!\w)", text, re.IGNORECASE) is not None


# Phrases that show interest in a proposed offer
SELECTION_RULES: tuple[KeywordRule, ...] = (
    KeywordRule("this_one", r"cel(?:le|ui)[\s-]?(?:ci|là|la)"),
    KeywordRule("this_one", r"(?:this|that) one"),
    KeywordRule("this_one", r"this|that"),
    KeywordRule("want", r"je veux|i want|i'd like|je voudrais"),
    KeywordRule("take", r"je (?:le |la )?prends|i(?:'ll)? take"),
    KeywordRule("choose", r"je (?:le |la )?choisis|i choose|je sélectionne|je selectionne|i select"),
    KeywordRule("assent", r"ok|okay|d'accord|alright|yes|oui"),
    KeywordRule("positive", r"parfait|perfect|super|great|intéressé|interessé|interested"),
)

# Terms in a service slot or an offer's category/description that mark a rental
RENTAL_RULES: tuple[KeywordRule, ...] = (
    KeywordRule("location", r"location"),
    KeywordRule("louer", r"louer|à louer|a louer"),
    KeywordRule("rent", r"rent|rental|for rent"),
)


class SelectionSource(str, Enum):
    NONE = "none"            # heuristic saw no interest, NLU not called
    HEURISTIC = "heuristic"  # single offer + keyword hit, NLU not called
    NLU = "nlu"              # NLU named an option (or explicitly none)
    FALLBACK = "fallback"    # NLU reply unusable, last option assumed


@dataclass(frozen=True)
class Selection:
    index: Optional[int]
    source: SelectionSource

    @property
    def selected(self) -> bool:
        return self.index is not None


def matched_rules(text: str, rules: Sequence[KeywordRule]) -> list[str]:
    """Labels of the rules the text hits, in table order (deduplicated)."""
    labels: list[str] = []
    for rule in rules:
        if rule.label not in labels and rule.matches(text):
            labels.append(rule.label)
    return labels


def is_rental(*texts: Optional[str]) -> bool:
    """True if any of the texts contains a rental-indicating term."""
    return any(text and matched_rules(text, RENTAL_RULES) for text in texts)


def request_kind_for(*texts: Optional[str]) -> RequestKind:
    return RequestKind.RENTAL if is_rental(*texts) else RequestKind.PURCHASE


class OfferClassifier:
    """Refusal and selection classification behind one interface."""

    def __init__(
        self,
        nlu: NLUService,
        rules: Sequence[KeywordRule] = SELECTION_RULES,
        fallback_to_last: bool = True,
    ) -> None:
        self._nlu = nlu
        self._rules = tuple(rules)
        self._fallback_to_last = fallback_to_last

    async def is_refusal(self, text: str) -> bool:
        return await self._nlu.is_refusal(text)

    def shows_interest(self, text: str, quoted: bool = False) -> bool:
        """Heuristic tier: is an NLU selection call worth making?"""
        return quoted or bool(matched_rules(text, self._rules))

    async def select(
        self, text: str, count: int, quoted: bool = False, refused: bool = False,
    ) -> Selection:
        """Which of ``count`` proposed offers (if any) does the user pick?

        When the same message was read as a refusal, only an explicit NLU
        answer counts: the single-offer shortcut and the last-option
        fallback are skipped.
        """
        if count <= 0 or not self.shows_interest(text, quoted):
            return Selection(None, SelectionSource.NONE)

        if count == 1 and not refused:
            log.info("Single proposed offer + interest keyword, selecting it")
            return Selection(0, SelectionSource.HEURISTIC)

        result = await self._nlu.pick_offer(text, count)
        if result is SELECTION_FAILED:
            if self._fallback_to_last and not refused:
                log.info("Selection unreadable, falling back to last option (%d)", count)
                return Selection(count - 1, SelectionSource.FALLBACK)
            return Selection(None, SelectionSource.FALLBACK)
        return Selection(result, SelectionSource.NLU)  # type: ignore[arg-type]
