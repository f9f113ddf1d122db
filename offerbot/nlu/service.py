"""NLUService: the prompts behind every NLU call the dialogue makes.

Each task has its own system prompt. Structured tasks (slots, contact,
classification) degrade to "no new information" on any failure; only the
reply-generation task lets the failure propagate, since the turn has nothing
to send without it.
"""

from __future__ import annotations

import logging
from typing import Sequence

from pydantic import ValidationError

from offerbot.errors import NLUError
from offerbot.models.session import ContactExtraction, SlotExtraction
from offerbot.nlu.base import NLUClient
from offerbot.nlu.parsing import (
    decode_contact,
    decode_slots,
    parse_option_index,
    parse_yes_no,
)

log = logging.getLogger("offerbot.nlu.service")

# Sentinel for a selection reply that could not be read
SELECTION_FAILED = object()

SLOTS_SYSTEM = "You extract structured search criteria from a chat conversation. Reply with JSON only."
REFUSAL_SYSTEM = "You classify chat messages. Reply with a single word: yes or no."
SELECTION_SYSTEM = "You classify which proposed option a chat message refers to. Reply with a number or 'none'."
CONTACT_SYSTEM = "You extract contact details from a chat message. Reply with JSON only."
REPLY_SYSTEM = (
    "You are a friendly WhatsApp assistant for a vehicle and real estate "
    "marketplace. Keep messages short and natural."
)

_LANGUAGE_NAMES = {"fr": "French", "en": "English"}


def format_history(history: Sequence[dict[str, str]]) -> str:
    """Render transcript turns as ``User:`` / ``Bot:`` lines."""
    lines = []
    for turn in history:
        speaker = "User" if turn.get("role") == "user" else "Bot"
        lines.append(f"{speaker}: {turn.get('content', '')}")
    return "\n".join(lines)


class NLUService:
    """Composes prompts for each dialogue task and decodes the replies."""

    def __init__(
        self,
        client: NLUClient,
        extract_temperature: float = 0.2,
        reply_temperature: float = 0.7,
    ) -> None:
        self._client = client
        self._extract_temperature = extract_temperature
        self._reply_temperature = reply_temperature

    @property
    def provider(self) -> str:
        return self._client.name

    # ── Structured extraction ─────────────────────────────────

    async def extract_slots(
        self, message: str, history: Sequence[dict[str, str]] = (),
    ) -> SlotExtraction:
        """Read service/town/budget/type/language from the message and recent history."""
        prompt = (
            "Extract the user's search intent from this WhatsApp conversation.\n\n"
            f"Conversation:\n{format_history(history)}\nUser: {message}\n\n"
            "Return a JSON object with these keys (use null when unknown):\n"
            "{\n"
            '  "service": string | null,   // product or service wanted (villa, studio, SUV, ...)\n'
            '  "town": string | null,      // town or city of interest\n'
            '  "budget": number | null,    // budget in FCFA\n'
            '  "type": "vehicle" | "property" | null,\n'
            '  "language": "fr" | "en" | null\n'
            "}"
        )
        try:
            reply = await self._client.complete(
                SLOTS_SYSTEM, prompt, max_tokens=200, temperature=self._extract_temperature,
            )
            return decode_slots(reply)
        except (NLUError, ValidationError, ValueError) as exc:
            log.warning("Slot extraction degraded to null: %s", exc)
            return SlotExtraction()

    async def extract_contact(
        self, message: str, language: str, rental: bool,
    ) -> ContactExtraction:
        """Read contact fields from one free-text answer."""
        keys = [
            '  "first_name": string | null',
            '  "last_name": string | null',
            '  "current_city": string | null',
        ]
        if rental:
            keys += [
                '  "email": string | null',
                '  "number_of_days": number | null',
                '  "start_date": string | null   // DD/MM/YYYY',
            ]
        prompt = (
            "Extract the contact details present in this WhatsApp message. "
            "When a full name is given, the family name comes first: "
            '"Bahanack Georges" -> last_name "Bahanack", first_name "Georges". '
            "A lone city name is the current city.\n\n"
            f'Message: "{message}"\n'
            f"Language: {language}\n\n"
            "Return a JSON object (null for anything not present):\n"
            "{\n" + ",\n".join(keys) + "\n}"
        )
        try:
            reply = await self._client.complete(
                CONTACT_SYSTEM, prompt, max_tokens=150, temperature=self._extract_temperature,
            )
            return decode_contact(reply)
        except (NLUError, ValidationError, ValueError) as exc:
            log.warning("Contact extraction degraded to null: %s", exc)
            return ContactExtraction()

    # ── Classification ────────────────────────────────────────

    async def is_refusal(self, message: str) -> bool:
        """Does the message reject the last proposal or ask for alternatives?"""
        prompt = (
            "The user was just shown some offers. Does this message refuse them, "
            "say they are not interesting, or ask for other options? "
            "Answer only yes or no.\n\n"
            f"Message: {message}"
        )
        try:
            reply = await self._client.complete(
                REFUSAL_SYSTEM, prompt, max_tokens=5, temperature=0.0,
            )
        except NLUError as exc:
            log.warning("Refusal classification failed, assuming no: %s", exc)
            return False
        return parse_yes_no(reply) is True

    async def pick_offer(self, message: str, count: int) -> int | None | object:
        """Which of ``count`` proposed offers does the message select?

        Returns a 0-based index, None when the user picked nothing, or
        SELECTION_FAILED when the reply could not be obtained or read.
        """
        prompt = (
            f"The user was shown {count} numbered options and replied to them. "
            "Expressions such as 'je veux celui-ci', 'this one', 'je prends', "
            "'ok', 'parfait' show interest in an option.\n\n"
            f'Message: "{message}"\n'
            f"Number of options: {count}\n\n"
            "If the user picks an option, reply with its number (1 to "
            f"{count}). Otherwise reply 'none'."
        )
        try:
            reply = await self._client.complete(
                SELECTION_SYSTEM, prompt, max_tokens=5, temperature=0.0,
            )
            return parse_option_index(reply, count)
        except (NLUError, ValueError) as exc:
            log.warning("Offer selection unreadable: %s", exc)
            return SELECTION_FAILED

    # ── Reply generation ──────────────────────────────────────

    async def ask_for_missing(
        self,
        missing: Sequence[str],
        language: str,
        history: Sequence[dict[str, str]] = (),
    ) -> str:
        """Write one conversational message asking for the missing criteria.

        Raises:
            NLUError: generation failed; the turn cannot continue.
        """
        language_name = _LANGUAGE_NAMES.get(language, "French")
        context = format_history(history)
        prompt = (
            "The user is looking for a vehicle or a property, but you still need: "
            f"{', '.join(missing)}. Write a short, friendly message asking for this. "
            "Do not fire a list of questions; ask naturally and build on the "
            "conversation so far. Do not open with a greeting. "
            f"Reply in {language_name}."
        )
        if context:
            prompt += f"\n\nConversation so far:\n{context}"
        return await self._client.complete(
            REPLY_SYSTEM, prompt, max_tokens=200, temperature=self._reply_temperature,
        )
