"""Dialogue Controller: drives one user's conversation, one turn at a time.

Each inbound message runs the per-turn algorithm:

  1. NLU slot extraction, merged additively into the session
  2. greeting, when the sender is new
  3. refusal / selection classification against the last proposal batch
  4. on selection: snapshot the offer, derive rental vs purchase and open
     the contact sub-dialogue
  5. in the contact sub-dialogue: merge contact fields, ask the next one
     or close with a summary
  6. with every slot known: search the catalog and send the results
  7. otherwise: ask (via the NLU) for what is still missing

Session changes are written field by field as soon as they are known, and
every merge is additive, so a failure part-way through a turn leaves only
"not yet learned" state. Any such failure is answered with one fixed
apology.

States:
  COLLECTING ──(offer selected)──> COLLECTING_CONTACT ──(contact complete)──> READY
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

from listings.schema import Offer
from offerbot import messages
from offerbot.channels.base import InboundEvent, MessagingChannel
from offerbot.classification import OfferClassifier, request_kind_for
from offerbot.contact import next_missing_field, phone_from_sender
from offerbot.errors import ChannelError
from offerbot.matching import MatchingEngine, within_budget
from offerbot.models.session import (
    OfferSnapshot,
    RequestKind,
    Session,
    SessionStatus,
)
from offerbot.nlu.service import NLUService
from offerbot.stores.base import InventoryStore, SessionStore, TranscriptStore

log = logging.getLogger("offerbot.dialogue")


def redact_pii(value: str) -> str:
    """Mask PII for logging: show first 3 and last 2 chars only."""
    if not value or len(value) <= 5:
        return "***"
    return value[:3] + "***" + value[-2:]


class DialogueController:
    """The per-user dialogue state machine.

    Collaborators are injected; the controller holds no per-user state of
    its own between turns.
    """

    def __init__(
        self,
        sessions: SessionStore,
        inventory: InventoryStore,
        transcripts: TranscriptStore,
        nlu: NLUService,
        classifier: OfferClassifier,
        engine: MatchingEngine,
        channel: MessagingChannel,
        catalog_base_url: str = "https://nimmo-auto.com",
        history_limit: int = 20,
        default_language: str = "fr",
    ) -> None:
        self._sessions = sessions
        self._inventory = inventory
        self._transcripts = transcripts
        self._nlu = nlu
        self._classifier = classifier
        self._engine = engine
        self._channel = channel
        self._base_url = catalog_base_url
        self._history_limit = history_limit
        self._default_language = default_language

    def _lang(self, session: Optional[Session]) -> str:
        if session is None:
            return self._default_language
        return session.reply_language(self._default_language)

    # ── Entry point ──────────────────────────────────────────

    async def handle(self, event: InboundEvent) -> None:
        """Run one turn. Never raises: failures become the fixed apology."""
        try:
            await self._turn(event)
        except Exception:
            log.exception("Turn failed for %s", redact_pii(event.sender_id))
            try:
                await self._channel.send_text(event.sender_id, messages.APOLOGY)
            except Exception:
                log.exception("Could not send apology to %s", redact_pii(event.sender_id))

    async def _turn(self, event: InboundEvent) -> None:
        user_id = event.sender_id
        text = event.text.strip()
        session = await self._sessions.find(user_id)

        if not text:
            if event.is_voice:
                log.info("Untranscribed voice note from %s", redact_pii(user_id))
                await self._send(user_id, messages.voice_failure(self._lang(session)))
            else:
                log.debug("Empty message from %s ignored", redact_pii(user_id))
            return

        is_new = session is None
        if session is None:
            session = await self._sessions.create(Session(user_id=user_id))
            log.info("New session for %s", redact_pii(user_id))

        history = await self._transcripts.recent(user_id, self._history_limit)
        await self._transcripts.append(user_id, "user", text)

        # 1. Slots
        extraction = await self._nlu.extract_slots(text, history)
        changed = session.merge_slots(extraction)
        if changed:
            session = await self._sessions.update(user_id, session.fields(*changed))
            log.info("Slots updated for %s: %s", redact_pii(user_id), ", ".join(changed))
        lang = self._lang(session)

        # 2. Greeting
        if is_new:
            await self._send(user_id, messages.greeting(lang))

        # 3. Reaction to the last proposal batch; a selection wins over a refusal
        refused = False
        proposed = session.last_proposed_offer_ids
        if proposed and session.status != SessionStatus.COLLECTING_CONTACT:
            refused = await self._classifier.is_refusal(text)
            if refused:
                log.info("Refusal of %d proposed offers from %s", len(proposed), redact_pii(user_id))
            selection = await self._classifier.select(
                text, len(proposed), event.quoted, refused=refused,
            )
            if selection.selected:
                offer_id = proposed[selection.index]
                log.info(
                    "Offer %d selected by %s (%s)",
                    offer_id, redact_pii(user_id), selection.source.value,
                )
                # 4. Selection
                if await self._select_offer(session, offer_id):
                    return

        # 5. Contact sub-dialogue
        if session.status == SessionStatus.COLLECTING_CONTACT:
            await self._collect_contact(session, text)
            return

        # 6. Search
        if session.slots_complete:
            await self._search(session, exclude=proposed if refused else ())
            return

        # 7. Ask for what is missing (not on the greeting turn)
        if not is_new:
            await self._ask_missing(session, history, text)

    # ── Steps ────────────────────────────────────────────────

    async def _select_offer(self, session: Session, offer_id: int) -> bool:
        """Record the selection and open the contact sub-dialogue.

        Returns False when the offer is no longer in the catalog, in which
        case the turn carries on as if nothing was selected.
        """
        user_id = session.user_id
        lang = self._lang(session)
        offer = await self._inventory.get_offer(session.offer_type, offer_id)
        if offer is None:
            log.warning("Selected offer %d is no longer in the catalog", offer_id)
            return False

        snapshot = OfferSnapshot.from_offer(offer, session.offer_type, lang)
        kind = request_kind_for(offer.category_fr, offer.description, session.service)

        contact = session.contact_info.model_copy()
        contact.phone = phone_from_sender(user_id)
        next_field = next_missing_field(contact, kind)
        status = SessionStatus.COLLECTING_CONTACT if next_field else SessionStatus.READY

        await self._sessions.update(user_id, {
            "selected_offer_id": offer.id,
            "selected_offer_snapshot": snapshot,
            "request_kind": kind,
            "contact_info": contact,
            "status": status,
        })
        log.info(
            "%s -> %s (%s request)", redact_pii(user_id), status.value, kind.value,
        )

        await self._send(user_id, messages.selection_confirmation(snapshot, contact.phone, lang))
        if next_field is not None:
            await self._send(user_id, messages.contact_question(next_field, lang))
        else:
            await self._send(user_id, messages.contact_summary(contact, kind, lang))
        return True

    async def _collect_contact(self, session: Session, text: str) -> None:
        user_id = session.user_id
        lang = self._lang(session)
        rental = session.request_kind == RequestKind.RENTAL

        extraction = await self._nlu.extract_contact(text, lang, rental)
        contact = session.contact_info.model_copy()
        changed = contact.merge(extraction)
        contact.phone = phone_from_sender(user_id)
        session = await self._sessions.update(user_id, {"contact_info": contact})
        if changed:
            log.info("Contact fields from %s: %s", redact_pii(user_id), ", ".join(changed))

        next_field = next_missing_field(contact, session.request_kind)
        if next_field is None:
            await self._sessions.update(user_id, {"status": SessionStatus.READY})
            log.info("%s -> ready", redact_pii(user_id))
            await self._send(user_id, messages.contact_summary(contact, session.request_kind, lang))
        else:
            await self._send(user_id, messages.contact_question(next_field, lang))

    async def _search(self, session: Session, exclude: Sequence[int] = ()) -> None:
        user_id = session.user_id
        lang = self._lang(session)
        service, town, budget = session.service or "", session.town or "", session.budget

        result = await self._engine.match(session.offer_type, town, service, budget, exclude)

        if result.matches:
            await self._propose(user_id, [o.id for o in result.matches])
            await self._send(user_id, messages.search_intro(service, town, budget, lang))
            for offer in result.matches:
                await self._send_offer(user_id, offer, lang)
            await self._send(user_id, messages.closing_prompt(lang))
            return

        suggestions = [o for o in result.suggestions if within_budget(o, budget)]
        await self._propose(user_id, [o.id for o in suggestions])
        if suggestions:
            await self._send(user_id, messages.suggestions_message(suggestions, self._base_url, lang))
        else:
            await self._send(user_id, messages.no_results(service, town, budget, lang))

    async def _propose(self, user_id: str, offer_ids: list[int]) -> None:
        await self._sessions.update(user_id, {"last_proposed_offer_ids": offer_ids})

    async def _ask_missing(self, session: Session, history: list[dict[str, str]], text: str) -> None:
        lang = self._lang(session)
        labels = messages.slot_labels(session.missing_slots(), lang)
        context = history + [{"role": "user", "content": text}]
        reply = await self._nlu.ask_for_missing(labels, lang, context)
        await self._send(session.user_id, reply.strip())

    # ── Outbound ─────────────────────────────────────────────

    async def _send(self, user_id: str, text: str) -> None:
        await self._channel.send_text(user_id, text)
        await self._transcripts.append(user_id, "assistant", text)

    async def _send_offer(self, user_id: str, offer: Offer, lang: str) -> None:
        """One offer card, with its picture when there is one.

        A failed media send falls back to text; a failed text send is
        logged and the rest of the batch still goes out.
        """
        card = messages.offer_card(offer, self._base_url, lang)
        url = messages.media_url(self._base_url, offer.primary_image)
        if url:
            try:
                await self._channel.send_media(user_id, url, card)
                await self._transcripts.append(user_id, "assistant", card)
                return
            except ChannelError as exc:
                log.warning("Media for offer %d failed, sending text only: %s", offer.id, exc)
        try:
            await self._send(user_id, card)
        except ChannelError as exc:
            log.warning("Offer %d could not be sent, continuing batch: %s", offer.id, exc)

    # ── Inspection ───────────────────────────────────────────

    async def snapshot(self, user_id: str) -> Optional[dict[str, Any]]:
        """Session state as JSON-ready data, for the admin API."""
        session = await self._sessions.find(user_id)
        return session.model_dump(mode="json") if session else None
