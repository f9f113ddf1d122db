"""Shared fakes and fixtures: a scripted NLU backend, a recording channel, offers."""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest

from listings.schema import OfferType, PropertyOffer, VehicleOffer
from offerbot.channels.base import MessagingChannel
from offerbot.classification import OfferClassifier
from offerbot.dialogue import DialogueController
from offerbot.errors import ChannelError, NLUError
from offerbot.matching import MatchingEngine
from offerbot.nlu.base import NLUClient
from offerbot.nlu.service import NLUService
from offerbot.stores.memory import (
    InMemoryInventoryStore,
    InMemorySessionStore,
    InMemoryTranscriptStore,
)


# ── Fakes ──────────────────────────────────────────────────────────

class FakeNLUClient(NLUClient):
    """Replies scripted per system prompt.

    Replies for one system prompt are consumed in order; the last one keeps
    being returned. An Exception instance in the script is raised instead.
    A task with no script raises NLUError.
    """

    name = "fake"

    def __init__(self):
        self.scripts: dict[str, list] = {}
        self.calls: list[tuple[str, str]] = []
        self.closed = False

    def script(self, system: str, *replies) -> None:
        self.scripts.setdefault(system, []).extend(replies)

    def calls_for(self, system: str) -> list[str]:
        return [prompt for s, prompt in self.calls if s == system]

    async def complete(self, system, prompt, *, max_tokens=200, temperature=0.2):
        self.calls.append((system, prompt))
        queue = self.scripts.get(system)
        if not queue:
            raise NLUError("no scripted reply")
        reply = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def aclose(self):
        self.closed = True


class RecordingChannel(MessagingChannel):
    """Records every send. Media sends can be made to fail."""

    def __init__(self, fail_media: bool = False, fail_text_with: str | None = None):
        super().__init__()
        self.fail_media = fail_media
        self.fail_text_with = fail_text_with
        self.sent: list[tuple[str, str, str | None]] = []  # (recipient, text, media_url)
        self.connected = False

    async def connect(self):
        self.connected = True

    async def send_text(self, recipient, text):
        if self.fail_text_with and self.fail_text_with in text:
            raise ChannelError("text send failed")
        self.sent.append((recipient, text, None))

    async def send_media(self, recipient, media_url, caption=""):
        if self.fail_media:
            raise ChannelError("media download failed")
        self.sent.append((recipient, caption, media_url))

    async def shutdown(self):
        self.connected = False

    @property
    def texts(self) -> list[str]:
        return [text for _, text, _ in self.sent]

    @property
    def media(self) -> list[str]:
        return [url for _, _, url in self.sent if url]


class FakeSettings:
    """Stand-in for the settings object the auth guards read."""

    def __init__(self, admin_api_key="", debug=False, gateway_token=""):
        self.admin_api_key = admin_api_key
        self.debug = debug
        self.gateway_token = gateway_token


# ── Offer builders ─────────────────────────────────────────────────

def make_property(id, town="Douala", price=50000, category="Villas", description="", name=None, image=None):
    return PropertyOffer(
        id=id,
        category_fr=category,
        category_en=category,
        name=name if name is not None else f"Offre {id}",
        price=price,
        location_fr=town,
        location_en=town,
        chambre=3,
        douche=2,
        superficie=200,
        description=description,
        image1=image,
    )


def make_vehicle(id, town="Douala", price=60000, category="SUV", brand="Toyota", model="RAV4", description="", image=None):
    return VehicleOffer(
        id=id,
        category_fr=category,
        category_en=category,
        name=f"{brand} {model}",
        price=price,
        city_fr=town,
        city_en=town,
        brand_fr=brand,
        brand_en=brand,
        model_fr=model,
        model_en=model,
        year=2018,
        mileage=80000,
        description=description,
        image1=image,
    )


# ── Fixtures ───────────────────────────────────────────────────────

@pytest.fixture
def nlu_client():
    return FakeNLUClient()


@pytest.fixture
def channel():
    return RecordingChannel()


@pytest.fixture
def sessions():
    return InMemorySessionStore()


@pytest.fixture
def transcripts():
    return InMemoryTranscriptStore()


@pytest.fixture
def property_offers():
    return [
        make_property(101, "Douala", 45000, "Villas", "Belle villa avec jardin", image="villa-101.jpg"),
        make_property(102, "Douala", 60000, "Villas", "Villa moderne"),
        make_property(103, "Douala", 62500, "Appartements meublés", "Appartement en location"),
        make_property(104, "Yaoundé", 50000, "Villas", "Villa à Bastos"),
        make_property(105, "Douala", 200000, "Villas", "Grande villa"),
        make_property(106, "Douala", 37500, "Studio meublés", "Studio climatisé"),
    ]


@pytest.fixture
def vehicle_offers():
    return [
        make_vehicle(201, "Douala", 60000, "Véhicules en location", "Toyota", "Prado", "Location avec chauffeur"),
        make_vehicle(202, "Douala", 14500000, "SUV", "Toyota", "RAV4", "SUV automatique"),
        make_vehicle(203, "Yaoundé", 7800000, "Berline", "Toyota", "Corolla", "Berline économique"),
    ]


@pytest.fixture
def inventory(property_offers, vehicle_offers):
    return InMemoryInventoryStore({
        OfferType.PROPERTY: property_offers,
        OfferType.VEHICLE: vehicle_offers,
    })


@pytest.fixture
def make_controller(sessions, transcripts, inventory, channel, nlu_client):
    """Build a DialogueController over the fixtures; keyword args override."""

    def _make(fallback_to_last=True, **overrides):
        nlu = NLUService(nlu_client)
        deps = dict(
            sessions=sessions,
            inventory=inventory,
            transcripts=transcripts,
            nlu=nlu,
            classifier=OfferClassifier(nlu, fallback_to_last=fallback_to_last),
            engine=MatchingEngine(overrides.get("inventory", inventory)),
            channel=channel,
            catalog_base_url="https://nimmo-auto.com",
        )
        deps.update(overrides)
        return DialogueController(**deps)

    return _make
