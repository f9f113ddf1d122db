"""Tests for the FastAPI surface: webhook, admin endpoints, match API."""

import time

import pytest
from fastapi.testclient import TestClient

from offerbot import messages
from offerbot.app import create_app
from offerbot.config import Settings
from offerbot.errors import InventoryUnavailableError
from offerbot.nlu.service import SLOTS_SYSTEM
from offerbot.stores.base import InventoryStore

from conftest import FakeNLUClient, FakeSettings, RecordingChannel

USER = "237690000000@c.us"
ADMIN = {"Authorization": "Bearer admin"}


def _wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


@pytest.fixture
def auth_settings(monkeypatch):
    fake = FakeSettings(admin_api_key="admin")
    monkeypatch.setattr("offerbot.auth.settings", fake)
    return fake


@pytest.fixture
def fakes(inventory, sessions, transcripts):
    return {
        "nlu_client": FakeNLUClient(),
        "channel": RecordingChannel(),
        "inventory": inventory,
        "sessions": sessions,
        "transcripts": transcripts,
    }


@pytest.fixture
def client(auth_settings, fakes):
    cfg = Settings(_env_file=None, session_backend="memory")
    with TestClient(create_app(cfg, **fakes)) as c:
        yield c


class TestHealth:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"


class TestLifecycle:
    def test_channel_connected_and_released(self, auth_settings, fakes):
        cfg = Settings(_env_file=None)
        with TestClient(create_app(cfg, **fakes)):
            assert fakes["channel"].connected
        assert not fakes["channel"].connected
        assert fakes["nlu_client"].closed


class TestWebhook:
    def test_inbound_message_gets_a_reply(self, client, fakes):
        fakes["nlu_client"].script(SLOTS_SYSTEM, "{}")
        resp = client.post("/webhook/inbound", json={"sender_id": USER, "text": "Bonjour"})
        assert resp.status_code == 202
        assert resp.json() == {"accepted": True}

        channel = fakes["channel"]
        assert _wait_for(lambda: channel.texts)
        assert channel.sent[0][0] == USER
        assert channel.texts[0] == messages.greeting("fr")

    def test_group_message_ignored(self, client, fakes):
        resp = client.post("/webhook/inbound", json={"sender_id": "1203630000@g.us", "text": "hi"})
        assert resp.status_code == 202
        assert resp.json() == {"accepted": False}

    def test_invalid_kind_rejected(self, client):
        resp = client.post("/webhook/inbound", json={"sender_id": USER, "text": "x", "kind": "sticker"})
        assert resp.status_code == 422

    def test_gateway_token_enforced(self, client, auth_settings):
        auth_settings.gateway_token = "gw"
        resp = client.post("/webhook/inbound", json={"sender_id": USER, "text": "Bonjour"})
        assert resp.status_code == 401
        resp = client.post(
            "/webhook/inbound",
            json={"sender_id": USER, "text": "Bonjour"},
            headers={"Authorization": "Bearer gw"},
        )
        assert resp.status_code == 202


class TestAdminEndpoints:
    def test_requires_token(self, client):
        assert client.get("/api/status").status_code == 401

    def test_status(self, client):
        data = client.get("/api/status", headers=ADMIN).json()
        assert data["status"] == "running"
        assert data["provider"] == "fake"
        assert data["currency"] == "FCFA"
        assert data["active_conversations"] == 0

    def test_session_and_conversation(self, client, fakes):
        assert client.get(f"/api/sessions/{USER}", headers=ADMIN).status_code == 404

        fakes["nlu_client"].script(SLOTS_SYSTEM, '{"town": "Douala"}')
        client.post("/webhook/inbound", json={"sender_id": USER, "text": "Bonjour, à Douala"})
        assert _wait_for(lambda: fakes["channel"].texts)

        session = client.get(f"/api/sessions/{USER}", headers=ADMIN).json()
        assert session["town"] == "Douala"
        assert session["status"] == "collecting"

        history = client.get(f"/api/conversations/{USER}", headers=ADMIN).json()["history"]
        assert history[0] == {"role": "user", "content": "Bonjour, à Douala"}

        assert client.delete(f"/api/conversations/{USER}", headers=ADMIN).json()["cleared"] is True
        assert client.delete(f"/api/conversations/{USER}", headers=ADMIN).status_code == 404

    def test_reset_all(self, client, fakes):
        fakes["nlu_client"].script(SLOTS_SYSTEM, "{}")
        client.post("/webhook/inbound", json={"sender_id": USER, "text": "Bonjour"})
        assert _wait_for(lambda: fakes["channel"].texts)

        data = client.delete("/api/sessions", headers=ADMIN).json()
        assert data == {"sessions_deleted": 1, "transcripts_cleared": 1}
        assert client.get(f"/api/sessions/{USER}", headers=ADMIN).status_code == 404


class TestMatchEndpoint:
    def test_match(self, client):
        resp = client.post("/api/match", headers=ADMIN, json={
            "offer_type": "property", "town": "Douala", "service": "villa", "budget": 50000,
        })
        assert resp.status_code == 200
        data = resp.json()
        assert data["window"] == [37500, 62500]
        assert [o["id"] for o in data["matches"]] == [101, 102]
        assert data["suggestions"] == []

    @pytest.mark.parametrize("missing", ["offer_type", "town", "service", "budget"])
    def test_missing_field_is_422(self, client, missing):
        body = {"offer_type": "property", "town": "Douala", "service": "villa", "budget": 50000}
        del body[missing]
        assert client.post("/api/match", headers=ADMIN, json=body).status_code == 422

    def test_catalog_unavailable_is_503(self, auth_settings, fakes):
        class BrokenInventory(InventoryStore):
            async def list_offers(self, offer_type):
                raise InventoryUnavailableError("down")

        fakes["inventory"] = BrokenInventory()
        with TestClient(create_app(Settings(_env_file=None), **fakes)) as c:
            resp = c.post("/api/match", headers=ADMIN, json={
                "offer_type": "vehicle", "town": "Douala", "service": "suv", "budget": 1000,
            })
        assert resp.status_code == 503
