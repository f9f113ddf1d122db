"""Tests for the marketplace catalog ingestion."""

import json
from datetime import datetime, timezone

import httpx
import pytest

from listings import ingest
from listings.ingest import ingest_catalog, load_catalog, merge_new_offers, save_catalog
from listings.schema import OfferType, PropertyOffer

UPSTREAM = "http://upstream.test/api/v1/produits"
STAMP = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def _property(id, **extra):
    record = {
        "id": id,
        "CategorieFr": "Villas",
        "CategorieEn": "Villas",
        "nom": f"Villa {id}",
        "prix": 50000,
        "localisationFr": "Douala",
        "localisationEn": "Douala",
    }
    record.update(extra)
    return record


# ── Merging ────────────────────────────────────────────────────────


class TestMergeNewOffers:
    def test_only_unseen_ids_are_added(self):
        existing = [_property(1, nom="kept as is")]
        fetched = [_property(1, nom="changed upstream"), _property(2)]

        merged, added = merge_new_offers(existing, fetched, OfferType.PROPERTY, STAMP)

        assert added == 1
        assert [r["id"] for r in merged] == [1, 2]
        assert merged[0]["nom"] == "kept as is"

    def test_new_records_are_stamped(self):
        merged, _ = merge_new_offers([], [_property(5)], OfferType.PROPERTY, STAMP)
        assert merged[0]["fetchedAt"] == STAMP.isoformat()

    def test_missing_fields_get_defaults(self):
        merged, _ = merge_new_offers([], [_property(5, douche=None)], OfferType.PROPERTY, STAMP)
        assert merged[0]["douche"] == 0
        assert merged[0]["placeassise"] == 0

    def test_vehicle_year_defaults_to_none(self):
        vehicle = {"id": 9, "nom": "RAV4", "prix": 100, "villeFr": "Douala"}
        merged, added = merge_new_offers([], [vehicle], OfferType.VEHICLE, STAMP)
        assert added == 1
        assert merged[0]["annee"] is None

    def test_invalid_and_idless_records_skipped(self):
        fetched = [{"nom": "no id"}, _property("not-a-number"), _property(3)]
        merged, added = merge_new_offers([], fetched, OfferType.PROPERTY, STAMP)
        assert added == 1
        assert [r["id"] for r in merged] == [3]

    def test_duplicate_ids_in_one_fetch(self):
        merged, added = merge_new_offers([], [_property(4), _property(4)], OfferType.PROPERTY, STAMP)
        assert added == 1
        assert len(merged) == 1

    def test_input_lists_not_mutated(self):
        existing = [_property(1)]
        fetched = [_property(2)]
        merge_new_offers(existing, fetched, OfferType.PROPERTY, STAMP)
        assert len(existing) == 1
        assert "fetchedAt" not in fetched[0]


# ── Catalog files ──────────────────────────────────────────────────


class TestCatalogFiles:
    def test_missing_file_is_empty(self, tmp_path):
        assert load_catalog(tmp_path / "absent.json") == []

    def test_save_then_load_keeps_accents(self, tmp_path):
        path = tmp_path / "nested" / "properties.json"
        save_catalog(path, [_property(1, localisationFr="Yaoundé")])
        assert "Yaoundé" in path.read_text(encoding="utf-8")
        assert load_catalog(path)[0]["localisationFr"] == "Yaoundé"


# ── Full ingestion ─────────────────────────────────────────────────


class TestIngestCatalog:
    async def test_refreshes_both_catalogs(self, tmp_path):
        save_catalog(tmp_path / "properties.json", [_property(1)])
        seen_paths = []

        def handler(request):
            seen_paths.append(request.url.path)
            if request.url.path.endswith("/immobilier/all"):
                return httpx.Response(200, json={"result": [_property(1), _property(2)]})
            return httpx.Response(200, json={"result": [{"id": 7, "nom": "Prado", "villeFr": "Douala"}]})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            added = await ingest_catalog(tmp_path, upstream=UPSTREAM, client=client)

        assert added == {OfferType.VEHICLE: 1, OfferType.PROPERTY: 1}
        assert "/api/v1/produits/vehicule/all" in seen_paths
        assert "/api/v1/produits/immobilier/all" in seen_paths

        properties = json.loads((tmp_path / "properties.json").read_text(encoding="utf-8"))
        assert [p["id"] for p in properties] == [1, 2]
        assert PropertyOffer.model_validate(properties[1]).fetched_at is not None

    async def test_one_failing_type_does_not_stop_the_other(self, tmp_path):
        def handler(request):
            if request.url.path.endswith("/vehicule/all"):
                return httpx.Response(500)
            return httpx.Response(200, json={"result": [_property(2)]})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            added = await ingest_catalog(tmp_path, upstream=UPSTREAM, client=client)

        assert added[OfferType.VEHICLE] == 0
        assert added[OfferType.PROPERTY] == 1
        assert not (tmp_path / "vehicles.json").exists()

    async def test_single_type(self, tmp_path):
        def handler(request):
            return httpx.Response(200, json={"result": []})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            added = await ingest_catalog(
                tmp_path, [OfferType.PROPERTY], upstream=UPSTREAM, client=client,
            )

        assert added == {OfferType.PROPERTY: 0}
        assert load_catalog(tmp_path / "properties.json") == []

    @pytest.mark.parametrize("payload", [{}, {"result": None}])
    async def test_empty_upstream_result(self, tmp_path, payload):
        def handler(request):
            return httpx.Response(200, json=payload)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            added = await ingest_catalog(
                tmp_path, [OfferType.VEHICLE], upstream=UPSTREAM, client=client,
            )
        assert added == {OfferType.VEHICLE: 0}


# ── CLI ────────────────────────────────────────────────────────────


class TestMain:
    @pytest.fixture
    def recorded(self, monkeypatch):
        calls = []

        async def fake_ingest(catalog_dir, offer_types, upstream):
            calls.append((catalog_dir, offer_types, upstream))
            return {}

        monkeypatch.setattr(ingest, "ingest_catalog", fake_ingest)
        return calls

    def test_upstream_defaults_to_configured_url(self, monkeypatch, recorded):
        monkeypatch.setenv("CATALOG_UPSTREAM_URL", "https://staging.test/api/v1/produits")
        ingest.main(["--type", "vehicle"])
        assert recorded == [(None, [OfferType.VEHICLE], "https://staging.test/api/v1/produits")]

    def test_upstream_flag_wins(self, monkeypatch, recorded, tmp_path):
        monkeypatch.setenv("CATALOG_UPSTREAM_URL", "https://staging.test/api/v1/produits")
        ingest.main(["--catalog-dir", str(tmp_path), "--upstream", UPSTREAM])
        assert recorded == [(str(tmp_path), None, UPSTREAM)]
