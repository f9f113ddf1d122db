"""Fetch vehicle and property offers from the marketplace API into the catalog files.

Only offers whose id is not already in the catalog are added; existing
records are left untouched. Each new record gets a ``fetchedAt`` stamp.

Usage:
    # Refresh both catalogs in listings/sample_data
    python -m listings.ingest

    # Write somewhere else / only one type
    python -m listings.ingest --catalog-dir data/catalog --type vehicle

    # Different upstream
    CATALOG_UPSTREAM_URL=https://staging.example.com/api/v1/produits python -m listings.ingest
"""

import argparse
import asyncio
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import httpx
from pydantic import ValidationError

from listings.schema import CATALOG_FILES, OfferType, parse_offer
from offerbot.config import Settings

UPSTREAM_URL = "https://nimmo-auto.com/api/v1/produits"

DEFAULT_CATALOG_DIR = Path(__file__).parent / "sample_data"

# Path segment of each offer type on the upstream API
UPSTREAM_PATHS = {
    OfferType.VEHICLE: "vehicule/all",
    OfferType.PROPERTY: "immobilier/all",
}

# Upstream fields that may be missing and their stored defaults
FIELD_DEFAULTS = {
    OfferType.VEHICLE: {"annee": None},
    OfferType.PROPERTY: {"placeassise": 0, "douche": 0},
}


def merge_new_offers(
    existing: list[dict[str, Any]],
    fetched: list[dict[str, Any]],
    offer_type: OfferType,
    fetched_at: datetime | None = None,
) -> tuple[list[dict[str, Any]], int]:
    """Append fetched records whose id is not already known.

    Returns the merged record list and the number of records added.
    Records without an id, or that fail validation, are skipped.
    """
    stamp = (fetched_at or datetime.now(timezone.utc)).isoformat()
    seen = {record.get("id") for record in existing}
    merged = list(existing)
    added = 0

    for raw in fetched:
        if raw.get("id") is None or raw["id"] in seen:
            continue
        record = dict(raw)
        for key, default in FIELD_DEFAULTS[offer_type].items():
            if record.get(key) is None:
                record[key] = default
        record["fetchedAt"] = stamp
        try:
            parse_offer(offer_type, record)
        except ValidationError as exc:
            print(f"  Skipped invalid {offer_type.value} {raw.get('id')}: {exc.error_count()} errors")
            continue
        merged.append(record)
        seen.add(record["id"])
        added += 1
        print(f"  Added new {offer_type.value}: {record['id']}")

    return merged, added


def load_catalog(path: Path) -> list[dict[str, Any]]:
    if not path.exists():
        return []
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def save_catalog(path: Path, records: list[dict[str, Any]]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(records, f, ensure_ascii=False, indent=2)


async def fetch_offers(
    client: httpx.AsyncClient, offer_type: OfferType, upstream: str = UPSTREAM_URL,
) -> list[dict[str, Any]]:
    """GET one upstream listing; the offers are under ``result``."""
    resp = await client.get(f"{upstream.rstrip('/')}/{UPSTREAM_PATHS[offer_type]}")
    resp.raise_for_status()
    return resp.json().get("result") or []


async def ingest_catalog(
    catalog_dir: str | Path | None = None,
    offer_types: list[OfferType] | None = None,
    upstream: str = UPSTREAM_URL,
    client: httpx.AsyncClient | None = None,
) -> dict[OfferType, int]:
    """Refresh the catalog files. Returns the number of offers added per type.

    A failure on one offer type is reported and does not stop the others.
    """
    catalog_dir = Path(catalog_dir) if catalog_dir else DEFAULT_CATALOG_DIR
    offer_types = offer_types or list(OfferType)
    added: dict[OfferType, int] = {}

    own_client = client is None
    client = client or httpx.AsyncClient(timeout=60)
    try:
        for offer_type in offer_types:
            path = catalog_dir / CATALOG_FILES[offer_type]
            try:
                fetched = await fetch_offers(client, offer_type, upstream)
            except (httpx.HTTPError, ValueError) as exc:
                print(f"Error fetching {offer_type.value} offers: {exc}")
                added[offer_type] = 0
                continue
            merged, count = merge_new_offers(load_catalog(path), fetched, offer_type)
            save_catalog(path, merged)
            added[offer_type] = count
            print(f"{offer_type.value}: {count} added, {len(merged)} total in {path}")
    finally:
        if own_client:
            await client.aclose()

    return added


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Fetch marketplace offers into the local catalog files",
        prog="python -m listings.ingest",
    )
    parser.add_argument(
        "--catalog-dir",
        help="Directory holding vehicles.json / properties.json (default: listings/sample_data)",
    )
    parser.add_argument(
        "--type",
        choices=[t.value for t in OfferType],
        help="Only refresh one offer type",
    )
    parser.add_argument(
        "--upstream",
        default=Settings().catalog_upstream_url,
        help="Upstream API base URL (default: CATALOG_UPSTREAM_URL)",
    )
    args = parser.parse_args(argv)

    offer_types = [OfferType(args.type)] if args.type else None
    asyncio.run(ingest_catalog(args.catalog_dir, offer_types, args.upstream))


if __name__ == "__main__":
    main()
