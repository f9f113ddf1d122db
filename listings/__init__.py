"""Offer catalog: schema, sample data and upstream ingestion."""
