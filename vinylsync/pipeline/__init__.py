"""Vinyl Sync — Discogs import pipeline (gate, client, mapping, reconciliation)."""
