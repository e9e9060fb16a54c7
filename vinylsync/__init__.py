"""Vinyl Sync — keeps a local vinyl collection snapshot reconciled with Discogs."""
