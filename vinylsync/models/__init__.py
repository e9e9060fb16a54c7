"""
Models package — the local CollectionRecord and the remote-sourced catalog types.
"""

from vinylsync.models.catalog import CatalogItem, PriceSnapshot, clean_artist_name
from vinylsync.models.record import Artist, CollectionRecord

__all__ = ["Artist", "CatalogItem", "CollectionRecord", "PriceSnapshot", "clean_artist_name"]
