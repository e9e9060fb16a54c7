from vinylsync.engine.stats import CollectionStats, RecordHighlight, calculate_collection_stats
from vinylsync.engine.valuation import calculate_gain_loss

__all__ = [
    "CollectionStats",
    "RecordHighlight",
    "calculate_collection_stats",
    "calculate_gain_loss",
]
