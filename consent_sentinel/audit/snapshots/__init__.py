"""Snapshot capture and diffing."""

from .collector import DATA_LAYER_SCRIPT, SnapshotCollector
from .differ import diff_cookies, diff_data_layer, diff_local_storage

__all__ = [
    "DATA_LAYER_SCRIPT",
    "SnapshotCollector",
    "diff_cookies",
    "diff_data_layer",
    "diff_local_storage",
]
