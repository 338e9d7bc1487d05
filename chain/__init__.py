"""Chain indexer access and covenant leaf classification."""

from .client import EsploraClient, script_hash
from .leaf import LeafKind, classify_leaf, classify_witness

__all__ = [
    "EsploraClient",
    "LeafKind",
    "classify_leaf",
    "classify_witness",
    "script_hash",
]
