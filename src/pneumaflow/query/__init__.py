"""Meso and micro query tiers over the columnar store."""

from pneumaflow.query.downsample import downsample, lttb_indices
from pneumaflow.query.engine import TieredQueryEngine

__all__ = [
    "TieredQueryEngine",
    "downsample",
    "lttb_indices",
]
