"""Nightly (Tier 1) aggregate computation."""

from pneumaflow.aggregation.accumulator import SessionAccumulator
from pneumaflow.aggregation.calculations import (
    calculate_ahi,
    calculate_quality_score,
    median,
    percentile,
)
from pneumaflow.aggregation.computer import compute_nightly_aggregate
from pneumaflow.aggregation.sample_rate import SampleRateEstimator

__all__ = [
    "SampleRateEstimator",
    "SessionAccumulator",
    "calculate_ahi",
    "calculate_quality_score",
    "compute_nightly_aggregate",
    "median",
    "percentile",
]
