"""Measurement Store: time-series persistence for SLI data points."""

from burnwatch.storage.base import (
    Aggregation,
    AggregationType,
    DataPoint,
    MeasurementStore,
    QueryFilter,
    aggregate_points,
    percentile,
)
from burnwatch.storage.memory import InMemoryMeasurementStore
from burnwatch.storage.sqlite import SQLiteMeasurementStore

__all__ = [
    "Aggregation",
    "AggregationType",
    "DataPoint",
    "InMemoryMeasurementStore",
    "MeasurementStore",
    "QueryFilter",
    "SQLiteMeasurementStore",
    "aggregate_points",
    "percentile",
]
