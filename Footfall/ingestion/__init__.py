# Footfall/ingestion/__init__.py
from .event_aggregator import AggregationStrategy, EventAggregator, RawEvent, aggregate, events_to_frame
from .series_regularizer import RegularSeries, SeriesRegularizer, regularize

__all__ = [
    "AggregationStrategy",
    "EventAggregator",
    "RawEvent",
    "aggregate",
    "events_to_frame",
    "RegularSeries",
    "SeriesRegularizer",
    "regularize",
]
