# Footfall/__init__.py
import logging

# -------------------------
# Ingestion layer
# -------------------------
from .ingestion.event_aggregator import AggregationStrategy, EventAggregator, RawEvent
from .ingestion.series_regularizer import RegularSeries, SeriesRegularizer

# -------------------------
# Decomposition
# -------------------------
from .decomposition.seasonal_decomposer import DecompositionResult, SeasonalDecomposer

# -------------------------
# Modeling layer
# -------------------------
from .modeling.containers import AccuracyReport, FailedFit, FittedModel, Forecast
from .modeling.cross_validator import CrossValidator
from .modeling.selection import SelectionPolicy, select_best
from .modeling.variants import ModelVariant, build_variant_registry, get_variant

# -------------------------
# Diagnostics + pipeline
# -------------------------
from .diagnostics.residual_diagnostics import DiagnosticResult, DiagnosticsConfig, ResidualDiagnostics
from .pipeline.orchestrator import ForecastPipeline, PipelineConfig, PipelineResult, compare_strategies

from .errors import (
    AllVariantsFailedError,
    ConfigurationError,
    DiagnosticInputError,
    EmptyRangeError,
    EventParseError,
    FootfallError,
    InsufficientDataError,
    InsufficientHistoryError,
    ModelFitError,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    # ingestion
    "AggregationStrategy",
    "EventAggregator",
    "RawEvent",
    "RegularSeries",
    "SeriesRegularizer",
    # decomposition
    "DecompositionResult",
    "SeasonalDecomposer",
    # modeling
    "AccuracyReport",
    "FailedFit",
    "FittedModel",
    "Forecast",
    "CrossValidator",
    "SelectionPolicy",
    "select_best",
    "ModelVariant",
    "build_variant_registry",
    "get_variant",
    # diagnostics
    "DiagnosticResult",
    "DiagnosticsConfig",
    "ResidualDiagnostics",
    # pipeline
    "ForecastPipeline",
    "PipelineConfig",
    "PipelineResult",
    "compare_strategies",
    # errors
    "AllVariantsFailedError",
    "ConfigurationError",
    "DiagnosticInputError",
    "EmptyRangeError",
    "EventParseError",
    "FootfallError",
    "InsufficientDataError",
    "InsufficientHistoryError",
    "ModelFitError",
]
