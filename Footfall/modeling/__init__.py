from .containers import AccuracyReport, FailedFit, FittedModel, Forecast
from .cross_validator import CrossValidator, evaluate
from .metrics import accuracy_report
from .selection import SelectionPolicy, select_best
from .variants import (
    ArimaSearch,
    ModelVariant,
    build_variant_registry,
    default_periods,
    default_variants,
    fit,
    forecast,
    get_variant,
    resolve_variants,
)

__all__ = [
    "AccuracyReport",
    "FailedFit",
    "FittedModel",
    "Forecast",
    "CrossValidator",
    "evaluate",
    "accuracy_report",
    "SelectionPolicy",
    "select_best",
    "ArimaSearch",
    "ModelVariant",
    "build_variant_registry",
    "default_periods",
    "default_variants",
    "fit",
    "forecast",
    "get_variant",
    "resolve_variants",
]
