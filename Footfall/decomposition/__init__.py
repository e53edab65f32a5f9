from .seasonal_decomposer import DecompositionResult, SeasonalDecomposer, decompose, validate_periods

__all__ = [
    "DecompositionResult",
    "SeasonalDecomposer",
    "decompose",
    "validate_periods",
]
