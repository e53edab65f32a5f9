# Footfall/errors.py
from __future__ import annotations

from typing import Any, Dict, List, Optional


class FootfallError(Exception):
    """
    Base exception for the Footfall pipeline.

    Every error names the pipeline ``stage`` that raised it and carries a
    small ``context`` dict (offending period, range, variant tag, ...) so a
    misconfiguration is obvious from the message alone.
    """

    stage: str = "pipeline"

    def __init__(
        self,
        message: str,
        stage: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if stage is not None:
            self.stage = stage
        self.context = context or {}

    def __str__(self) -> str:
        parts = [f"[{self.stage}] {self.message}"]
        if self.context:
            parts.append(f"(context: {self.context})")
        return " ".join(parts)


class ConfigurationError(FootfallError, ValueError):
    """A parameter is outside its valid domain (bad window, period, horizon)."""


class EventParseError(FootfallError):
    """A raw event could not be interpreted (unparseable timestamp)."""

    stage = "aggregate"


class EmptyRangeError(FootfallError):
    """Regularization produced zero buckets."""

    stage = "regularize"


class InsufficientDataError(FootfallError):
    """A decomposition period is too large relative to the series."""

    stage = "decompose"


class InsufficientHistoryError(FootfallError):
    """Cross-validation holdout leaves too little training history."""

    stage = "cross_validate"


class ModelFitError(FootfallError):
    """Optimiser non-convergence or singular fit for one model variant."""

    stage = "fit"

    def __init__(self, tag: str, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        ctx = {"variant": tag}
        ctx.update(context or {})
        super().__init__(f"{tag}: {message}", context=ctx)
        self.tag = tag


class AllVariantsFailedError(FootfallError):
    """Every variant failed during cross-validation."""

    stage = "cross_validate"

    def __init__(self, failures: List[Any]) -> None:
        tags = [getattr(f, "model_tag", "?") for f in failures]
        super().__init__(
            f"All {len(failures)} model variants failed to fit.",
            context={"variants": tags},
        )
        self.failures = list(failures)


class DiagnosticInputError(FootfallError):
    """Residual sequence is empty or constant; tests are undefined."""

    stage = "diagnose"
