# Footfall/modeling/containers.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import numpy as np
import pandas as pd

from Footfall.ingestion.series_regularizer import RegularSeries


# ---------------------------
# Fitted model handle
# ---------------------------
@dataclass(frozen=True, eq=False)
class FittedModel:
    """
    Result of fitting one variant to a training window.

    Immutable: refitting produces a new handle. ``state`` is whatever the
    variant's forecast function needs (fitted statsmodels results, the last
    seasonal cycles, ...); callers should treat it as opaque.
    """
    tag: str
    params: Dict[str, Any]
    periods: Tuple[int, ...]
    train: RegularSeries
    residuals: np.ndarray
    state: Any = None
    variant: Any = None
    notes: Tuple[str, ...] = ()

    @property
    def n_train(self) -> int:
        return len(self.train)

    @property
    def train_end(self) -> Optional[pd.Timestamp]:
        return self.train.index[-1] if len(self.train) else None


# ---------------------------
# Forecast output
# ---------------------------
@dataclass(frozen=True, eq=False)
class Forecast:
    """
    Point estimates for ``horizon`` future steps, with optional bounds.

    ``point`` / ``lower`` / ``upper`` are indexed by the future
    business-hours timestamps following the training window.
    """
    tag: str
    point: pd.Series
    lower: Optional[pd.Series] = None
    upper: Optional[pd.Series] = None
    level: Optional[float] = None

    @property
    def horizon(self) -> int:
        return len(self.point)

    @property
    def has_intervals(self) -> bool:
        return self.lower is not None and self.upper is not None

    def to_frame(self) -> pd.DataFrame:
        df = pd.DataFrame({"point": self.point})
        if self.has_intervals:
            df["lower"] = self.lower
            df["upper"] = self.upper
        return df


# ---------------------------
# Cross-validation outcomes
# ---------------------------
@dataclass(frozen=True)
class AccuracyReport:
    """
    Holdout accuracy of one variant. Errors are ``actual - forecast``.

    MPE / MAPE are percentages over the positions with non-zero actuals
    (NaN when every actual is zero). ACF1 is the lag-1 autocorrelation of
    the errors (NaN when undefined).
    """
    model_tag: str
    ME: float
    RMSE: float
    MAE: float
    MPE: float
    MAPE: float
    ACF1: float
    n: int
    ok: bool = field(default=True, init=False)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "model_tag": self.model_tag,
            "ME": self.ME,
            "RMSE": self.RMSE,
            "MAE": self.MAE,
            "MPE": self.MPE,
            "MAPE": self.MAPE,
            "ACF1": self.ACF1,
            "n": self.n,
        }


@dataclass(frozen=True)
class FailedFit:
    """A variant that raised ModelFitError during cross-validation."""
    model_tag: str
    error_type: str
    message: str
    ok: bool = field(default=False, init=False)

    def as_dict(self) -> Dict[str, Any]:
        return {"model_tag": self.model_tag, "error_type": self.error_type, "message": self.message}
