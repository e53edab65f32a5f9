"""Holdout accuracy metrics.

Implements the usual point-forecast measures: ME, RMSE, MAE, MPE, MAPE and
the lag-1 autocorrelation of the errors.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

from Footfall.errors import ConfigurationError

from .containers import AccuracyReport


def _acf1(errors: np.ndarray) -> float:
    if len(errors) < 2:
        return float("nan")
    centered = errors - errors.mean()
    denom = float(np.sum(centered * centered))
    if denom == 0.0:
        return float("nan")
    return float(np.sum(centered[1:] * centered[:-1]) / denom)


def accuracy_report(model_tag: str, forecast: Sequence[float], actual: Sequence[float]) -> AccuracyReport:
    """
    Compare forecast point estimates with holdout actuals, paired by index.

    Pure function: the same inputs always give the same report.

    Args:
        model_tag: Variant tag the forecast came from
        forecast: Point estimates
        actual: Holdout actuals, same length as ``forecast``

    Returns:
        AccuracyReport

    Raises:
        ConfigurationError: If the sequences are empty or differ in length
    """
    f = np.asarray(forecast, dtype=float)
    a = np.asarray(actual, dtype=float)
    if f.shape != a.shape or f.ndim != 1:
        raise ConfigurationError(
            "Forecast and actuals must be 1-d and of equal length.",
            stage="cross_validate",
            context={"forecast": f.shape, "actual": a.shape},
        )
    if f.size == 0:
        raise ConfigurationError("Cannot score an empty forecast.", stage="cross_validate")

    e = a - f
    nonzero = a != 0
    if nonzero.any():
        pe = 100.0 * e[nonzero] / a[nonzero]
        mpe = float(np.mean(pe))
        mape = float(np.mean(np.abs(pe)))
    else:
        mpe = mape = float("nan")

    return AccuracyReport(
        model_tag=model_tag,
        ME=float(np.mean(e)),
        RMSE=float(np.sqrt(np.mean(e * e))),
        MAE=float(np.mean(np.abs(e))),
        MPE=mpe,
        MAPE=mape,
        ACF1=_acf1(e),
        n=int(e.size),
    )
