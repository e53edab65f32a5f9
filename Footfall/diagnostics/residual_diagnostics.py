from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
from scipy import stats
from statsmodels.stats.diagnostic import acorr_ljungbox

from Footfall.errors import DiagnosticInputError

logger = logging.getLogger(__name__)

SHAPIRO_MAX_N = 5000


@dataclass
class DiagnosticsConfig:
    """
    Configuration for ResidualDiagnostics.

    alpha:
        Significance threshold; a check passes when its p-value exceeds it.
    default_lags:
        Ljung-Box lag when no seasonal period is known (capped at n // 5).
    """
    alpha: float = 0.05
    default_lags: int = 10


@dataclass(frozen=True)
class DiagnosticResult:
    """
    Outcome of the residual checks.

    Low p-values are ordinary results: they flag that the model's error
    assumptions look violated, they are never raised as errors.
    """
    autocorrelation_pvalue: float
    normality_pvalue: float
    autocorrelation_pass: bool
    normality_pass: bool
    lags: int
    n: int
    alpha: float = 0.05
    ljung_box_stat: Optional[float] = None
    shapiro_stat: Optional[float] = None
    notes: List[str] = field(default_factory=list, compare=False)

    @property
    def passed(self) -> bool:
        return self.autocorrelation_pass and self.normality_pass

    def as_dict(self) -> Dict[str, Any]:
        return {
            "autocorrelation_pvalue": self.autocorrelation_pvalue,
            "normality_pvalue": self.normality_pvalue,
            "autocorrelation_pass": self.autocorrelation_pass,
            "normality_pass": self.normality_pass,
            "lags": self.lags,
            "n": self.n,
            "alpha": self.alpha,
        }


class ResidualDiagnostics:
    """
    Read-only statistical checks on a fitted model's residuals.

    - Autocorrelation: Ljung-Box portmanteau test
      (H0 = no autocorrelation up to ``lags``).
    - Normality: Shapiro-Wilk (H0 = normally distributed).
    """

    def __init__(self, config: Optional[DiagnosticsConfig] = None) -> None:
        self.config = config or DiagnosticsConfig()

    def _clean(self, residuals: Sequence[float]) -> np.ndarray:
        x = np.asarray(residuals, dtype=float).ravel()
        x = x[np.isfinite(x)]
        if x.size == 0:
            raise DiagnosticInputError("Residual sequence is empty.", context={"n": 0})
        if x.size < 3:
            raise DiagnosticInputError(
                "At least 3 residuals are needed for the normality test.", context={"n": int(x.size)}
            )
        if np.ptp(x) == 0:
            raise DiagnosticInputError(
                "Residual sequence is constant; autocorrelation and normality are undefined.",
                context={"n": int(x.size), "value": float(x[0])},
            )
        return x

    def _lags(self, n: int, lags: Optional[int], seasonal_period: Optional[int], model_df: int) -> int:
        """
        Default lag: ``min(2 * m, n // 5)`` for a seasonal period ``m``, else
        ``min(default_lags, n // 5)``; always above ``model_df``.
        """
        if lags is None:
            base = 2 * int(seasonal_period) if seasonal_period else self.config.default_lags
            lags = min(base, n // 5)
        lags = max(int(lags), int(model_df) + 1, 1)
        return min(lags, n - 1)

    def diagnose(
        self,
        residuals: Sequence[float],
        lags: Optional[int] = None,
        model_df: int = 0,
        seasonal_period: Optional[int] = None,
    ) -> DiagnosticResult:
        """
        Run both checks and return a DiagnosticResult.

        Raises
        ------
        DiagnosticInputError
            If the residuals are empty, fewer than 3, or constant.
        """
        alpha = float(self.config.alpha)
        x = self._clean(residuals)
        n = int(x.size)
        notes: List[str] = []

        n_lags = self._lags(n, lags, seasonal_period, model_df)
        lb = acorr_ljungbox(x, lags=[n_lags], model_df=int(model_df), return_df=True)
        lb_stat = float(lb["lb_stat"].iloc[0])
        lb_p = float(lb["lb_pvalue"].iloc[0])

        sample = x
        if n > SHAPIRO_MAX_N:
            sample = x[-SHAPIRO_MAX_N:]
            notes.append(f"Shapiro-Wilk run on the last {SHAPIRO_MAX_N} of {n} residuals.")
        sw = stats.shapiro(sample)
        sw_stat, sw_p = float(sw.statistic), float(sw.pvalue)

        result = DiagnosticResult(
            autocorrelation_pvalue=lb_p,
            normality_pvalue=sw_p,
            autocorrelation_pass=bool(lb_p > alpha),
            normality_pass=bool(sw_p > alpha),
            lags=n_lags,
            n=n,
            alpha=alpha,
            ljung_box_stat=lb_stat,
            shapiro_stat=sw_stat,
            notes=notes,
        )
        logger.debug(
            "diagnose: n=%d lags=%d ljung_box_p=%.4g shapiro_p=%.4g", n, n_lags, lb_p, sw_p
        )
        return result


def diagnose(
    residuals: Sequence[float],
    lags: Optional[int] = None,
    model_df: int = 0,
    seasonal_period: Optional[int] = None,
    alpha: float = 0.05,
) -> DiagnosticResult:
    """Functional shorthand for ``ResidualDiagnostics(...).diagnose(...)``."""
    engine = ResidualDiagnostics(DiagnosticsConfig(alpha=alpha))
    return engine.diagnose(residuals, lags=lags, model_df=model_df, seasonal_period=seasonal_period)
