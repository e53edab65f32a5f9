from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from statsmodels.tsa.seasonal import MSTL, STL, seasonal_decompose

from Footfall.errors import ConfigurationError, InsufficientDataError
from Footfall.ingestion.series_regularizer import RegularSeries

logger = logging.getLogger(__name__)

DecompositionMethod = Literal["auto", "classical", "stl", "mstl"]

MAX_PERIODS = 2


@dataclass(frozen=True, eq=False)
class DecompositionResult:
    """
    Additive decomposition ``observed = trend + sum(seasonal) + remainder``.

    Fields
    ------
    observed:
        The input values.
    trend:
        Trend component. The classical method leaves NaN where the centered
        moving average is undefined (series edges).
    seasonal_components:
        One series per declared period, keyed by that period, in ascending
        period order.
    remainder:
        What is left after trend and every seasonal component.
    method:
        "classical", "stl" or "mstl".
    """
    observed: pd.Series
    trend: Optional[pd.Series]
    seasonal_components: Dict[int, pd.Series]
    remainder: pd.Series
    method: str
    notes: List[str] = field(default_factory=list)

    @property
    def periods(self) -> Tuple[int, ...]:
        return tuple(self.seasonal_components.keys())

    def seasonal(self, period: int) -> pd.Series:
        if period not in self.seasonal_components:
            raise KeyError(f"No seasonal component for period {period}. Available: {list(self.periods)}")
        return self.seasonal_components[period]

    def seasonal_total(self) -> pd.Series:
        total = pd.Series(0.0, index=self.observed.index)
        for comp in self.seasonal_components.values():
            total = total + comp
        return total

    def reconstruct(self) -> pd.Series:
        """trend + sum(seasonal) + remainder; NaN where the trend is undefined."""
        trend = self.trend if self.trend is not None else 0.0
        return trend + self.seasonal_total() + self.remainder

    def deseasonalized(self) -> pd.Series:
        """observed - sum(seasonal), i.e. trend + remainder."""
        return self.observed - self.seasonal_total()


def validate_periods(
    periods: Sequence[int], n_obs: Optional[int] = None, strict: bool = False
) -> Tuple[int, ...]:
    """
    Check declared periods against each other and, when ``n_obs`` is given,
    against the series length.

    Raises
    ------
    ConfigurationError
        Empty list, more than two periods, periods below 2, or periods that
        are not strictly increasing.
    InsufficientDataError
        A period needs at least two full cycles of data (more than two when
        ``strict``, as loess-based extraction requires); names the period.
    """
    periods = tuple(int(p) for p in periods)
    if not periods:
        raise ConfigurationError("At least one seasonal period is required.", stage="decompose")
    if len(periods) > MAX_PERIODS:
        raise ConfigurationError(
            f"At most {MAX_PERIODS} nested seasonal periods are supported.",
            stage="decompose",
            context={"periods": periods},
        )
    if any(p < 2 for p in periods):
        raise ConfigurationError(
            "Seasonal periods must be integers >= 2.", stage="decompose", context={"periods": periods}
        )
    if any(b <= a for a, b in zip(periods, periods[1:])):
        raise ConfigurationError(
            "Seasonal periods must be strictly increasing and pairwise distinct.",
            stage="decompose",
            context={"periods": periods},
        )

    if n_obs is None:
        return periods

    for p in periods:
        needed = 2 * p + 1 if strict else 2 * p
        if p >= n_obs or n_obs < needed:
            raise InsufficientDataError(
                f"Period {p} needs at least {needed} observations; series has {n_obs}.",
                context={"period": p, "n_obs": n_obs},
            )
    return periods


class SeasonalDecomposer:
    """
    Decompose a regular series into trend, one or two seasonal components,
    and remainder. Additive only.

    Parameters
    ----------
    method : {'auto', 'classical', 'stl', 'mstl'}, default 'auto'
        'auto' uses classical moving-average decomposition for a single
        period and MSTL (iterated loess, ascending periods, each pass on the
        previous remainder) for two periods.
    robust : bool, default True
        Passed to STL for the 'stl' method.
    """

    def __init__(self, method: DecompositionMethod = "auto", robust: bool = True) -> None:
        if method not in ("auto", "classical", "stl", "mstl"):
            raise ConfigurationError(f"Unknown decomposition method: {method}", stage="decompose")
        self.method = method
        self.robust = robust

    def decompose(self, series: RegularSeries, periods: Sequence[int]) -> DecompositionResult:
        y = series.y if isinstance(series, RegularSeries) else pd.Series(series, dtype="float64")

        method = self.method
        if method == "auto":
            method = "classical" if len(periods) == 1 else "mstl"
        periods = validate_periods(periods, len(y), strict=(method == "mstl"))
        if method in ("classical", "stl") and len(periods) > 1:
            raise ConfigurationError(
                f"Method '{method}' supports a single period; use 'mstl' for {periods}.",
                stage="decompose",
            )

        if method == "classical":
            result = self._classical(y, periods[0])
        elif method == "stl":
            result = self._stl(y, periods[0])
        else:
            result = self._mstl(y, periods)

        logger.debug("decompose: n=%d periods=%s method=%s", len(y), periods, method)
        return result

    # ------------------------------------------------------------------
    # Methods
    # ------------------------------------------------------------------
    def _classical(self, y: pd.Series, period: int) -> DecompositionResult:
        """
        Centered moving average of window ``period`` for the trend, phase
        averages of the detrended values for the seasonal cycle.
        """
        res = seasonal_decompose(y.to_numpy(dtype=float), model="additive", period=period, two_sided=True)
        idx = y.index
        trend = pd.Series(res.trend, index=idx, name="trend")
        seasonal = pd.Series(res.seasonal, index=idx, name=f"seasonal_{period}")
        remainder = pd.Series(res.resid, index=idx, name="remainder")
        n_undefined = int(trend.isna().sum())
        return DecompositionResult(
            observed=y.copy(),
            trend=trend,
            seasonal_components={period: seasonal},
            remainder=remainder,
            method="classical",
            notes=[f"Trend undefined at {n_undefined} edge positions (centered moving average)."],
        )

    def _stl(self, y: pd.Series, period: int) -> DecompositionResult:
        res = STL(y.to_numpy(dtype=float), period=period, robust=self.robust).fit()
        idx = y.index
        return DecompositionResult(
            observed=y.copy(),
            trend=pd.Series(res.trend, index=idx, name="trend"),
            seasonal_components={period: pd.Series(res.seasonal, index=idx, name=f"seasonal_{period}")},
            remainder=pd.Series(res.resid, index=idx, name="remainder"),
            method="stl",
            notes=[f"STL computed with statsmodels (robust={self.robust})."],
        )

    def _mstl(self, y: pd.Series, periods: Tuple[int, ...]) -> DecompositionResult:
        res = MSTL(y.to_numpy(dtype=float), periods=periods).fit()
        idx = y.index

        seasonal = np.asarray(res.seasonal, dtype=float)
        if seasonal.ndim == 1:
            seasonal = seasonal.reshape(-1, 1)

        components = {
            p: pd.Series(seasonal[:, i], index=idx, name=f"seasonal_{p}") for i, p in enumerate(periods)
        }
        return DecompositionResult(
            observed=y.copy(),
            trend=pd.Series(np.asarray(res.trend, dtype=float), index=idx, name="trend"),
            seasonal_components=components,
            remainder=pd.Series(np.asarray(res.resid, dtype=float), index=idx, name="remainder"),
            method="mstl",
            notes=[f"MSTL extracted periods {list(periods)} in ascending order."],
        )


def decompose(
    series: RegularSeries,
    periods: Sequence[int],
    method: DecompositionMethod = "auto",
) -> DecompositionResult:
    """Functional shorthand for ``SeasonalDecomposer(method).decompose(...)``."""
    return SeasonalDecomposer(method=method).decompose(series, periods)
