# Footfall/modeling/variants.py
from __future__ import annotations

import logging
import warnings
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from statsmodels.tools.sm_exceptions import ConvergenceWarning, InterpolationWarning
from statsmodels.tsa.arima.model import ARIMA
from statsmodels.tsa.exponential_smoothing.ets import ETSModel
from statsmodels.tsa.holtwinters import ExponentialSmoothing
from statsmodels.tsa.stattools import kpss

from Footfall.decomposition.seasonal_decomposer import SeasonalDecomposer, validate_periods
from Footfall.errors import ConfigurationError, FootfallError, ModelFitError
from Footfall.ingestion.series_regularizer import RegularSeries

from .containers import FittedModel, Forecast

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITER = 200
INTERVAL_ALPHA = 0.05

# (point, lower, upper); bounds may be None
ForecastArrays = Tuple[np.ndarray, Optional[np.ndarray], Optional[np.ndarray]]
# (params, residuals, state)
FitOutput = Tuple[Dict[str, Any], np.ndarray, Any]

FitFn = Callable[[str, np.ndarray, Tuple[int, ...], int], FitOutput]
ForecastFn = Callable[[Any, int], ForecastArrays]


# ---------------------------
# Variant capability
# ---------------------------
@dataclass(frozen=True)
class ModelVariant:
    """
    One forecasting method behind the uniform fit/forecast contract.

    A variant is data, not a subclass: ``fit_fn`` turns a training array into
    ``(params, residuals, state)`` and ``forecast_fn`` turns ``state`` into
    point estimates (and optional bounds) for a horizon.

    ``uses_all_periods`` says whether the method models every declared
    seasonal period or only the shortest one; it drives the minimum training
    window ``min_train_cycles * period + 1``.
    """
    tag: str
    fit_fn: FitFn
    forecast_fn: ForecastFn
    min_train_cycles: int = 2
    uses_all_periods: bool = True
    description: str = ""

    def periods_used(self, periods: Sequence[int]) -> Tuple[int, ...]:
        periods = tuple(int(p) for p in periods)
        return periods if self.uses_all_periods else (min(periods),)

    def min_train_length(self, periods: Sequence[int]) -> int:
        return self.min_train_cycles * max(self.periods_used(periods)) + 1


@contextmanager
def _fit_guard(tag: str) -> Iterator[None]:
    """
    Turn optimiser non-convergence and numerical failures into ModelFitError.
    """
    with warnings.catch_warnings():
        warnings.simplefilter("error", ConvergenceWarning)
        try:
            yield
        except FootfallError:
            raise
        except (ConvergenceWarning, np.linalg.LinAlgError, ValueError, FloatingPointError) as exc:
            raise ModelFitError(tag, f"{type(exc).__name__}: {exc}")


def _cycle(last_cycle: np.ndarray, horizon: int) -> np.ndarray:
    """Repeat a seasonal cycle forward; np.resize tiles cyclically."""
    return np.resize(np.asarray(last_cycle, dtype=float), horizon)


# ---------------------------
# Holt-Winters
# ---------------------------
def _fit_holt_winters(tag: str, y: np.ndarray, periods: Tuple[int, ...], max_iter: int) -> FitOutput:
    m = min(periods)
    if np.ptp(y) == 0:
        raise ModelFitError(
            tag, "training window is constant; smoothing coefficients are not identifiable", {"period": m}
        )

    model = ExponentialSmoothing(
        y,
        trend="add",
        seasonal="add",
        seasonal_periods=m,
        initialization_method="estimated",
    )
    res = model.fit(optimized=True, minimize_kwargs={"options": {"maxiter": int(max_iter)}})

    params = {
        "alpha": float(res.params["smoothing_level"]),
        "beta": float(res.params["smoothing_trend"]),
        "gamma": float(res.params["smoothing_seasonal"]),
        "seasonal_period": m,
        "sse": float(res.sse),
    }
    return params, np.asarray(res.resid, dtype=float), res


def _forecast_holt_winters(state: Any, horizon: int) -> ForecastArrays:
    return np.asarray(state.forecast(horizon), dtype=float), None, None


# ---------------------------
# STL + ETS / STL + ARIMA
# ---------------------------
@dataclass(frozen=True)
class _Deseasonalized:
    values: np.ndarray
    last_cycles: Dict[int, np.ndarray]

    def reseasonalize(self, horizon: int) -> np.ndarray:
        total = np.zeros(horizon, dtype=float)
        for cycle in self.last_cycles.values():
            total = total + _cycle(cycle, horizon)
        return total


def _deseasonalize(y: np.ndarray, periods: Tuple[int, ...]) -> _Deseasonalized:
    """
    Strip every declared seasonal component with MSTL and remember the last
    full cycle of each one for reseasonalizing forecasts.
    """
    result = SeasonalDecomposer(method="mstl").decompose(pd.Series(y, dtype="float64"), periods)
    last_cycles = {p: result.seasonal(p).to_numpy()[-p:] for p in periods}
    return _Deseasonalized(values=result.deseasonalized().to_numpy(), last_cycles=last_cycles)


@dataclass(frozen=True)
class _StlState:
    model: Any
    deseasonalized: _Deseasonalized
    n_obs: int


ETS_CANDIDATES: Tuple[Tuple[str, Optional[str], bool], ...] = (
    ("ANN", None, False),
    ("AAN", "add", False),
    ("AAdN", "add", True),
)


def _fit_stl_ets(tag: str, y: np.ndarray, periods: Tuple[int, ...], max_iter: int) -> FitOutput:
    """
    ETS on the deseasonalized series; error/trend form chosen by AICc among
    no trend, additive trend and damped additive trend.
    """
    des = _deseasonalize(y, periods)
    # out-of-sample get_prediction needs an indexed endog; a RangeIndex is enough
    x = pd.Series(des.values, dtype="float64")

    best = None
    failures: List[str] = []
    for name, trend, damped in ETS_CANDIDATES:
        try:
            with _fit_guard(tag):
                res = ETSModel(x, error="add", trend=trend, damped_trend=damped).fit(
                    maxiter=int(max_iter), disp=False
                )
        except ModelFitError as exc:
            failures.append(f"{name}: {exc.message}")
            continue
        aicc = float(res.aicc)
        if not np.isfinite(aicc):
            failures.append(f"{name}: non-finite AICc")
            continue
        if best is None or aicc < best[1]:
            best = (name, aicc, res)

    if best is None:
        raise ModelFitError(tag, "no ETS form could be fitted", {"failures": failures})

    name, aicc, res = best
    params = {"form": name, "aicc": aicc, "periods": list(periods)}
    params.update({k: float(v) for k, v in zip(getattr(res.model, "param_names", []), np.asarray(res.params))})
    return params, np.asarray(res.resid, dtype=float), _StlState(model=res, deseasonalized=des, n_obs=len(x))


def _forecast_stl_ets(state: _StlState, horizon: int) -> ForecastArrays:
    start = state.n_obs
    frame = state.model.get_prediction(start=start, end=start + horizon - 1).summary_frame(alpha=INTERVAL_ALPHA)
    seasonal = state.deseasonalized.reseasonalize(horizon)
    return (
        frame["mean"].to_numpy(dtype=float) + seasonal,
        frame["pi_lower"].to_numpy(dtype=float) + seasonal,
        frame["pi_upper"].to_numpy(dtype=float) + seasonal,
    )


@dataclass(frozen=True)
class ArimaSearch:
    """Small, deterministic order search for the deseasonalized series."""
    max_p: int = 2
    max_q: int = 2
    max_d: int = 2
    kpss_alpha: float = 0.05


def _n_diffs(x: np.ndarray, search: ArimaSearch) -> int:
    """
    Number of first differences needed for KPSS to stop rejecting
    level-stationarity (H0 = stationary; difference while p < alpha).
    """
    d = 0
    z = np.asarray(x, dtype=float)
    while d < search.max_d and len(z) > 10 and np.ptp(z) > 0:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", InterpolationWarning)
            p_value = kpss(z, regression="c", nlags="auto")[1]
        if p_value >= search.kpss_alpha:
            break
        z = np.diff(z)
        d += 1
    return d


def _fit_stl_arima(
    tag: str,
    y: np.ndarray,
    periods: Tuple[int, ...],
    max_iter: int,
    search: ArimaSearch = ArimaSearch(),
) -> FitOutput:
    """
    ARIMA on the deseasonalized series. ``d`` from repeated KPSS tests,
    ``(p, q)`` by AIC over a small grid; ties go to fewer parameters.
    """
    des = _deseasonalize(y, periods)
    x = des.values
    d = _n_diffs(x, search)
    trend = {0: "c", 1: "t"}.get(d, "n")

    scored = []
    failures: List[str] = []
    for p in range(search.max_p + 1):
        for q in range(search.max_q + 1):
            try:
                with _fit_guard(tag):
                    res = ARIMA(x, order=(p, d, q), trend=trend).fit(method_kwargs={"maxiter": int(max_iter)})
            except ModelFitError as exc:
                failures.append(f"({p},{d},{q}): {exc.message}")
                continue
            aic = float(res.aic)
            if np.isfinite(aic):
                scored.append(((aic, p + q, p, q), res))

    if not scored:
        raise ModelFitError(tag, "no ARIMA order could be fitted", {"d": d, "failures": failures})

    (aic, _, p, q), res = min(scored, key=lambda item: item[0])
    params = {"order": (p, d, q), "trend": trend, "aic": aic, "periods": list(periods)}
    params.update({k: float(v) for k, v in zip(getattr(res.model, "param_names", []), np.asarray(res.params))})
    return params, np.asarray(res.resid, dtype=float), _StlState(model=res, deseasonalized=des, n_obs=len(x))


def _forecast_stl_arima(state: _StlState, horizon: int) -> ForecastArrays:
    frame = state.model.get_forecast(steps=horizon).summary_frame(alpha=INTERVAL_ALPHA)
    seasonal = state.deseasonalized.reseasonalize(horizon)
    return (
        frame["mean"].to_numpy(dtype=float) + seasonal,
        frame["mean_ci_lower"].to_numpy(dtype=float) + seasonal,
        frame["mean_ci_upper"].to_numpy(dtype=float) + seasonal,
    )


# ---------------------------
# Seasonal naive benchmark
# ---------------------------
def _fit_seasonal_naive(tag: str, y: np.ndarray, periods: Tuple[int, ...], max_iter: int) -> FitOutput:
    m = min(periods)
    if len(y) <= m:
        raise ModelFitError(tag, f"need more than one cycle of {m} observations", {"n_obs": len(y)})
    residuals = y[m:] - y[:-m]
    return {"seasonal_period": m}, residuals, np.asarray(y[-m:], dtype=float)


def _forecast_seasonal_naive(state: np.ndarray, horizon: int) -> ForecastArrays:
    return _cycle(state, horizon), None, None


# ---------------------------
# Registry
# ---------------------------
def build_variant_registry() -> Dict[str, ModelVariant]:
    """
    Built-in variants keyed by tag, in the default evaluation order.

    Returns a fresh mapping on every call; there is no process-wide state.
    """
    variants = [
        ModelVariant(
            tag="holt_winters",
            fit_fn=_fit_holt_winters,
            forecast_fn=_forecast_holt_winters,
            uses_all_periods=False,
            description="Additive Holt-Winters on the shortest seasonal period.",
        ),
        ModelVariant(
            tag="stl_ets",
            fit_fn=_fit_stl_ets,
            forecast_fn=_forecast_stl_ets,
            description="MSTL deseasonalization + ETS, reseasonalized with the last cycles.",
        ),
        ModelVariant(
            tag="stl_arima",
            fit_fn=_fit_stl_arima,
            forecast_fn=_forecast_stl_arima,
            description="MSTL deseasonalization + ARIMA, reseasonalized with the last cycles.",
        ),
        ModelVariant(
            tag="seasonal_naive",
            fit_fn=_fit_seasonal_naive,
            forecast_fn=_forecast_seasonal_naive,
            uses_all_periods=False,
            description="Repeat the last cycle of the shortest period.",
        ),
    ]
    return {v.tag: v for v in variants}


def get_variant(tag: str) -> ModelVariant:
    registry = build_variant_registry()
    if tag not in registry:
        raise ConfigurationError(
            f"Unknown model variant '{tag}'.", stage="fit", context={"available": list(registry)}
        )
    return registry[tag]


def default_variants() -> List[ModelVariant]:
    return list(build_variant_registry().values())


def resolve_variants(variants: Optional[Sequence[Any]]) -> List[ModelVariant]:
    """Accept variant objects or tags; ``None`` means every built-in variant."""
    if variants is None:
        return default_variants()
    out = [get_variant(v) if isinstance(v, str) else v for v in variants]
    tags = [v.tag for v in out]
    if len(set(tags)) != len(tags):
        raise ConfigurationError("Variant tags must be unique.", stage="fit", context={"tags": tags})
    return out


def default_periods(series: RegularSeries) -> Tuple[int, ...]:
    """Intraday and intraweek periods of the grid, dropping degenerate ones."""
    return tuple(p for p in series.seasonal_periods() if p >= 2)


# ---------------------------
# Uniform contract
# ---------------------------
def fit(
    variant: ModelVariant,
    series: RegularSeries,
    seasonal_periods: Optional[Sequence[int]] = None,
    max_iter: int = DEFAULT_MAX_ITER,
) -> FittedModel:
    """
    Fit ``variant`` to ``series`` and return a new immutable handle.

    Raises
    ------
    ModelFitError
        Non-convergence, singular estimation or degenerate input.
    InsufficientDataError
        The series is shorter than two cycles of a period the variant uses.
    """
    periods = tuple(seasonal_periods) if seasonal_periods is not None else default_periods(series)
    used = variant.periods_used(validate_periods(periods))
    strict = variant.uses_all_periods and len(used) > 1
    validate_periods(used, len(series), strict=strict)

    y = series.values
    with _fit_guard(variant.tag):
        params, residuals, state = variant.fit_fn(variant.tag, y, used, int(max_iter))

    residuals = np.asarray(residuals, dtype=float)
    logger.debug("fit: %s on n=%d periods=%s", variant.tag, len(y), used)
    return FittedModel(
        tag=variant.tag,
        params=dict(params),
        periods=used,
        train=series,
        residuals=residuals,
        state=state,
        variant=variant,
    )


def forecast(handle: FittedModel, horizon: int) -> Forecast:
    """
    Forecast ``horizon`` steps past the end of the handle's training window.

    Raises
    ------
    ConfigurationError
        If ``horizon`` is not a positive integer.
    ModelFitError
        If the model produces non-finite point estimates.
    """
    if isinstance(horizon, bool) or not isinstance(horizon, (int, np.integer)) or horizon <= 0:
        raise ConfigurationError("horizon must be a positive integer.", stage="forecast", context={"horizon": horizon})
    horizon = int(horizon)

    with _fit_guard(handle.tag):
        point, lower, upper = handle.variant.forecast_fn(handle.state, horizon)

    point = np.asarray(point, dtype=float)
    if point.shape != (horizon,) or not np.all(np.isfinite(point)):
        raise ModelFitError(handle.tag, "forecast produced non-finite or mis-shaped point estimates")

    index = handle.train.future_index(horizon)
    has_bounds = lower is not None and upper is not None
    return Forecast(
        tag=handle.tag,
        point=pd.Series(point, index=index, name=handle.tag),
        lower=pd.Series(np.asarray(lower, dtype=float), index=index, name="lower") if has_bounds else None,
        upper=pd.Series(np.asarray(upper, dtype=float), index=index, name="upper") if has_bounds else None,
        level=(1.0 - INTERVAL_ALPHA) if has_bounds else None,
    )
