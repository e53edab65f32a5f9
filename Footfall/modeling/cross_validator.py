from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from joblib import Parallel, delayed

from Footfall.decomposition.seasonal_decomposer import validate_periods
from Footfall.errors import AllVariantsFailedError, ConfigurationError, InsufficientHistoryError, ModelFitError
from Footfall.ingestion.series_regularizer import RegularSeries

from .containers import AccuracyReport, FailedFit
from .metrics import accuracy_report
from .variants import DEFAULT_MAX_ITER, ModelVariant, default_periods, fit, forecast, resolve_variants

logger = logging.getLogger(__name__)

CVOutcome = Union[AccuracyReport, FailedFit]


def _evaluate_one(
    variant: ModelVariant,
    train: RegularSeries,
    holdout: RegularSeries,
    periods: Tuple[int, ...],
    max_iter: int,
) -> CVOutcome:
    try:
        handle = fit(variant, train, periods, max_iter=max_iter)
        fc = forecast(handle, len(holdout))
    except ModelFitError as exc:
        logger.warning("cross-validation: %s failed: %s", variant.tag, exc.message)
        return FailedFit(model_tag=variant.tag, error_type=type(exc).__name__, message=exc.message)
    # Paired by position: both windows are contiguous and equal length.
    return accuracy_report(variant.tag, fc.point.to_numpy(), holdout.values)


@dataclass
class CrossValidator:
    """
    Tail-holdout evaluation of competing variants.

    Produces one entry per variant (an ``AccuracyReport`` or a ``FailedFit``)
    and deliberately does not pick a winner; see ``selection.select_best``.

    Parameters
    ----------
    n_jobs : int, default 1
        Fits are independent; ``n_jobs != 1`` fans them out with joblib.
        Results are joined in variant order either way.
    max_iter : int
        Iteration cap for every optimiser.
    """
    n_jobs: int = 1
    max_iter: int = DEFAULT_MAX_ITER

    def split(self, series: RegularSeries, holdout_length: int) -> Tuple[RegularSeries, RegularSeries]:
        n = len(series)
        return series.slice(0, n - holdout_length), series.slice(n - holdout_length, n)

    def min_history(self, variants: Sequence[ModelVariant], periods: Sequence[int]) -> int:
        return max(v.min_train_length(periods) for v in variants)

    def evaluate(
        self,
        series: RegularSeries,
        holdout_length: int,
        variants: Optional[Sequence[Any]] = None,
        seasonal_periods: Optional[Sequence[int]] = None,
    ) -> Dict[str, CVOutcome]:
        """
        Fit each variant on ``series[:-h]``, forecast ``h`` steps and score
        against ``series[-h:]``.

        Raises
        ------
        InsufficientHistoryError
            ``holdout_length`` leaves fewer training points than the most
            demanding variant needs (checked before any fit).
        AllVariantsFailedError
            Every variant raised ModelFitError.
        """
        variants = resolve_variants(variants)
        if not variants:
            raise ConfigurationError("At least one model variant is required.", stage="cross_validate")
        if isinstance(holdout_length, bool) or int(holdout_length) != holdout_length or holdout_length <= 0:
            raise ConfigurationError(
                "holdout_length must be a positive integer.",
                stage="cross_validate",
                context={"holdout_length": holdout_length},
            )
        holdout_length = int(holdout_length)

        periods = validate_periods(
            tuple(seasonal_periods) if seasonal_periods is not None else default_periods(series)
        )

        n = len(series)
        needed = self.min_history(variants, periods)
        if holdout_length > n - needed:
            raise InsufficientHistoryError(
                f"holdout_length={holdout_length} leaves {n - holdout_length} training points; "
                f"at least {needed} are required.",
                context={"n_obs": n, "holdout_length": holdout_length, "min_train": needed, "periods": periods},
            )

        train, holdout = self.split(series, holdout_length)
        logger.info(
            "cross-validation: %d variants, train=%d holdout=%d periods=%s",
            len(variants), len(train), len(holdout), periods,
        )

        outcomes: List[CVOutcome] = Parallel(n_jobs=self.n_jobs)(
            delayed(_evaluate_one)(v, train, holdout, periods, self.max_iter) for v in variants
        )

        reports: Dict[str, CVOutcome] = {o.model_tag: o for o in outcomes}
        failures = [o for o in outcomes if not o.ok]
        if len(failures) == len(outcomes):
            raise AllVariantsFailedError(failures)
        return reports


def evaluate(
    series: RegularSeries,
    holdout_length: int,
    variants: Optional[Sequence[Any]] = None,
    seasonal_periods: Optional[Sequence[int]] = None,
    n_jobs: int = 1,
) -> Dict[str, CVOutcome]:
    """Functional shorthand for ``CrossValidator(n_jobs).evaluate(...)``."""
    return CrossValidator(n_jobs=n_jobs).evaluate(series, holdout_length, variants, seasonal_periods)
