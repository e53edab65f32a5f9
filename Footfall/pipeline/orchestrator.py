# Footfall/pipeline/orchestrator.py
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional, Sequence, Tuple, Union

import pandas as pd

from Footfall.decomposition.seasonal_decomposer import DecompositionMethod, DecompositionResult, SeasonalDecomposer
from Footfall.diagnostics.residual_diagnostics import DiagnosticResult, DiagnosticsConfig, ResidualDiagnostics
from Footfall.errors import DiagnosticInputError, ModelFitError
from Footfall.ingestion.event_aggregator import AggregationStrategy, EventAggregator, RawEvent
from Footfall.ingestion.series_regularizer import RangeT, RegularSeries, SeriesRegularizer
from Footfall.modeling.containers import FittedModel, Forecast
from Footfall.modeling.cross_validator import CrossValidator, CVOutcome
from Footfall.modeling.selection import SelectionPolicy, select_best
from Footfall.modeling.variants import DEFAULT_MAX_ITER, default_periods, fit, forecast, resolve_variants

from .report_types import StageLog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineConfig:
    """
    Every knob of one pipeline run.

    Keep this conservative: defaults regularize hourly over the whole day,
    derive intraday/intraweek periods from the grid, hold out one week, and
    forecast one week.
    """
    strategy: Union[AggregationStrategy, str] = AggregationStrategy.DISTINCT_TRANSACTIONS
    bucket: str = "1h"
    category: str = "food"

    interval: str = "1h"
    range: RangeT = None
    hour_window: Tuple[int, int] = (0, 23)
    fill_value: float = 0.0

    # None -> derived from the business-hours grid
    periods: Optional[Tuple[int, ...]] = None
    decomposition_method: DecompositionMethod = "auto"

    # None -> one intraweek cycle
    holdout_length: Optional[int] = None
    horizon: Optional[int] = None
    variants: Optional[Tuple[Any, ...]] = None
    selection: SelectionPolicy = SelectionPolicy()

    n_jobs: int = 1
    max_iter: int = DEFAULT_MAX_ITER
    alpha: float = 0.05


@dataclass
class PipelineResult:
    """Everything one run produced, plus the per-stage provenance log."""
    config: PipelineConfig
    series: RegularSeries
    periods: Tuple[int, ...]
    decomposition: DecompositionResult
    reports: Dict[str, CVOutcome]
    best_tag: str
    model: FittedModel
    forecast: Forecast
    diagnostics: Optional[DiagnosticResult]
    log: StageLog = field(default_factory=StageLog)


class ForecastPipeline:
    """
    events -> aggregate -> regularize -> decompose -> cross-validate ->
    select -> refit on the full series -> forecast -> residual diagnostics.

    Structural errors (aggregation, regularization, decomposition, history)
    abort the run. A variant failing during cross-validation is recorded and
    the run continues. Undefined residual diagnostics are recorded as a
    warning with ``diagnostics=None``.
    """

    def __init__(self, config: Optional[PipelineConfig] = None) -> None:
        self.config = config or PipelineConfig()

    def run(self, events: Sequence[RawEvent]) -> PipelineResult:
        cfg = self.config
        log = StageLog()

        # -------------------------
        # Step 1: aggregate events
        # -------------------------
        rec = log.start("aggregate")
        aggregator = EventAggregator(strategy=cfg.strategy, bucket=cfg.bucket, category=cfg.category)
        observations = aggregator.aggregate(events)
        rec.summary.update({"n_events": len(events), "n_buckets": len(observations),
                            "strategy": aggregator.strategy.value})

        # -------------------------
        # Step 2: regularize
        # -------------------------
        rec = log.start("regularize")
        regularizer = SeriesRegularizer(
            interval=cfg.interval, hour_window=cfg.hour_window, fill_value=cfg.fill_value
        )
        series = regularizer.regularize(observations, range=cfg.range)
        rec.summary.update({"n_obs": len(series), "start": str(series.index[0]), "end": str(series.index[-1]),
                            "steps_per_day": series.steps_per_day})
        rec.notes.extend(series.notes)

        # -------------------------
        # Step 3: decomposition (inspection)
        # -------------------------
        rec = log.start("decompose")
        periods = tuple(cfg.periods) if cfg.periods is not None else default_periods(series)
        decomposition = SeasonalDecomposer(method=cfg.decomposition_method).decompose(series, periods)
        rec.summary.update({"periods": list(periods), "method": decomposition.method})
        rec.notes.extend(decomposition.notes)

        # -------------------------
        # Step 4: cross-validation
        # -------------------------
        rec = log.start("cross_validate")
        weekly = max(periods)
        holdout = cfg.holdout_length if cfg.holdout_length is not None else weekly
        variants = resolve_variants(cfg.variants)
        validator = CrossValidator(n_jobs=cfg.n_jobs, max_iter=cfg.max_iter)
        reports = validator.evaluate(series, holdout, variants, periods)
        rec.summary["holdout_length"] = holdout
        for tag, outcome in reports.items():
            if not outcome.ok:
                rec.warnings.append(f"{tag} failed: {outcome.message}")

        # -------------------------
        # Step 5: select + refit on the full series
        # -------------------------
        rec = log.start("select")
        best_tag, meta = select_best(reports, cfg.selection)
        rec.summary.update({"selected": best_tag, "reason": meta["reason"]})
        ranked = [row["variant"] for row in meta["ranking"] if math.isfinite(row[cfg.selection.metric])]

        rec = log.start("refit")
        by_tag = {v.tag: v for v in variants}
        model, best_tag = self._refit(series, periods, ranked, by_tag, rec)
        rec.summary.update({"variant": best_tag, "params": model.params})

        # -------------------------
        # Step 6: forecast
        # -------------------------
        rec = log.start("forecast")
        horizon = cfg.horizon if cfg.horizon is not None else weekly
        fc = forecast(model, horizon)
        rec.summary.update({"horizon": horizon, "has_intervals": fc.has_intervals})

        # -------------------------
        # Step 7: residual diagnostics
        # -------------------------
        rec = log.start("diagnose")
        diagnostics: Optional[DiagnosticResult] = None
        try:
            diagnostics = ResidualDiagnostics(DiagnosticsConfig(alpha=cfg.alpha)).diagnose(
                model.residuals, seasonal_period=min(model.periods)
            )
            rec.summary.update(diagnostics.as_dict())
            rec.notes.extend(diagnostics.notes)
        except DiagnosticInputError as exc:
            rec.warnings.append(f"residual diagnostics undefined: {exc.message}")

        logger.info("pipeline: strategy=%s selected=%s n_obs=%d", AggregationStrategy(cfg.strategy).value, best_tag, len(series))
        return PipelineResult(
            config=cfg,
            series=series,
            periods=periods,
            decomposition=decomposition,
            reports=reports,
            best_tag=best_tag,
            model=model,
            forecast=fc,
            diagnostics=diagnostics,
            log=log,
        )

    def _refit(self, series, periods, ranked, by_tag, rec) -> Tuple[FittedModel, str]:
        """Refit the winner; fall back down the CV ranking if the refit fails."""
        last_error: Optional[ModelFitError] = None
        for tag in ranked:
            try:
                return fit(by_tag[tag], series, periods, max_iter=self.config.max_iter), tag
            except ModelFitError as exc:
                rec.warnings.append(f"refit of {tag} failed; trying next: {exc.message}")
                last_error = exc
        if last_error is None:
            last_error = ModelFitError("pipeline", "no variant produced a usable cross-validation score")
        raise last_error


def run_pipeline(events: Sequence[RawEvent], config: Optional[PipelineConfig] = None) -> PipelineResult:
    return ForecastPipeline(config).run(events)


def compare_strategies(
    events: Sequence[RawEvent],
    config: Optional[PipelineConfig] = None,
    strategies: Sequence[Union[AggregationStrategy, str]] = tuple(AggregationStrategy),
) -> Dict[str, PipelineResult]:
    """
    Run the same pipeline once per aggregation strategy.

    The visitor estimate is the only thing that changes between runs.
    """
    base = config or PipelineConfig()
    results: Dict[str, PipelineResult] = {}
    for strategy in strategies:
        key = AggregationStrategy(strategy).value
        results[key] = ForecastPipeline(replace(base, strategy=strategy)).run(events)
    return results


def report_table(reports: Dict[str, CVOutcome]) -> pd.DataFrame:
    """Accuracy reports (and failures) as one frame, one row per variant."""
    rows = [outcome.as_dict() for outcome in reports.values()]
    return pd.DataFrame(rows).set_index("model_tag")
