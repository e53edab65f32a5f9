# Footfall/modeling/selection.py
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .containers import AccuracyReport


@dataclass(frozen=True)
class SelectionPolicy:
    """
    Decision policy for picking a winner among cross-validation reports.

    Lowest ``metric`` wins; ties fall to ``tie_break`` and then to the order
    in which the reports were produced. Non-finite scores never win.
    """
    metric: str = "RMSE"
    tie_break: str = "MAE"


def _as_score(report: AccuracyReport, name: str) -> float:
    value = getattr(report, name, None)
    if value is None:
        return math.inf
    value = float(value)
    return value if math.isfinite(value) else math.inf


def select_best(
    reports: Mapping[str, Any],
    policy: SelectionPolicy = SelectionPolicy(),
) -> Tuple[Optional[str], Dict[str, Any]]:
    """
    Pick the winning variant tag from a cross-validation mapping.

    Output:
      - best tag (or None if no successful, finite report exists)
      - meta: ranking and reason, for reporting/debugging
    """
    scored: List[Tuple[Tuple[float, float, int], str]] = []
    failed: List[str] = []
    for order, (tag, report) in enumerate(reports.items()):
        if not getattr(report, "ok", False):
            failed.append(tag)
            continue
        key = (_as_score(report, policy.metric), _as_score(report, policy.tie_break), order)
        scored.append((key, tag))

    scored.sort()
    meta: Dict[str, Any] = {
        "policy": {"metric": policy.metric, "tie_break": policy.tie_break},
        "ranking": [{"rank": i, "variant": tag, policy.metric: key[0]} for i, (key, tag) in enumerate(scored, start=1)],
        "failed": failed,
        "selected": None,
        "reason": None,
    }

    finite = [(key, tag) for key, tag in scored if math.isfinite(key[0])]
    if not finite:
        meta["reason"] = "no_finite_scores" if scored else "no_successful_reports"
        return None, meta

    best = finite[0][1]
    meta["selected"] = best
    meta["reason"] = f"lowest_{policy.metric.lower()}"
    return best, meta
